"""Mapping between WebDAV request paths and flat object-store keys.

A resource path is the store key: slash-separated, with no leading slash and
no trailing slash. The empty string is the root collection, which always
exists and has no backing entry. Whether a request path *ended* in a slash
is still meaningful to GET (collection index) and PUT (rejected), so callers
check :func:`is_collection_request` on the raw path before normalizing.
"""

import urllib.parse

ROOT = ""


def normalize(raw: str) -> str:
    """Strip a single leading slash and a single trailing slash.

    Args:
        raw: The decoded request path, e.g. ``/docs/readme.txt`` or ``/docs/``.

    Returns:
        The resource path used as the store key.
    """
    path = raw
    if path.startswith("/"):
        path = path[1:]
    if path.endswith("/"):
        path = path[:-1]
    return path


def is_collection_request(raw: str) -> bool:
    """Return True if the raw request path ends with a slash."""
    return raw.endswith("/")


def parent(path: str) -> str:
    """Return the parent resource path; top-level paths have the root as parent."""
    idx = path.rfind("/")
    if idx < 0:
        return ROOT
    return path[:idx]


def name(path: str) -> str:
    """Return the last segment of a resource path."""
    return path.rsplit("/", 1)[-1]


def child_prefix(path: str) -> str:
    """Return the key prefix shared by every descendant of a collection."""
    if path == ROOT:
        return ""
    return path + "/"


def is_within(path: str, ancestor: str) -> bool:
    """Return True if ``path`` equals ``ancestor`` or lies in its subtree."""
    if ancestor == ROOT:
        return True
    return path == ancestor or path.startswith(ancestor + "/")


def href(path: str, is_collection: bool = False) -> str:
    """Build the percent-encoded absolute href for a resource.

    Collections (and the root) get a trailing slash.
    """
    if path == ROOT:
        return "/"
    encoded = "/" + urllib.parse.quote(path, safe="/")
    if is_collection:
        encoded += "/"
    return encoded


def parse_destination(header: str | None) -> str | None:
    """Extract the resource path from a ``Destination`` header.

    Accepts an absolute URL (``http://host/a/b``) or an absolute path
    (``/a/b``). The path is percent-decoded and normalized.

    Returns:
        The destination resource path, or None when the header is missing
        or cannot be parsed.
    """
    if header is None:
        return None
    value = header.strip()
    if not value:
        return None

    try:
        parts = urllib.parse.urlsplit(value)
    except ValueError:
        return None

    if parts.scheme:
        if parts.scheme not in ("http", "https") or not parts.netloc:
            return None
        raw_path = parts.path or "/"
    elif value.startswith("/") and not value.startswith("//"):
        raw_path = parts.path
    else:
        return None

    return normalize(urllib.parse.unquote(raw_path))
