"""WebDAV multistatus (207) response rendering for BucketDAV."""

from dataclasses import dataclass, fields
from xml.sax.saxutils import escape as _sax_escape
from xml.sax.saxutils import quoteattr

from fastapi.responses import Response

from bucketdav.storage.backend import Entry
from bucketdav.values import http_date, iso8601

DAV_NAMESPACE = "DAV:"

MULTISTATUS_MEDIA_TYPE = "application/xml; charset=utf-8"

_STATUS_OK = "HTTP/1.1 200 OK"


def _escape_xml(value: str) -> str:
    return _sax_escape(str(value))


@dataclass
class DavProperties:
    """The live properties reported for a resource.

    Fields left as None are omitted from the response. ``resourcetype`` is
    always rendered: empty for members, ``<collection/>`` for collections.
    """

    creationdate: str | None = None
    displayname: str | None = None
    getcontentlanguage: str | None = None
    getcontentlength: str | None = None
    getcontenttype: str | None = None
    getetag: str | None = None
    getlastmodified: str | None = None
    resourcetype: str = ""


def properties_for(entry: Entry) -> DavProperties:
    """Project a store entry onto its DAV properties."""
    return DavProperties(
        creationdate=iso8601(entry.uploaded_at),
        displayname=entry.content_disposition,
        getcontentlanguage=entry.content_language,
        getcontentlength=str(entry.size),
        getcontenttype=entry.content_type,
        getetag=entry.http_etag,
        getlastmodified=http_date(entry.uploaded_at),
        resourcetype="collection" if entry.is_collection else "",
    )


def root_properties() -> DavProperties:
    """Properties of the root collection, which has no backing entry."""
    return DavProperties(resourcetype="collection")


def _render_prop(props: DavProperties) -> list[str]:
    parts = ["<prop>"]
    for f in fields(DavProperties):
        value = getattr(props, f.name)
        if f.name == "resourcetype":
            if value == "collection":
                parts.append("<resourcetype><collection/></resourcetype>")
            else:
                parts.append("<resourcetype/>")
        elif value is not None:
            parts.append(f"<{f.name}>{_escape_xml(value)}</{f.name}>")
    parts.append("</prop>")
    return parts


def render_multistatus(responses: list[tuple[str, DavProperties]]) -> str:
    """Render a PROPFIND multistatus document.

    Args:
        responses: ``(href, properties)`` pairs, in response order. Hrefs are
            expected to be percent-encoded already.

    Returns:
        The XML document as a string.
    """
    parts = [
        '<?xml version="1.0" encoding="utf-8"?>',
        f'<multistatus xmlns="{DAV_NAMESPACE}">',
    ]
    for href, props in responses:
        parts.append("<response>")
        parts.append(f"<href>{_escape_xml(href)}</href>")
        parts.append("<propstat>")
        parts.extend(_render_prop(props))
        parts.append(f"<status>{_STATUS_OK}</status>")
        parts.append("</propstat>")
        parts.append("</response>")
    parts.append("</multistatus>")
    return "\n".join(parts)


def _property_element(namespace: str, name: str) -> str:
    if namespace == DAV_NAMESPACE:
        return f"<{name}/>"
    return f"<x:{name} xmlns:x={quoteattr(namespace)}/>"


def render_proppatch_response(href: str, properties: list[tuple[str, str]]) -> str:
    """Render the PROPPATCH multistatus: one propstat per touched property.

    Args:
        href: Percent-encoded href of the target resource.
        properties: ``(namespace, local_name)`` of every property that was
            set or removed, in request order.
    """
    parts = [
        '<?xml version="1.0" encoding="utf-8"?>',
        f'<multistatus xmlns="{DAV_NAMESPACE}">',
        "<response>",
        f"<href>{_escape_xml(href)}</href>",
    ]
    for namespace, name in properties:
        parts.append("<propstat>")
        parts.append(f"<prop>{_property_element(namespace, name)}</prop>")
        parts.append(f"<status>{_STATUS_OK}</status>")
        parts.append("</propstat>")
    parts.append("</response>")
    parts.append("</multistatus>")
    return "\n".join(parts)


def multistatus_response(body: str) -> Response:
    """Wrap a multistatus document in a 207 response."""
    return Response(
        content=body,
        status_code=207,
        media_type=MULTISTATUS_MEDIA_TYPE,
    )
