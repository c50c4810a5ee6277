"""Recursive operations over a collection's subtree.

Deletion walks a recursive listing and removes each page with one batched
delete. Copy and move fan out one get+put per entry of a page concurrently,
wait for the whole page, then fetch the next page. There is no rollback: a
failure part-way leaves whatever was already written in place.

Entries that vanish between the listing and their get are skipped (logged
at DEBUG and counted); any other store error propagates to the caller.
"""

import asyncio
import logging

from bucketdav import metrics, paths
from bucketdav.errors import NotFoundError
from bucketdav.listing import ListingIterator, ListingMode
from bucketdav.storage.backend import Entry, ObjectBody, ObjectStore
from bucketdav.values import Depth

logger = logging.getLogger(__name__)


async def delete_subtree(store: ObjectStore, prefix: str) -> int:
    """Delete every key starting with ``prefix``.

    Returns:
        The number of keys deleted.
    """
    iterator = ListingIterator(store, prefix, ListingMode.RECURSIVE)
    deleted = 0
    async for entries in iterator.pages():
        if not entries:
            continue
        await store.delete([e.key for e in entries])
        deleted += len(entries)
    metrics.record_tree_entries("delete", deleted)
    return deleted


async def remove_resource(store: ObjectStore, path: str) -> bool:
    """Remove a resource and, for collections, everything beneath it.

    The root is never removed itself; removing it clears the store.

    Returns:
        False if a non-root ``path`` did not exist.
    """
    if path == paths.ROOT:
        count = await delete_subtree(store, "")
        logger.info(
            "Cleared store (%d entries)",
            count,
            extra={"operation": "delete", "source": "/", "entries": count},
        )
        return True

    entry = await store.head(path)
    if entry is None:
        return False

    await store.delete(path)
    if entry.is_collection:
        count = await delete_subtree(store, paths.child_prefix(path))
        logger.info(
            "Deleted collection %s (%d descendants)",
            path,
            count,
            extra={"operation": "delete", "source": path, "entries": count},
        )
    return True


async def _transfer_entry(
    store: ObjectStore,
    key: str,
    destination_key: str,
    move: bool,
) -> bool:
    """Copy one key to ``destination_key``, deleting the source when moving.

    Returns:
        False if the source had vanished and nothing was written.
    """
    obj = await store.get(key)
    if not isinstance(obj, ObjectBody):
        return False
    await store.put(destination_key, obj.body, obj.metadata())
    if move:
        await store.delete(key)
    return True


def _rebase(key: str, source: str, destination: str) -> str:
    return destination + key[len(source) :]


async def transfer_resource(
    store: ObjectStore,
    source: Entry,
    destination: str,
    move: bool = False,
    depth: Depth = Depth.INFINITY,
) -> int:
    """Copy or move ``source`` to ``destination``.

    Members are copied body and metadata in one get+put. Collections get
    their marker written first; with Depth infinity every descendant is
    then transferred page by page. A moved collection loses its source
    marker last, so a move that fails part-way leaves the source visible.

    Args:
        store: The object store.
        source: The existing source entry.
        destination: Normalized destination path (its parent must exist).
        move: Delete each source key after it has been written.
        depth: ZERO transfers a collection's marker only.

    Returns:
        The number of descendants transferred.

    Raises:
        NotFoundError: If a member source vanished before it could be read.
    """
    operation = "move" if move else "copy"

    if not source.is_collection:
        if not await _transfer_entry(store, source.key, destination, move):
            raise NotFoundError()
        metrics.record_tree_entries(operation)
        return 0

    await store.put(destination, b"", source.metadata())

    transferred = 0
    skipped = 0
    if depth is Depth.INFINITY:
        source_prefix = paths.child_prefix(source.key)
        destination_prefix = paths.child_prefix(destination)
        iterator = ListingIterator(store, source_prefix, ListingMode.RECURSIVE)
        async for entries in iterator.pages():
            results = await asyncio.gather(
                *(
                    _transfer_entry(
                        store,
                        e.key,
                        _rebase(e.key, source_prefix, destination_prefix),
                        move,
                    )
                    for e in entries
                ),
                return_exceptions=True,
            )
            # let the whole page settle before surfacing a failure
            failures = [r for r in results if isinstance(r, BaseException)]
            if failures:
                raise failures[0]
            for entry, done in zip(entries, results):
                if done:
                    transferred += 1
                else:
                    skipped += 1
                    logger.debug(
                        "Skipped vanished entry %s during %s",
                        entry.key,
                        operation,
                        extra={"operation": operation, "source": entry.key},
                    )
                    metrics.record_tree_skip(operation)

    if move:
        await store.delete(source.key)

    metrics.record_tree_entries(operation, transferred + 1)
    logger.info(
        "%s collection %s -> %s (%d descendants)",
        operation.capitalize(),
        source.key,
        destination,
        transferred,
        extra={
            "operation": operation,
            "source": source.key,
            "destination": destination,
            "entries": transferred,
            "skipped": skipped,
        },
    )
    return transferred
