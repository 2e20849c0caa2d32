"""Content item resolution and the delivery-URL acceptance filter."""

import logging

from bundle_access.errors import STORE_ERRORS, StoreUnavailableError
from bundle_access.models import BatchResult, ContentItem, UnifiedPurchaseItem, has_delivery_url
from bundle_access.repositories import content_repo

logger = logging.getLogger('bundle_access.content')

LOOKUP_ERROR = 'lookup_error'

FILE_SIZE_UNITS = ['Bytes', 'KB', 'MB', 'GB', 'TB']


def format_file_size(num_bytes):
    size = float(num_bytes or 0)
    if size <= 0:
        return '0 Bytes'
    index = 0
    while size >= 1024 and index < len(FILE_SIZE_UNITS) - 1:
        size /= 1024
        index += 1
    value = round(size, 2)
    if value == int(value):
        value = int(value)
    return f"{value} {FILE_SIZE_UNITS[index]}"


def format_duration(seconds):
    total = int(seconds or 0)
    if total <= 0:
        return '0:00'
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def load_content_item(db, item_id):
    """Read one item from uploads, falling back to productBoxContent.

    productBoxContent rows that point at an upload are merged over it.
    Returns None when the id exists in neither collection.
    """
    upload = content_repo.get_upload(db, item_id)
    if upload.exists:
        return ContentItem.from_doc(item_id, upload.to_dict(), source='uploads')

    content = content_repo.get_bundle_content(db, item_id)
    if not content.exists:
        return None
    data = content.to_dict() or {}
    upload_id = str(data.get('uploadId') or '').strip()
    if upload_id and upload_id != item_id:
        linked = content_repo.get_upload(db, upload_id)
        if linked.exists:
            data = {**data, **(linked.to_dict() or {})}
    return ContentItem.from_doc(item_id, data, source='productBoxContent')


def resolve_items(db, item_ids):
    """Resolve each id independently; failures are logged and reported, never raised."""
    batch = BatchResult()
    seen = set()
    for raw_id in item_ids or []:
        item_id = str(raw_id or '').strip()
        if not item_id or item_id in seen:
            continue
        seen.add(item_id)
        try:
            item = load_content_item(db, item_id)
        except Exception as e:
            logger.warning(f"⚠️ Content item {item_id} lookup failed: {e}")
            batch.failed.append((item_id, f"{LOOKUP_ERROR}: {e}"))
            continue
        if item is None:
            logger.warning(f"⚠️ Content item {item_id} not found")
            batch.failed.append((item_id, 'not_found'))
            continue
        batch.succeeded.append(item)
    return batch


def _items_from_docs(docs, source):
    return [ContentItem.from_doc(doc.id, doc.to_dict(), source=source) for doc in docs]


def resolve_bundle_items(db, bundle):
    """Resolve the bundle's current content.

    Bundles carrying a contentItems list are resolved id by id. Older bundles
    without the list are matched through the productBoxContent and uploads
    foreign keys instead.
    """
    if bundle.has_content_list:
        return resolve_items(db, bundle.content_item_ids)

    batch = BatchResult()
    try:
        for field_path in ('productBoxId', 'boxId'):
            docs = content_repo.list_bundle_content(db, bundle.id, field_path=field_path)
            if docs:
                batch.succeeded.extend(_items_from_docs(docs, 'productBoxContent'))
                return batch
        batch.succeeded.extend(_items_from_docs(content_repo.list_uploads_for_bundle(db, bundle.id), 'uploads'))
    except STORE_ERRORS as e:
        raise StoreUnavailableError(f"Could not query content for bundle {bundle.id}: {e}") from e
    return batch


def deliverable_items(items, dropped=None):
    """Keep items whose delivery URL starts with http, converted to purchase items.

    Rejected ids are appended to ``dropped`` as (id, 'no_delivery_url').
    """
    accepted = []
    for item in items:
        if not has_delivery_url(item.url):
            logger.warning(f"⚠️ Skipping content item {item.id}: no valid delivery URL ({item.url!r})")
            if dropped is not None:
                dropped.append((item.id, 'no_delivery_url'))
            continue
        accepted.append(UnifiedPurchaseItem.from_content_item(item))
    return accepted


def collect_purchase_items(db, bundle):
    """Resolve and filter a bundle's content; returns (items, dropped)."""
    batch = resolve_bundle_items(db, bundle)
    dropped = list(batch.failed)
    items = deliverable_items(batch.succeeded, dropped=dropped)
    logger.info(f"📦 Bundle {bundle.id}: {len(items)} deliverable items, {len(dropped)} dropped")
    return items, dropped


def describe_item(item):
    payload = item.to_dict()
    payload['displaySize'] = format_file_size(item.file_size)
    if item.duration:
        payload['displayDuration'] = format_duration(item.duration)
    return payload
