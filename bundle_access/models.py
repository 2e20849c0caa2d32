"""Typed views over the purchase, bundle and content-item documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


COMPLETED_PURCHASE_STATUSES = {'', 'completed', 'complete', 'paid', 'succeeded', 'success'}

MIME_EXTENSIONS = {
    'video/mp4': 'mp4',
    'video/webm': 'webm',
    'video/quicktime': 'mov',
    'audio/mpeg': 'mp3',
    'audio/wav': 'wav',
    'image/jpeg': 'jpg',
    'image/png': 'png',
    'application/pdf': 'pdf',
}

VIDEO_URL_HINTS = ('.mp4', '.mov', '.avi', '.mkv', '.webm')
AUDIO_URL_HINTS = ('.mp3', '.wav')
IMAGE_URL_HINTS = ('.jpg', '.jpeg', '.png', '.gif')


class ContentType(str, Enum):
    VIDEO = 'video'
    AUDIO = 'audio'
    IMAGE = 'image'
    DOCUMENT = 'document'


def classify_content_type(mime_type, url='') -> ContentType:
    """Map a MIME type (and, failing that, a URL extension) to a ContentType."""
    mime = str(mime_type or '').strip().lower()
    if mime.startswith('video/'):
        return ContentType.VIDEO
    if mime.startswith('audio/'):
        return ContentType.AUDIO
    if mime.startswith('image/'):
        return ContentType.IMAGE
    path = str(url or '').lower().split('?', 1)[0]
    if any(hint in path for hint in VIDEO_URL_HINTS):
        return ContentType.VIDEO
    if any(hint in path for hint in AUDIO_URL_HINTS):
        return ContentType.AUDIO
    if any(hint in path for hint in IMAGE_URL_HINTS):
        return ContentType.IMAGE
    return ContentType.DOCUMENT


def has_delivery_url(url) -> bool:
    return isinstance(url, str) and url.startswith('http')


def extension_for_mime(mime_type) -> str:
    return MIME_EXTENSIONS.get(str(mime_type or '').strip().lower(), 'file')


def first_present(data: Dict[str, Any], *keys, default=None):
    for key in keys:
        value = data.get(key)
        if value not in (None, ''):
            return value
    return default


def _as_number(value, default=0):
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_duration(value) -> Optional[float]:
    number = _as_number(value, default=None)
    if number is None or number <= 0:
        return None
    return number


@dataclass(frozen=True)
class ContentItem:
    id: str
    title: str
    filename: str
    url: str
    mime_type: str
    size: float = 0
    thumbnail_url: str = ''
    duration: Optional[float] = None
    source: str = 'uploads'

    @property
    def content_type(self) -> ContentType:
        return classify_content_type(self.mime_type, self.url)

    @classmethod
    def from_doc(cls, item_id, data, source='uploads') -> 'ContentItem':
        data = data or {}
        mime_type = str(first_present(data, 'mimeType', 'fileType', 'contentType', default='application/octet-stream'))
        if '/' not in mime_type:
            mime_type = 'application/octet-stream'
        title = str(first_present(data, 'title', 'filename', 'originalFileName', 'name', default=f"Content Item {str(item_id)[-6:]}"))
        filename = first_present(data, 'filename', 'originalFileName', 'fileName')
        if not filename:
            filename = f"{title}.{extension_for_mime(mime_type)}"
        url = first_present(data, 'fileUrl', 'publicUrl', 'downloadUrl', 'url', default='')
        return cls(
            id=str(item_id),
            title=title,
            filename=str(filename),
            url=url if isinstance(url, str) else '',
            mime_type=mime_type,
            size=_as_number(first_present(data, 'fileSize', 'size', default=0)),
            thumbnail_url=str(first_present(data, 'thumbnailUrl', 'previewUrl', default='')),
            duration=_as_duration(first_present(data, 'duration', 'videoDuration')),
            source=source,
        )


@dataclass(frozen=True)
class UnifiedPurchaseItem:
    id: str
    title: str
    filename: str
    file_url: str
    mime_type: str
    file_size: float = 0
    thumbnail_url: str = ''
    content_type: ContentType = ContentType.DOCUMENT
    duration: Optional[float] = None

    @classmethod
    def from_content_item(cls, item: ContentItem) -> 'UnifiedPurchaseItem':
        return cls(
            id=item.id,
            title=item.title,
            filename=item.filename,
            file_url=item.url,
            mime_type=item.mime_type,
            file_size=item.size,
            thumbnail_url=item.thumbnail_url,
            content_type=item.content_type,
            duration=item.duration,
        )

    @classmethod
    def from_dict(cls, data) -> 'UnifiedPurchaseItem':
        data = data or {}
        file_url = first_present(data, 'fileUrl', 'downloadUrl', 'url', default='')
        mime_type = str(first_present(data, 'mimeType', default='application/octet-stream'))
        raw_type = str(data.get('contentType') or '').strip().lower()
        try:
            content_type = ContentType(raw_type)
        except ValueError:
            content_type = classify_content_type(mime_type, file_url)
        return cls(
            id=str(first_present(data, 'id', 'contentId', default='')),
            title=str(first_present(data, 'title', 'displayTitle', 'filename', default='Untitled')),
            filename=str(first_present(data, 'filename', 'title', default='download')),
            file_url=file_url if isinstance(file_url, str) else '',
            mime_type=mime_type,
            file_size=_as_number(data.get('fileSize'), 0),
            thumbnail_url=str(first_present(data, 'thumbnailUrl', 'previewUrl', default='')),
            content_type=content_type,
            duration=_as_duration(data.get('duration')),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'id': self.id,
            'title': self.title,
            'filename': self.filename,
            'fileUrl': self.file_url,
            'mimeType': self.mime_type,
            'fileSize': self.file_size,
            'thumbnailUrl': self.thumbnail_url,
            'contentType': self.content_type.value,
        }
        if self.duration is not None:
            payload['duration'] = self.duration
        return payload


@dataclass(frozen=True)
class Bundle:
    id: str
    title: str = ''
    description: str = ''
    price: float = 0
    currency: str = 'usd'
    active: bool = True
    content_item_ids: Tuple[str, ...] = ()
    has_content_list: bool = False
    creator_id: str = ''
    thumbnail_url: str = ''
    created_at: Any = None
    updated_at: Any = None
    collection: str = 'bundles'

    @classmethod
    def from_doc(cls, bundle_id, data, collection='bundles') -> 'Bundle':
        data = data or {}
        raw_items = data.get('contentItems')
        ids = []
        if isinstance(raw_items, list):
            for entry in raw_items:
                item_id = entry.get('id') if isinstance(entry, dict) else entry
                item_id = str(item_id or '').strip()
                if item_id and item_id not in ids:
                    ids.append(item_id)
        status = str(data.get('status') or '').strip().lower()
        active = data.get('active')
        if active is None:
            active = status != 'inactive' and data.get('isActive', True) is not False
        return cls(
            id=str(bundle_id),
            title=str(data.get('title') or ''),
            description=str(data.get('description') or ''),
            price=_as_number(data.get('price'), 0),
            currency=str(data.get('currency') or 'usd').lower(),
            active=bool(active),
            content_item_ids=tuple(ids),
            has_content_list=isinstance(raw_items, list),
            creator_id=str(first_present(data, 'creatorId', 'userId', default='')),
            thumbnail_url=str(first_present(data, 'thumbnailUrl', 'customPreviewThumbnail', 'coverImage', default='')),
            created_at=data.get('createdAt'),
            updated_at=data.get('updatedAt'),
            collection=collection,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'price': self.price,
            'currency': self.currency,
            'active': self.active,
            'contentItems': list(self.content_item_ids),
            'creatorId': self.creator_id,
            'thumbnailUrl': self.thumbnail_url,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }


@dataclass(frozen=True)
class LegacyPurchase:
    id: str
    buyer_id: str
    bundle_id: str
    session_id: str = ''
    status: str = ''
    amount: float = 0
    currency: str = 'usd'
    purchased_at: Any = None
    creator_id: str = ''
    title: str = ''
    purchase_type: str = ''

    @property
    def is_completed(self) -> bool:
        return self.status in COMPLETED_PURCHASE_STATUSES

    @property
    def unified_key(self) -> str:
        return self.session_id or self.id

    @classmethod
    def from_doc(cls, purchase_id, data, buyer_id) -> 'LegacyPurchase':
        data = data or {}
        return cls(
            id=str(purchase_id),
            buyer_id=str(first_present(data, 'buyerUid', 'userId', default=buyer_id)),
            bundle_id=str(first_present(data, 'productBoxId', 'bundleId', 'itemId', default='')),
            session_id=str(data.get('sessionId') or ''),
            status=str(data.get('status') or '').strip().lower(),
            amount=_as_number(data.get('amount'), 0),
            currency=str(data.get('currency') or 'usd').lower(),
            purchased_at=first_present(data, 'createdAt', 'timestamp', 'purchasedAt'),
            creator_id=str(data.get('creatorId') or ''),
            title=str(first_present(data, 'itemTitle', 'title', default='')),
            purchase_type=str(data.get('type') or '').strip().lower(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'buyerUid': self.buyer_id,
            'productBoxId': self.bundle_id,
            'sessionId': self.session_id,
            'status': self.status,
            'amount': self.amount,
            'currency': self.currency,
            'createdAt': self.purchased_at,
            'creatorId': self.creator_id,
            'itemTitle': self.title,
        }


@dataclass(frozen=True)
class UnifiedPurchase:
    id: str
    buyer_id: str
    bundle_id: str
    bundle_title: str = ''
    bundle_description: str = ''
    bundle_thumbnail: str = ''
    creator_id: str = ''
    session_id: str = ''
    amount: float = 0
    currency: str = 'usd'
    purchased_at: Any = None
    items: Tuple[UnifiedPurchaseItem, ...] = ()
    source: str = 'unified'

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def total_size(self) -> float:
        return sum(item.file_size or 0 for item in self.items)

    @classmethod
    def from_doc(cls, purchase_id, data, buyer_id) -> 'UnifiedPurchase':
        data = data or {}
        raw_items = data.get('items') if isinstance(data.get('items'), list) else []
        return cls(
            id=str(first_present(data, 'id', default=purchase_id)),
            buyer_id=str(first_present(data, 'buyerUid', 'userId', default=buyer_id)),
            bundle_id=str(first_present(data, 'bundleId', 'productBoxId', 'itemId', default='')),
            bundle_title=str(first_present(data, 'bundleTitle', 'productBoxTitle', default='')),
            bundle_description=str(first_present(data, 'bundleDescription', 'productBoxDescription', default='')),
            bundle_thumbnail=str(first_present(data, 'bundleThumbnail', 'productBoxThumbnail', default='')),
            creator_id=str(data.get('creatorId') or ''),
            session_id=str(data.get('sessionId') or ''),
            amount=_as_number(data.get('amount'), 0),
            currency=str(data.get('currency') or 'usd').lower(),
            purchased_at=data.get('purchasedAt'),
            items=tuple(UnifiedPurchaseItem.from_dict(item) for item in raw_items if isinstance(item, dict)),
            source=str(data.get('source') or 'unified'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'buyerUid': self.buyer_id,
            'bundleId': self.bundle_id,
            'productBoxId': self.bundle_id,
            'bundleTitle': self.bundle_title,
            'productBoxTitle': self.bundle_title,
            'bundleDescription': self.bundle_description,
            'bundleThumbnail': self.bundle_thumbnail,
            'creatorId': self.creator_id,
            'sessionId': self.session_id,
            'amount': self.amount,
            'currency': self.currency,
            'purchasedAt': self.purchased_at,
            'items': [item.to_dict() for item in self.items],
            'totalItems': self.total_items,
            'totalSize': self.total_size,
            'source': self.source,
        }


def normalize_legacy_purchase(legacy: LegacyPurchase, bundle: Optional[Bundle], items) -> UnifiedPurchase:
    """Build the unified shape from a legacy purchase and its resolved items.

    Pure: performs no reads or writes. Items must already be filtered.
    """
    title = (bundle.title if bundle else '') or legacy.title or 'Untitled Bundle'
    return UnifiedPurchase(
        id=legacy.unified_key,
        buyer_id=legacy.buyer_id,
        bundle_id=legacy.bundle_id,
        bundle_title=title,
        bundle_description=bundle.description if bundle else '',
        bundle_thumbnail=bundle.thumbnail_url if bundle else '',
        creator_id=(bundle.creator_id if bundle else '') or legacy.creator_id,
        session_id=legacy.session_id or legacy.id,
        amount=legacy.amount,
        currency=legacy.currency,
        purchased_at=legacy.purchased_at,
        items=tuple(items),
        source='legacy_fallback',
    )


@dataclass
class BatchResult:
    """Per-item outcome of a best-effort batch."""

    succeeded: List[Any] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def failed_ids(self) -> List[str]:
        return [item_id for item_id, _reason in self.failed]


ACCESS_GRANTED = 'granted'
ACCESS_NO_CONTENT = 'no_content'
ACCESS_DENIED = 'denied'


@dataclass(frozen=True)
class AccessResult:
    status: str
    purchase: Optional[UnifiedPurchase] = None
    source: str = ''
    reason: str = ''
    dropped: Tuple[Tuple[str, str], ...] = ()

    @property
    def has_access(self) -> bool:
        return self.status in {ACCESS_GRANTED, ACCESS_NO_CONTENT}

    @property
    def items(self) -> Tuple[UnifiedPurchaseItem, ...]:
        return self.purchase.items if self.purchase else ()


@dataclass(frozen=True)
class MigrationOutcome:
    purchase_id: str
    bundle_id: str
    items_migrated: int = 0
    created: bool = False
    dropped: int = 0


@dataclass
class MigrationReport:
    total: int = 0
    migrated: int = 0
    skipped: int = 0
    errors: int = 0
    details: List[str] = field(default_factory=list)
    batch: BatchResult = field(default_factory=BatchResult)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'migrated': self.migrated,
            'skipped': self.skipped,
            'errors': self.errors,
            'details': list(self.details),
            'failed': [{'id': item_id, 'error': reason} for item_id, reason in self.batch.failed],
        }
