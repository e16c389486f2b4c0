# practice_pulse/data_processing/sharing.py
# SHARE PAYLOAD - COMPRESSED, EXPIRING DASHBOARD SNAPSHOTS

"""
A processed dashboard can be saved as a share link and reopened later, or
loaded as one practice of a national comparison set.

The payload is serialised to camelCase JSON, zlib-compressed and base64
encoded, then written to a key-value store under a short random base58 id.
Any `MutableMapping` works as the store (a dict in tests, a shelf or a
document-store adapter in deployment). Stored documents are plain dicts.
"""

import base64
import binascii
import logging
import secrets
import zlib
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, MutableMapping, Optional

from pydantic import Field, ValidationError

from config import settings
from .errors import ShareCorruptedError, ShareExpiredError, ShareNotFoundError, ShareTooLargeError
from .models import Record

logger = logging.getLogger(__name__)

BASE58_ALPHABET = '123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz'
MAX_ID_ATTEMPTS = 3

ShareStore = MutableMapping[str, Dict[str, Any]]


class SharePayload(Record):
    processed_data: List[Dict[str, Any]] = Field(default_factory=list)
    config: Dict[str, Any] = Field(default_factory=dict)
    forecast_data: Optional[Dict[str, Any]] = None
    raw_online_data: List[Dict[str, Any]] = Field(default_factory=list)
    raw_staff_data: List[Dict[str, Any]] = Field(default_factory=list)
    raw_slot_data: List[Dict[str, Any]] = Field(default_factory=list)
    raw_combined_data: List[Dict[str, Any]] = Field(default_factory=list)


class ShareDocument(Record):
    data: str
    type: str = 'demand-capacity'
    created_at: datetime
    expires_at: datetime
    version: str = Field(default_factory=lambda: settings.APP_VERSION)
    views: int = 0
    last_viewed_at: Optional[datetime] = None


class ShareLink(Record):
    share_id: str
    expires_at: datetime


class SharedDashboard(Record):
    share_id: str
    payload: SharePayload
    type: str
    created_at: datetime
    expires_at: datetime
    views: int


def _now() -> datetime:
    return datetime.now(timezone.utc)


# --- Encoding ---

def encode_share_payload(payload: SharePayload, max_size_kb: Optional[int] = None) -> str:
    """JSON -> zlib -> base64. Raises ShareTooLargeError above the size limit."""
    max_kb = settings.SHARING.max_size_kb if max_size_kb is None else max_size_kb
    raw = payload.model_dump_json(by_alias=True).encode('utf-8')
    encoded = base64.b64encode(zlib.compress(raw, 9)).decode('ascii')
    size_kb = len(encoded) / 1024
    if size_kb > max_kb:
        raise ShareTooLargeError(size_kb, max_kb)
    logger.debug(f"Share payload encoded: {len(raw)} bytes JSON -> {size_kb:.1f}KB.")
    return encoded


def decode_share_payload(encoded: str, share_id: str = "") -> SharePayload:
    try:
        raw = zlib.decompress(base64.b64decode(encoded, validate=True))
        return SharePayload.model_validate_json(raw)
    except (binascii.Error, zlib.error, ValidationError, ValueError) as e:
        logger.error(f"Share '{share_id}' could not be decoded: {e}")
        raise ShareCorruptedError(share_id) from e


def generate_share_id(length: Optional[int] = None) -> str:
    length = length or settings.SHARING.share_id_length
    return ''.join(secrets.choice(BASE58_ALPHABET) for _ in range(length))


# --- Store Operations ---

def create_share(store: ShareStore, payload: SharePayload, dashboard_type: str = 'demand-capacity',
                 now: Optional[datetime] = None) -> ShareLink:
    """Encodes the payload and stores it under a fresh id that expires after the configured number of days."""
    encoded = encode_share_payload(payload)
    created = now or _now()

    for _ in range(MAX_ID_ATTEMPTS):
        share_id = generate_share_id()
        if share_id not in store:
            break
    else:
        raise RuntimeError("Failed to generate unique share ID. Please try again.")

    document = ShareDocument(
        data=encoded, type=dashboard_type, created_at=created,
        expires_at=created + timedelta(days=settings.SHARING.expiry_days),
    )
    store[share_id] = document.model_dump()
    logger.info(f"Created share '{share_id}' ({len(encoded) / 1024:.1f}KB, expires {document.expires_at:%Y-%m-%d}).")
    return ShareLink(share_id=share_id, expires_at=document.expires_at)


def load_share(store: ShareStore, share_id: str, now: Optional[datetime] = None) -> SharedDashboard:
    """
    Reads a share and counts the view. Expired shares are deleted on access
    and raise ShareExpiredError.
    """
    if share_id not in store:
        raise ShareNotFoundError(share_id)
    document = ShareDocument.model_validate(store[share_id])
    current = now or _now()

    if document.expires_at < current:
        del store[share_id]
        logger.info(f"Share '{share_id}' expired on {document.expires_at:%Y-%m-%d}; deleted.")
        raise ShareExpiredError(share_id, settings.SHARING.expiry_days)

    payload = decode_share_payload(document.data, share_id)
    document.views += 1
    document.last_viewed_at = current
    store[share_id] = document.model_dump()

    return SharedDashboard(
        share_id=share_id, payload=payload, type=document.type,
        created_at=document.created_at, expires_at=document.expires_at, views=document.views,
    )


def cleanup_expired_shares(store: ShareStore, limit: Optional[int] = None, now: Optional[datetime] = None) -> int:
    """Deletes up to `limit` expired shares; returns how many were removed."""
    limit = limit or settings.SHARING.cleanup_batch_limit
    current = now or _now()
    expired = [
        share_id for share_id, doc in list(store.items())
        if ShareDocument.model_validate(doc).expires_at < current
    ][:limit]
    for share_id in expired:
        del store[share_id]
    if expired:
        logger.info(f"Cleaned up {len(expired)} expired share links.")
    return len(expired)


def share_store_loader(store: ShareStore) -> Callable[[str], Dict[str, Any]]:
    """Adapts a store into the `loader(share_id)` callable used by the comparison loader."""
    def load(share_id: str) -> Dict[str, Any]:
        return load_share(store, share_id).payload.to_dict()
    return load
