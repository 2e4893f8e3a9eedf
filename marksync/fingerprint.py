"""
Content fingerprints for bookmark records.

A fingerprint is a SHA-256 digest over the normalized title, url and parent
id of a record. Timestamps are not part of the digest, so clock skew between
clients never registers as a change.
"""
import hashlib
import json
import unicodedata
from typing import Any, Dict, Iterable, Mapping, Union

from marksync.exceptions import InputError
from marksync.records import BookmarkRecord

FINGERPRINT_FIELDS = ("title", "url", "parentId")

RecordLike = Union[BookmarkRecord, Mapping[str, Any]]


def _normalize(value: Any) -> str:
    if value is None:
        return ""
    return unicodedata.normalize("NFC", str(value)).strip()


def fingerprint_fields(record: RecordLike) -> Dict[str, str]:
    """Extract the normalized fields covered by the fingerprint."""
    if isinstance(record, BookmarkRecord):
        raw = {"title": record.title, "url": record.url, "parentId": record.parent_id}
    else:
        if record.get("id") is None:
            raise InputError("Cannot fingerprint a record without an id")
        parent = record.get("parentId", record.get("parent_id"))
        raw = {"title": record.get("title"), "url": record.get("url"), "parentId": parent}
    return {name: _normalize(raw[name]) for name in FINGERPRINT_FIELDS}


def fingerprint(record: RecordLike) -> str:
    """
    Compute the content fingerprint of a record.

    Args:
        record: A BookmarkRecord or a snapshot mapping (either key style)

    Returns:
        64-character hex digest
    """
    canonical = json.dumps(fingerprint_fields(record), sort_keys=True, ensure_ascii=False,
                           separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def fingerprint_snapshot(records: Iterable[BookmarkRecord]) -> Dict[str, str]:
    """Map record id to fingerprint for a whole snapshot."""
    return {record.id: fingerprint(record) for record in records}


def snapshot_digest(records: Iterable[BookmarkRecord]) -> str:
    """
    Order-independent digest of an entire snapshot.

    Two snapshots with the same ids and the same record fingerprints produce
    the same digest, which lets a sync cycle short-circuit when nothing moved.
    """
    prints = fingerprint_snapshot(records)
    content = json.dumps(sorted(prints.items()), separators=(",", ":"))
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
