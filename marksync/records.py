"""
Bookmark records exchanged with snapshot stores.

Records arriving from a snapshot store are validated once, here, so that
fingerprinting and conflict classification can assume well-formed input.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from marksync.exceptions import InputError

KIND_LEAF = "leaf"
KIND_FOLDER = "folder"
RECORD_KINDS = (KIND_LEAF, KIND_FOLDER)

TimestampLike = Union[None, datetime, int, float, str]


def parse_timestamp(value: TimestampLike) -> Optional[datetime]:
    """
    Normalize a timestamp to an aware UTC datetime.

    Accepts datetimes (naive ones are taken as UTC), ISO-8601 strings and
    epoch milliseconds, which is what browser bookmark APIs report.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InputError(f"Invalid timestamp: {value!r}")
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return parse_timestamp(int(text))
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return parse_timestamp(datetime.fromisoformat(text))
        except ValueError:
            raise InputError(f"Invalid timestamp: {value!r}") from None
    raise InputError(f"Invalid timestamp: {value!r}")


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


@dataclass(frozen=True)
class BookmarkRecord:
    """
    One node of a bookmark tree, flattened.

    Attributes:
        id: Stable identifier assigned by the bookmark store
        title: Display title (folders have titles too)
        parent_id: Id of the containing folder, None for roots
        url: Target URL; None for folders
        date_added: When the node was created
        date_modified: Last modification, used only as merge tie-break metadata
        kind: 'leaf' or 'folder'; derived from url when not given
    """
    id: str
    title: str = ""
    parent_id: Optional[str] = None
    url: Optional[str] = None
    date_added: Optional[datetime] = None
    date_modified: Optional[datetime] = None
    kind: str = field(default="")

    def __post_init__(self):
        if self.id is None or str(self.id) == "":
            raise InputError("Bookmark record is missing an id")
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "parent_id", _optional_str(self.parent_id))
        object.__setattr__(self, "title", "" if self.title is None else str(self.title))
        object.__setattr__(self, "date_added", parse_timestamp(self.date_added))
        object.__setattr__(self, "date_modified", parse_timestamp(self.date_modified))
        if not self.kind:
            object.__setattr__(self, "kind", KIND_FOLDER if self.url is None else KIND_LEAF)
        elif self.kind not in RECORD_KINDS:
            raise InputError(f"Unknown record kind {self.kind!r} for id {self.id}")

    @property
    def is_folder(self) -> bool:
        return self.kind == KIND_FOLDER

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BookmarkRecord":
        """
        Build a record from a snapshot mapping.

        Both camelCase (parentId, dateAdded, dateModified) and snake_case keys
        are accepted.

        Raises:
            InputError: if the mapping has no id or carries invalid values
        """
        if not isinstance(data, Mapping):
            raise InputError(f"Bookmark record must be a mapping, got {type(data).__name__}")
        record_id = data.get("id")
        if record_id is None or str(record_id) == "":
            raise InputError(f"Bookmark record is missing an id: {dict(data)!r}")
        return cls(
            id=record_id,
            title=data.get("title") or "",
            parent_id=_first(data, "parentId", "parent_id"),
            url=data.get("url") or None,
            date_added=_first(data, "dateAdded", "date_added"),
            date_modified=_first(data, "dateModified", "date_modified"),
            kind=data.get("kind") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON shape used by snapshot files."""
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "parentId": self.parent_id,
            "dateAdded": self.date_added.isoformat() if self.date_added else None,
            "dateModified": self.date_modified.isoformat() if self.date_modified else None,
            "kind": self.kind,
        }

    def evolve(self, **changes) -> "BookmarkRecord":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


def coerce_record(item: Union[BookmarkRecord, Mapping[str, Any]]) -> BookmarkRecord:
    """Accept either a record or a raw mapping."""
    if isinstance(item, BookmarkRecord):
        return item
    return BookmarkRecord.from_dict(item)


def coerce_records(items: Optional[Iterable[Union[BookmarkRecord, Mapping[str, Any]]]]) -> List[BookmarkRecord]:
    """Validate a whole snapshot."""
    if items is None:
        return []
    return [coerce_record(item) for item in items]


def flatten_tree(nodes: Iterable[Mapping[str, Any]], parent_id: Optional[str] = None) -> List[BookmarkRecord]:
    """
    Flatten a nested bookmark tree into records.

    Nodes carry their children under 'children'. A node without an explicit
    parent id inherits the id of the folder it is nested in.

    Example:
        >>> tree = [{"id": "1", "title": "Bar", "children": [
        ...     {"id": "2", "title": "Python", "url": "https://python.org"}]}]
        >>> [r.parent_id for r in flatten_tree(tree)]
        [None, '1']
    """
    records = []
    for node in nodes:
        if not isinstance(node, Mapping):
            raise InputError(f"Bookmark tree node must be a mapping, got {type(node).__name__}")
        data = {k: v for k, v in node.items() if k != "children"}
        if _first(data, "parentId", "parent_id") is None and parent_id is not None:
            data["parentId"] = parent_id
        record = BookmarkRecord.from_dict(data)
        records.append(record)
        children = node.get("children")
        if children:
            records.extend(flatten_tree(children, record.id))
    return records
