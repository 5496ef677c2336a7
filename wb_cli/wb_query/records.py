"""Schema-less record model for paged query results.

A record is an ordered mapping of field name to value where a value is one of:

* a scalar (``str``, number, ``bool`` or ``None``),
* a parent :class:`Record` (single related object, flattened into ``Parent.Field`` columns),
* a child :class:`RecordSet` (relationship sub-query result),
* a tuple of child record sets when the store returned several relationship groups.

Field access is always explicit: :meth:`Record.get` returns :data:`MISSING` for absent
fields so callers can tell "absent" apart from a ``None`` value.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any, Union

from wb_cli.shared.exceptions import QueryError

ID_FIELD = "Id"
METADATA_KEYS = frozenset({"type", "attributes"})


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

Scalar = Union[str, int, float, bool, None]
FieldValue = Union[Scalar, "Record", "RecordSet", "tuple[RecordSet, ...]"]


class RecordSet(Sequence["Record"]):
    """Ordered, immutable sequence of records plus the store's reported size."""

    __slots__ = ("_records", "size", "done")

    def __init__(self, records: Iterable[Record] = (), *, size: int | None = None, done: bool = True) -> None:
        self._records: tuple[Record, ...] = tuple(records)
        self.size = len(self._records) if size is None else size
        self.done = done

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> RecordSet:
        """Build a child record set from a ``{"records": ..., "size": ...}`` mapping."""
        raw_records = normalise_records(payload.get("records"))
        return cls(
            (Record.from_payload(item) for item in raw_records),
            size=payload.get("size"),
            done=bool(payload.get("done", True)),
        )

    def __getitem__(self, index):  # type: ignore[override]
        if isinstance(index, slice):
            return RecordSet(self._records[index])
        return self._records[index]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RecordSet):
            return self._records == other._records
        return NotImplemented

    def __repr__(self) -> str:
        return f"RecordSet({len(self._records)} records, size={self.size})"


class Record(Mapping[str, Any]):
    """Immutable ordered mapping of field names to :data:`FieldValue` items."""

    __slots__ = ("_fields", "_flat")

    def __init__(self, fields: Mapping[str, Any] | Iterable[tuple[str, Any]] = ()) -> None:
        self._fields: dict[str, Any] = dict(fields)
        self._flat: dict[str, Any] | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> Record:
        """Convert one raw row payload into a record.

        Payloads either carry their values directly or nest them under ``fields``;
        in the latter case a top-level ``Id`` is folded into the mapping first.
        """
        if isinstance(payload, Record):
            return payload
        if not isinstance(payload, Mapping):
            raise QueryError(f"Unsupported record payload of type {type(payload).__name__}.")

        fields: dict[str, Any] = {}
        raw_fields = payload.get("fields")
        if isinstance(raw_fields, Mapping):
            identifier = payload.get(ID_FIELD, payload.get("id"))
            if identifier is not None and ID_FIELD not in raw_fields:
                fields[ID_FIELD] = identifier
            source: Mapping[str, Any] = raw_fields
        else:
            source = payload

        for name, value in source.items():
            if name in METADATA_KEYS:
                continue
            fields[str(name)] = _convert_value(value)
        return cls(fields)

    def get(self, name: str, default: Any = MISSING) -> Any:  # type: ignore[override]
        return self._fields.get(name, default)

    def __getitem__(self, name: str) -> Any:
        return self._fields[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"Record({self._fields!r})"

    def flatten(self) -> Mapping[str, Any]:
        """Return the record with parent records expanded into dotted column names."""
        if self._flat is None:
            flat: dict[str, Any] = {}
            _flatten_into(flat, self, "")
            self._flat = flat
        return self._flat

    def resolve(self, column: str) -> Any:
        """Look up a flattened column, returning :data:`MISSING` when absent."""
        return self.flatten().get(column, MISSING)


def normalise_records(raw: Any) -> list[Any]:
    """Return raw row payloads as a list.

    Stores answer single-row queries on binary-bearing objects (documents,
    attachments) with a bare object instead of a one-element list.
    """
    if raw is None:
        return []
    if isinstance(raw, (Mapping, Record)):
        return [raw]
    if isinstance(raw, (str, bytes)):
        raise QueryError("Record payloads must be mappings, not strings.")
    return list(raw)


def to_record_set(raw: Any) -> RecordSet:
    return RecordSet(Record.from_payload(item) for item in normalise_records(raw))


def child_groups(value: Any) -> tuple[RecordSet, ...] | None:
    """Return the child record sets held by a field value, or ``None`` for plain values."""
    if isinstance(value, RecordSet):
        return (value,)
    if isinstance(value, tuple) and value and all(isinstance(item, RecordSet) for item in value):
        return value
    return None


def ordered_union(groups: Iterable[Iterable[str]]) -> tuple[str, ...]:
    """Union of names in first-seen order with duplicates suppressed."""
    seen: dict[str, None] = {}
    for names in groups:
        for name in names:
            seen.setdefault(name, None)
    return tuple(seen)


def build_header_set(records: Iterable[Record]) -> tuple[str, ...]:
    """Columns covering every flattened field across ``records`` in first-seen order."""
    return ordered_union(record.flatten().keys() for record in records)


def _convert_value(value: Any) -> Any:
    if isinstance(value, (Record, RecordSet)):
        return value
    if isinstance(value, Mapping):
        if "records" in value:
            return RecordSet.from_payload(value)
        return Record.from_payload(value)
    if isinstance(value, (list, tuple)):
        if value and all(isinstance(item, Mapping) and "records" in item for item in value):
            groups = tuple(RecordSet.from_payload(item) for item in value)
            return groups[0] if len(groups) == 1 else groups
        if all(isinstance(item, Mapping) for item in value):
            return RecordSet(Record.from_payload(item) for item in value)
        return tuple(value)
    return value


def _flatten_into(target: dict[str, Any], record: Record, prefix: str) -> None:
    for name, value in record.items():
        key = f"{prefix}{name}"
        if isinstance(value, Record):
            _flatten_into(target, value, f"{key}.")
        else:
            target[key] = value
