"""Field fusion: ordered per-field coalescing followed by the literal override pass."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from pipelines.aggregate import normalize_room_count
from pipelines.errors import IdentifierParseError, MissingRequiredSource, OverrideKeyNotFound
from pipelines.identifiers import parse_bbl


logger = logging.getLogger(__name__)

KEY_COLUMNS = {
    "bbl": "mappable_bbl",
    "source_hotel_id": "source_hotel_id",
}

# field -> accepted literal types; final_rooms and building_class also accept null
OVERRIDABLE_FIELDS: Dict[str, Tuple[type, ...]] = {
    "final_rooms": (int,),
    "building_class": (str,),
    "is_union": (bool,),
    "include": (bool,),
    "latitude": (int, float),
    "longitude": (int, float),
}

OVERRIDE_SOURCE = "override"


def _optional_value(value: Any) -> Any:
    if value is None or value is pd.NA:
        return None
    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed or None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def _optional_bool(value: Any) -> Optional[bool]:
    value = _optional_value(value)
    if value is None:
        return None
    return bool(value)


@dataclass(frozen=True)
class FieldStrategy:
    """Resolve ``target`` as the first non-null value among ``candidates``, in order."""

    target: str
    candidates: Tuple[str, ...]
    default: Any = None
    normalize: Callable[[Any], Any] = _optional_value
    provenance_column: Optional[str] = None

    def resolve(self, record: Mapping[str, Any]) -> Tuple[Any, Optional[str]]:
        for candidate in self.candidates:
            value = self.normalize(record.get(candidate))
            if value is not None:
                return value, candidate
        return self.default, None


ROOM_STRATEGY = FieldStrategy(
    target="final_rooms",
    candidates=("rooms_current", "rooms_prior", "rooms_scrape", "rooms_manual"),
    normalize=normalize_room_count,
    provenance_column="final_rooms_source",
)
BUILDING_CLASS_STRATEGY = FieldStrategy(
    target="building_class",
    candidates=("building_class_current", "building_class_prior"),
)
UNION_STRATEGY = FieldStrategy(
    target="is_union",
    candidates=("union_flag",),
    default=False,
    normalize=_optional_bool,
)
INCLUDE_STRATEGY = FieldStrategy(
    target="include",
    candidates=("manual_include",),
    default=True,
    normalize=_optional_bool,
)

DEFAULT_STRATEGIES: Tuple[FieldStrategy, ...] = (
    ROOM_STRATEGY,
    BUILDING_CLASS_STRATEGY,
    UNION_STRATEGY,
    INCLUDE_STRATEGY,
)


def fuse_record(record: Dict[str, Any], strategies: Sequence[FieldStrategy] = DEFAULT_STRATEGIES) -> Dict[str, Any]:
    fused = dict(record)
    for strategy in strategies:
        value, winner = strategy.resolve(record)
        fused[strategy.target] = value
        if strategy.provenance_column:
            fused[strategy.provenance_column] = winner
    return fused


def fuse_records(frame: pd.DataFrame, strategies: Sequence[FieldStrategy] = DEFAULT_STRATEGIES) -> pd.DataFrame:
    targets = [strategy.target for strategy in strategies]
    provenance = [strategy.provenance_column for strategy in strategies if strategy.provenance_column]
    if frame.empty:
        extra = [column for column in targets + provenance if column not in frame.columns]
        return frame.reindex(columns=list(frame.columns) + extra)

    fused = pd.DataFrame([fuse_record(record, strategies) for record in frame.to_dict("records")])
    if "final_rooms" in fused.columns:
        fused["final_rooms"] = pd.to_numeric(fused["final_rooms"], errors="coerce").astype("Int64")
    for column in ("is_union", "include"):
        if column in fused.columns:
            fused[column] = fused[column].astype(bool)
    if "final_rooms_source" in fused.columns:
        logger.info(
            "Room count resolved from: %s",
            fused["final_rooms_source"].fillna("none").value_counts().to_dict(),
        )
    return fused


@dataclass(frozen=True)
class OverrideEntry:
    key_type: str
    key: str
    fields: Dict[str, Any]
    reason: str = ""

    @property
    def label(self) -> str:
        return f"{self.key_type}:{self.key}"


@dataclass(frozen=True)
class OverrideTable:
    version: str
    entries: Tuple[OverrideEntry, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.entries)


def _validate_value(field_name: str, value: Any, position: int) -> Any:
    accepted = OVERRIDABLE_FIELDS[field_name]
    if value is None and field_name in ("final_rooms", "building_class"):
        return None
    # bool is an int subclass; only the flag fields may carry booleans
    if isinstance(value, bool) and bool not in accepted:
        raise ValueError(f"Override #{position}: field '{field_name}' does not accept a boolean")
    if not isinstance(value, accepted):
        names = ", ".join(kind.__name__ for kind in accepted)
        raise ValueError(f"Override #{position}: field '{field_name}' expects {names}, got {value!r}")
    if field_name in ("latitude", "longitude"):
        return float(value)
    return value


def parse_overrides(payload: Mapping[str, Any]) -> OverrideTable:
    """Validate an override document already decoded from JSON."""
    if not isinstance(payload, Mapping):
        raise ValueError("Override document must be a JSON object")
    version = str(payload.get("version") or "").strip()
    if not version:
        raise ValueError("Override document has no version")
    raw_entries = payload.get("overrides", [])
    if not isinstance(raw_entries, list):
        raise ValueError("'overrides' must be a list")

    entries: List[OverrideEntry] = []
    for position, raw in enumerate(raw_entries):
        if not isinstance(raw, Mapping):
            raise ValueError(f"Override #{position} must be an object")
        key_type = str(raw.get("key_type", "")).strip()
        if key_type not in KEY_COLUMNS:
            raise ValueError(f"Override #{position}: unknown key_type {key_type!r}")
        key = str(raw.get("key", "")).strip()
        if not key:
            raise ValueError(f"Override #{position}: empty key")
        if key_type == "bbl":
            try:
                key = parse_bbl(key)
            except IdentifierParseError as exc:
                raise ValueError(f"Override #{position}: {exc}") from exc
        raw_fields = raw.get("fields")
        if not isinstance(raw_fields, Mapping) or not raw_fields:
            raise ValueError(f"Override #{position}: 'fields' must be a non-empty object")
        unknown = sorted(set(raw_fields) - set(OVERRIDABLE_FIELDS))
        if unknown:
            raise ValueError(f"Override #{position}: fields not overridable: {', '.join(unknown)}")
        fields_ = {name: _validate_value(name, value, position) for name, value in raw_fields.items()}
        entries.append(OverrideEntry(key_type, key, fields_, str(raw.get("reason", ""))))

    return OverrideTable(version=version, entries=tuple(entries))


def load_overrides(path: Optional[Union[str, Path]]) -> OverrideTable:
    """Load the override table once per run. No path means no overrides; a named but missing file is fatal."""
    if not path:
        return OverrideTable(version="none")
    if not Path(path).exists():
        raise MissingRequiredSource("overrides", path)
    with open(path, "r", encoding="utf-8") as handle:
        payload = json.load(handle)
    table = parse_overrides(payload)
    logger.info("Loaded %s overrides (version %s) from %s.", len(table), table.version, path)
    return table


def _match(frame: pd.DataFrame, entry: OverrideEntry) -> pd.Series:
    column = KEY_COLUMNS[entry.key_type]
    if column not in frame.columns:
        raise OverrideKeyNotFound(entry.key_type, entry.key)
    mask = frame[column].astype(object) == entry.key
    if not mask.any():
        raise OverrideKeyNotFound(entry.key_type, entry.key)
    return mask


def apply_overrides(frame: pd.DataFrame, table: OverrideTable) -> pd.DataFrame:
    """
    Write every override's literal values onto the matching records.

    Runs after all coalescing so an override wins over any source value.
    Entries are applied in document order; a stale key is logged and skipped.
    """
    working = frame.copy()
    if "overrides_applied" not in working.columns:
        working["overrides_applied"] = ""
    working["overrides_applied"] = working["overrides_applied"].fillna("").astype(str)

    applied_entries = 0
    applied_records = 0
    for entry in table.entries:
        try:
            mask = _match(working, entry)
        except OverrideKeyNotFound as exc:
            logger.warning("Skipping stale override (version %s): %s", table.version, exc)
            continue
        for field_name, value in entry.fields.items():
            if field_name not in working.columns:
                working[field_name] = None
            working.loc[mask, field_name] = value
            if field_name == "final_rooms":
                working.loc[mask, "final_rooms_source"] = OVERRIDE_SOURCE
        working.loc[mask, "overrides_applied"] = working.loc[mask, "overrides_applied"].map(
            lambda previous: ";".join(filter(None, [previous, entry.label]))
        )
        applied_entries += 1
        applied_records += int(mask.sum())

    if table.entries:
        logger.info(
            "Applied %s of %s override entries to %s records.", applied_entries, len(table), applied_records
        )
    return working


def resolve_fields(
    frame: pd.DataFrame,
    table: OverrideTable,
    strategies: Sequence[FieldStrategy] = DEFAULT_STRATEGIES,
) -> pd.DataFrame:
    """Coalesce every target field, then apply the override table."""
    return apply_overrides(fuse_records(frame, strategies), table)
