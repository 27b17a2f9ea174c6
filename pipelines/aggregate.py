"""Group per-source rows into one row per mappable lot."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from pipelines.identifiers import normalize_identifiers, resolve_mappable


logger = logging.getLogger(__name__)

ROW_ORDER = "_row_order"
_HAS_ROOMS = "_has_rooms"
AGGREGATE_COLUMNS = ["mappable_bbl", "rooms", "child_bbls", "child_count"]


def normalize_room_count(value: Any) -> Optional[int]:
    """Null, NaN and zero all mean "not reported"."""
    if value is None or value is pd.NA:
        return None
    try:
        if pd.isna(value):
            return None
        number = int(value)
    except (TypeError, ValueError):
        return None
    if number == 0:
        return None
    return number


def normalize_room_series(series: pd.Series) -> pd.Series:
    return series.map(normalize_room_count).astype("Int64")


def sum_distinct_rooms(values: Iterable[Any]) -> Optional[int]:
    """Sum the distinct non-null room counts of a lot group; None when there are none."""
    distinct = list(dict.fromkeys(v for v in map(normalize_room_count, values) if v is not None))
    if not distinct:
        return None
    return int(sum(distinct))


def _optional_value(value: Any) -> Any:
    if value is None or value is pd.NA:
        return None
    if isinstance(value, str):
        return value or None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def assign_mappable(df: pd.DataFrame, crosswalk: Mapping[str, str], source: str = "") -> pd.DataFrame:
    """
    Parse identifiers and attach ``mappable_bbl``.

    ``_row_order`` records the original row position before malformed rows are
    dropped; it is the tie-break key for every "first encountered" rule.
    """
    working = df.copy()
    working[ROW_ORDER] = range(len(working))
    working = normalize_identifiers(working, "bbl", source)
    working["mappable_bbl"] = [resolve_mappable(bbl, crosswalk) for bbl in working["bbl"].tolist()]
    return working.sort_values(ROW_ORDER, kind="stable").reset_index(drop=True)


def aggregate_lots(
    df: pd.DataFrame,
    crosswalk: Mapping[str, str],
    value_columns: Sequence[str] = ("building_class",),
    room_column: str = "rooms",
    source: str = "assessment",
) -> pd.DataFrame:
    """
    Collapse assessment rows to one row per mappable lot.

    The lot's room count is the sum of the distinct non-null member counts, so
    two condo units both reporting the building-wide 150 rooms yield 150.
    ``value_columns`` come from the first encountered member.
    """
    columns = AGGREGATE_COLUMNS + list(value_columns)
    if df.empty:
        return pd.DataFrame(columns=columns)

    working = assign_mappable(df, crosswalk, source)
    rows: List[Dict[str, Any]] = []
    for mappable_bbl, group in working.groupby("mappable_bbl", sort=False):
        children = list(dict.fromkeys(group["bbl"].tolist()))
        representative = group.iloc[0]
        row: Dict[str, Any] = {
            "mappable_bbl": mappable_bbl,
            "rooms": sum_distinct_rooms(group[room_column].tolist()),
            "child_bbls": children,
            "child_count": len(children),
        }
        for column in value_columns:
            row[column] = _optional_value(representative[column])
        rows.append(row)

    aggregated = pd.DataFrame(rows, columns=columns)
    aggregated["rooms"] = aggregated["rooms"].astype("Int64")
    aggregated = aggregated.sort_values("mappable_bbl").reset_index(drop=True)
    logger.info(
        "Aggregated %s %s rows into %s mappable lots (%s condo groups).",
        len(working),
        source,
        len(aggregated),
        int((aggregated["child_count"] > 1).sum()),
    )
    return aggregated


def _is_text(series: pd.Series) -> bool:
    return not (pd.api.types.is_numeric_dtype(series) or pd.api.types.is_bool_dtype(series))


def collapse_representative(
    df: pd.DataFrame,
    crosswalk: Mapping[str, str],
    value_columns: Sequence[str],
    room_columns: Sequence[str] = ("rooms",),
    source: str = "",
) -> pd.DataFrame:
    """
    One row per mappable lot, every field taken from a single representative row.

    The representative is the first row (by ``_row_order``) reporting a room
    count, or the lot's first row when none does. Fields are never mixed
    across rows, so an external id always travels with its own counts and dates.
    """
    columns = ["mappable_bbl"] + list(value_columns)
    if df.empty:
        return pd.DataFrame(columns=columns)

    working = assign_mappable(df, crosswalk, source)
    rooms = [column for column in value_columns if column in room_columns]
    for column in value_columns:
        if column in rooms:
            working[column] = normalize_room_series(working[column])
        elif _is_text(working[column]):
            working[column] = working[column].map(_optional_value).astype(object)

    working[_HAS_ROOMS] = working[rooms].notna().any(axis=1) if rooms else False
    ordered = working.sort_values(
        ["mappable_bbl", _HAS_ROOMS, ROW_ORDER],
        ascending=[True, False, True],
        kind="stable",
    )
    collapsed = ordered.drop_duplicates("mappable_bbl", keep="first")[columns].reset_index(drop=True)
    duplicates = len(working) - len(collapsed)
    if duplicates:
        logger.info("Collapsed %s %s rows sharing a mappable lot.", duplicates, source or "source")
    return collapsed


def collapse_union(df: pd.DataFrame, crosswalk: Mapping[str, str]) -> pd.DataFrame:
    """A lot is unionized when any of its geocoded addresses is."""
    if df.empty:
        return pd.DataFrame(columns=["mappable_bbl", "union_flag"])
    working = assign_mappable(df, crosswalk, "union")
    working["is_union"] = working["is_union"].fillna(False).astype(bool)
    collapsed = working.groupby("mappable_bbl", sort=True)["is_union"].any()
    return collapsed.rename("union_flag").reset_index()
