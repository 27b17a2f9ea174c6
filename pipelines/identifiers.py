"""BBL canonicalization and condo crosswalk resolution."""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from pipelines.errors import IdentifierParseError, LookupAmbiguous


logger = logging.getLogger(__name__)

BOROUGHS = range(1, 6)
MAX_BLOCK = 99_999
MAX_LOT = 9_999

_COMPONENT_SEPARATORS = re.compile(r"[-/\s]+")


def clean_whitespace(value: str) -> str:
    return re.sub(r"\s+", " ", value.strip())


def _component(value: Any, name: str, raw: Any) -> int:
    text = re.sub(r"\.0+$", "", str(value).strip())
    if not text.isdigit():
        raise IdentifierParseError(raw, f"{name} is not numeric")
    return int(text)


def bbl_from_parts(borough: Any, block: Any, lot: Any) -> str:
    """Build a 10-digit BBL from its borough, block and lot components."""
    raw = (borough, block, lot)
    borough_num = _component(borough, "borough", raw)
    block_num = _component(block, "block", raw)
    lot_num = _component(lot, "lot", raw)
    if borough_num not in BOROUGHS:
        raise IdentifierParseError(raw, f"borough {borough_num} outside 1-5")
    if not 0 < block_num <= MAX_BLOCK:
        raise IdentifierParseError(raw, f"block {block_num} out of range")
    if not 0 < lot_num <= MAX_LOT:
        raise IdentifierParseError(raw, f"lot {lot_num} out of range")
    return f"{borough_num}{block_num:05d}{lot_num:04d}"


def parse_bbl(value: Any) -> str:
    """
    Canonicalize a raw BBL to the 10-digit string form.

    Accepts integers, integral floats (``1000470001.0`` as read back from CSV),
    digit strings and component forms such as ``1-00047-0001`` or ``1/47/1``.
    Raises IdentifierParseError for anything else.
    """
    if value is None or value is pd.NA:
        raise IdentifierParseError(value, "empty")
    if isinstance(value, bool):
        raise IdentifierParseError(value, "boolean is not an identifier")
    if isinstance(value, (int, np.integer)):
        text = str(int(value))
    elif isinstance(value, (float, np.floating)):
        if math.isnan(value) or not float(value).is_integer():
            raise IdentifierParseError(value, "not an integral number")
        text = str(int(value))
    else:
        text = clean_whitespace(str(value))
    if not text:
        raise IdentifierParseError(value, "empty")

    parts = [part for part in _COMPONENT_SEPARATORS.split(text) if part]
    if len(parts) == 3:
        borough, block, lot = parts
        try:
            return bbl_from_parts(borough, block, lot)
        except IdentifierParseError as exc:
            raise IdentifierParseError(value, exc.reason) from exc
    if len(parts) != 1:
        raise IdentifierParseError(value, "unexpected component count")

    digits = re.sub(r"\.0+$", "", text)
    if not digits.isdigit():
        raise IdentifierParseError(value, "contains non-digit characters")
    if len(digits) != 10:
        raise IdentifierParseError(value, f"expected 10 digits, got {len(digits)}")
    try:
        return bbl_from_parts(digits[0], digits[1:6], digits[6:])
    except IdentifierParseError as exc:
        raise IdentifierParseError(value, exc.reason) from exc


def try_parse_bbl(value: Any, source: str = "") -> Optional[str]:
    try:
        return parse_bbl(value)
    except IdentifierParseError as exc:
        logger.warning("Dropping %s row: %s", source or "source", exc)
        return None


def normalize_identifiers(df: pd.DataFrame, column: str = "bbl", source: str = "") -> pd.DataFrame:
    """Parse ``column`` in place on a copy, dropping rows whose identifier is malformed."""
    if df.empty:
        return df.copy()
    working = df.copy()
    working[column] = [try_parse_bbl(value, source) for value in working[column].tolist()]
    dropped = int(working[column].isna().sum())
    if dropped:
        logger.warning("Dropped %s %s rows with malformed BBLs.", dropped, source or "source")
    return working[working[column].notna()].reset_index(drop=True)


def build_crosswalk(df: pd.DataFrame, report_year: Optional[int] = None) -> Dict[str, str]:
    """
    Build the unit -> parent mapping for one report year.

    Identical duplicate rows are tolerated. A unit mapping to more than one
    distinct parent raises LookupAmbiguous.
    """
    if df.empty:
        return {}
    working = df
    if report_year is not None:
        years = pd.to_numeric(working["report_year"], errors="coerce")
        working = working[years == int(report_year)]

    parents_by_unit: Dict[str, List[str]] = {}
    for row in working.itertuples(index=False):
        unit = try_parse_bbl(getattr(row, "unit_bbl"), "crosswalk")
        parent = try_parse_bbl(getattr(row, "parent_bbl"), "crosswalk")
        if unit is None or parent is None:
            continue
        parents = parents_by_unit.setdefault(unit, [])
        if parent not in parents:
            parents.append(parent)

    for unit in sorted(parents_by_unit):
        parents = parents_by_unit[unit]
        if len(parents) > 1:
            raise LookupAmbiguous(unit, parents, report_year)

    crosswalk = {unit: parents[0] for unit, parents in parents_by_unit.items()}
    logger.info(
        "Loaded condo crosswalk%s with %s units.",
        f" for {report_year}" if report_year is not None else "",
        len(crosswalk),
    )
    return crosswalk


def resolve_mappable(bbl: str, crosswalk: Mapping[str, str]) -> str:
    """Return the parent lot for a condo unit, or the BBL itself. One hop only."""
    return crosswalk.get(bbl, bbl)
