"""Category, zoning and eligibility labels derived from fused lot fields."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import pandas as pd


logger = logging.getLogger(__name__)

HOTEL_CATEGORIES = {
    "H1": "Luxury Hotel",
    "H2": "Full Service Hotel",
    "H3": "Limited Service Hotel",
    "H4": "Motel",
    "H5": "Private Club",
    "H6": "Apartment Hotel",
    "H7": "Apartment Hotel - Cooperatively Owned",
    "H8": "Dormitory",
    "HB": "Boutique Hotel",
    "HH": "Hostel",
    "HR": "SRO Hotel",
    "HS": "Extended Stay Hotel",
    "RH": "Hotel Portion of Mixed-Use Building",
}
DEFAULT_CATEGORY = "Miscellaneous Hotel"

COMMERCIAL = "Commercial"
RESIDENTIAL = "Residential"
MANUFACTURING = "Manufacturing"

ZONING_PREFIXES = {
    "C": COMMERCIAL,
    "R": RESIDENTIAL,
    "M": MANUFACTURING,
}
# Battery Park City carries no C/R/M prefix but is treated as commercial.
SPECIAL_DISTRICT_ZONING = {
    "BPC": COMMERCIAL,
}
ELIGIBLE_ZONING = {RESIDENTIAL, COMMERCIAL}

# Manhattan community districts 1-6
DEFAULT_ELIGIBLE_DISTRICTS = frozenset({101, 102, 103, 104, 105, 106})
DEFAULT_YEAR_THRESHOLD = 1977


def _clean_code(value: Any) -> str:
    if value is None or value is pd.NA:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    return str(value).strip().upper()


def category_name(building_class: Any) -> str:
    return HOTEL_CATEGORIES.get(_clean_code(building_class), DEFAULT_CATEGORY)


def zoning_category(zonedist: Any) -> Optional[str]:
    code = _clean_code(zonedist)
    if not code:
        return None
    if code in SPECIAL_DISTRICT_ZONING:
        return SPECIAL_DISTRICT_ZONING[code]
    return ZONING_PREFIXES.get(code[0])


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value is pd.NA:
        return None
    try:
        if pd.isna(value):
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_year_built(value: Any) -> Optional[int]:
    """A year built of 0 is the assessor's "unknown", not an ancient building."""
    year = _optional_int(value)
    if not year:
        return None
    return year


def is_eligible(
    zoning: Optional[str],
    community_district: Any,
    year_built: Any,
    eligible_districts: Iterable[int] = DEFAULT_ELIGIBLE_DISTRICTS,
    year_threshold: int = DEFAULT_YEAR_THRESHOLD,
) -> bool:
    if zoning not in ELIGIBLE_ZONING:
        return False
    district = _optional_int(community_district)
    if district is None or district not in set(eligible_districts):
        return False
    year = normalize_year_built(year_built)
    if year is None:
        return False
    return year < year_threshold


def classify_records(
    frame: pd.DataFrame,
    eligible_districts: Iterable[int] = DEFAULT_ELIGIBLE_DISTRICTS,
    year_threshold: int = DEFAULT_YEAR_THRESHOLD,
) -> pd.DataFrame:
    working = frame.copy()
    districts = frozenset(int(district) for district in eligible_districts)
    if working.empty:
        for column in ("category_name", "zoning_category", "is_eligible"):
            working[column] = pd.Series(dtype=object)
        return working

    working["category_name"] = working["building_class"].map(category_name)
    working["zoning_category"] = working["zonedist1"].map(zoning_category)
    working["year_built"] = working["year_built"].map(normalize_year_built).astype("Int64")
    working["is_eligible"] = [
        is_eligible(zoning, district, year, districts, year_threshold)
        for zoning, district, year in zip(
            working["zoning_category"], working["community_district"], working["year_built"]
        )
    ]
    logger.info(
        "Classified %s lots: %s eligible, categories %s.",
        len(working),
        int(working["is_eligible"].sum()),
        working["category_name"].value_counts().to_dict(),
    )
    return working
