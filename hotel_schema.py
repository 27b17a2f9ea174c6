from dataclasses import dataclass, fields
from datetime import date
from typing import List, Optional
import re


@dataclass
class AssessmentRecord:
    bbl: str
    report_year: int
    building_class: str
    rooms: Optional[int]


@dataclass
class CrosswalkRecord:
    report_year: int
    unit_bbl: str
    parent_bbl: str


@dataclass
class ScrapeRecord:
    bbl: str
    source_hotel_id: str
    rooms: Optional[int]
    closed_from: Optional[date]
    closed_to: Optional[date]


@dataclass
class ManualRecord:
    bbl: str
    include: Optional[bool]
    rooms: Optional[int]
    source_note: str


@dataclass
class UnionRecord:
    bbl: str
    is_union: bool


@dataclass
class LotAttributes:
    bbl: str
    zonedist1: str
    community_district: Optional[int]
    year_built: Optional[int]
    address: str
    latitude: Optional[float]
    longitude: Optional[float]


@dataclass
class CanonicalHotelRecord:
    mappable_bbl: str
    child_bbls: str
    child_count: int
    building_class: Optional[str]
    rooms_current: Optional[int]
    rooms_prior: Optional[int]
    rooms_scrape: Optional[int]
    rooms_manual: Optional[int]
    final_rooms: Optional[int]
    final_rooms_source: Optional[str]
    is_union: bool
    include: bool
    category_name: str
    zoning_category: Optional[str]
    is_eligible: bool
    zonedist1: Optional[str]
    community_district: Optional[int]
    year_built: Optional[int]
    address: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    source_hotel_id: Optional[str]
    closed_from: Optional[date]
    closed_to: Optional[date]
    manual_note: Optional[str]
    overrides_applied: str


def column_names(record_type) -> List[str]:
    return [field.name for field in fields(record_type)]


ASSESSMENT_COLUMNS = column_names(AssessmentRecord)
CROSSWALK_COLUMNS = column_names(CrosswalkRecord)
SCRAPE_COLUMNS = column_names(ScrapeRecord)
MANUAL_COLUMNS = column_names(ManualRecord)
UNION_COLUMNS = column_names(UnionRecord)
LOT_COLUMNS = column_names(LotAttributes)
CANONICAL_COLUMNS = column_names(CanonicalHotelRecord)

CHILD_BBL_SEPARATOR = ";"


def sanitize_csv_value(value) -> str:
    if isinstance(value, str):
        cleaned = value.replace("\r\n", " ").replace("\r", " ").replace("\n", " ")
        cleaned = re.sub(r"[ \t]{2,}", " ", cleaned)
        return cleaned.strip()
    if value is None:
        return ""
    return str(value)
