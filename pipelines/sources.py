"""CSV adapters for the hotel reconciliation sources.

Every loader returns a DataFrame carrying exactly the columns declared for its
record type in ``hotel_schema``. Identifiers are left raw here; parsing and
crosswalk resolution happen in the pipeline.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

import numpy as np
import pandas as pd

from hotel_schema import (
    ASSESSMENT_COLUMNS,
    CROSSWALK_COLUMNS,
    LOT_COLUMNS,
    MANUAL_COLUMNS,
    SCRAPE_COLUMNS,
    UNION_COLUMNS,
)
from pipelines.errors import MissingRequiredSource


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

TRUE_VALUES = {"1", "true", "t", "yes", "y"}
FALSE_VALUES = {"0", "false", "f", "no", "n"}


def clean_string(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and np.isnan(value):
        return ""
    return " ".join(str(value).split())


def to_int(series: pd.Series) -> pd.Series:
    cleaned = series.astype(str).str.replace(",", "", regex=False).str.strip()
    cleaned = cleaned.replace({"": np.nan})
    coerced = pd.to_numeric(cleaned, errors="coerce").round()
    return coerced.astype("Int64")


def to_float(series: pd.Series) -> pd.Series:
    cleaned = series.astype(str).str.strip().replace({"": np.nan})
    return pd.to_numeric(cleaned, errors="coerce").astype(float)


def to_bool(series: pd.Series) -> pd.Series:
    def parse(value) -> Optional[bool]:
        text = clean_string(value).lower()
        if text in TRUE_VALUES:
            return True
        if text in FALSE_VALUES:
            return False
        return None

    return series.map(parse).astype("boolean")


def to_date(series: pd.Series) -> pd.Series:
    parsed = pd.to_datetime(series.replace({"": None}), errors="coerce")
    return parsed.dt.date.where(parsed.notna(), None)


def empty_frame(columns: Sequence[str]) -> pd.DataFrame:
    return pd.DataFrame({column: pd.Series(dtype=object) for column in columns})


def read_source(
    name: str,
    path: Optional[PathLike],
    required_columns: Iterable[str],
    optional_columns: Iterable[str] = (),
    required: bool = True,
) -> Optional[pd.DataFrame]:
    """
    Read a source CSV as strings.

    Returns None for a missing optional source. A missing required source raises
    MissingRequiredSource; a file lacking required columns raises ValueError.
    """
    source_path = Path(path) if path else None
    if source_path is None or not source_path.exists():
        if required:
            raise MissingRequiredSource(name, path)
        logger.warning("Optional source '%s' not found (%s); continuing without it.", name, path)
        return None

    df = pd.read_csv(source_path, dtype=str, keep_default_na=False)
    df.columns = [column.strip().lower() for column in df.columns]
    missing = [column for column in required_columns if column not in df.columns]
    if missing:
        raise ValueError(f"Source '{name}' ({source_path}) is missing columns: {', '.join(missing)}")
    for column in optional_columns:
        if column not in df.columns:
            df[column] = ""
    logger.info("Read %s rows from %s source %s.", len(df), name, source_path)
    return df


def load_assessment(path: Optional[PathLike], report_year: int, class_prefix: str = "H") -> pd.DataFrame:
    """Assessment (NOPV) rows for one report year and one building-class family."""
    df = read_source("assessment", path, ASSESSMENT_COLUMNS)
    working = pd.DataFrame(
        {
            "bbl": df["bbl"].map(clean_string),
            "report_year": to_int(df["report_year"]),
            "building_class": df["building_class"].map(clean_string).str.upper(),
            "rooms": to_int(df["rooms"]),
        }
    )
    prefix = (class_prefix or "").upper()
    mask = working["report_year"] == int(report_year)
    if prefix:
        mask &= working["building_class"].str.startswith(prefix)
    filtered = working[mask.fillna(False)].reset_index(drop=True)
    logger.info(
        "Assessment %s: kept %s of %s rows with class prefix '%s'.",
        report_year,
        len(filtered),
        len(working),
        prefix,
    )
    return filtered[ASSESSMENT_COLUMNS]


def load_crosswalk_table(path: Optional[PathLike]) -> pd.DataFrame:
    df = read_source("crosswalk", path, CROSSWALK_COLUMNS)
    return pd.DataFrame(
        {
            "report_year": to_int(df["report_year"]),
            "unit_bbl": df["unit_bbl"].map(clean_string),
            "parent_bbl": df["parent_bbl"].map(clean_string),
        }
    )[CROSSWALK_COLUMNS]


def load_scrape(path: Optional[PathLike]) -> pd.DataFrame:
    df = read_source(
        "scrape",
        path,
        ["bbl", "source_hotel_id", "rooms"],
        optional_columns=["closed_from", "closed_to"],
        required=False,
    )
    if df is None:
        return empty_frame(SCRAPE_COLUMNS)
    return pd.DataFrame(
        {
            "bbl": df["bbl"].map(clean_string),
            "source_hotel_id": df["source_hotel_id"].map(clean_string),
            "rooms": to_int(df["rooms"]),
            "closed_from": to_date(df["closed_from"]),
            "closed_to": to_date(df["closed_to"]),
        }
    )[SCRAPE_COLUMNS]


def load_manual(path: Optional[PathLike]) -> pd.DataFrame:
    df = read_source(
        "manual",
        path,
        ["bbl", "include", "rooms"],
        optional_columns=["source_note"],
        required=False,
    )
    if df is None:
        return empty_frame(MANUAL_COLUMNS)
    return pd.DataFrame(
        {
            "bbl": df["bbl"].map(clean_string),
            "include": to_bool(df["include"]),
            "rooms": to_int(df["rooms"]),
            "source_note": df["source_note"].map(clean_string),
        }
    )[MANUAL_COLUMNS]


def load_union(path: Optional[PathLike]) -> pd.DataFrame:
    """Geocoded union directory. Rows the geocoder could not resolve carry no BBL and are dropped."""
    df = read_source("union", path, UNION_COLUMNS, required=False)
    if df is None:
        return empty_frame(UNION_COLUMNS)
    working = pd.DataFrame(
        {
            "bbl": df["bbl"].map(clean_string),
            "is_union": to_bool(df["is_union"]).fillna(False).astype(bool),
        }
    )
    resolved = working[working["bbl"] != ""].reset_index(drop=True)
    if len(resolved) < len(working):
        logger.info("Union directory: skipped %s rows without a geocoded BBL.", len(working) - len(resolved))
    return resolved[UNION_COLUMNS]


def load_lots(path: Optional[PathLike]) -> pd.DataFrame:
    """Lot attributes (zoning, community district, year built, coordinates)."""
    df = read_source(
        "lots",
        path,
        ["bbl", "zonedist1", "community_district", "year_built"],
        optional_columns=["address", "latitude", "longitude"],
    )
    return pd.DataFrame(
        {
            "bbl": df["bbl"].map(clean_string),
            "zonedist1": df["zonedist1"].map(clean_string).str.upper(),
            "community_district": to_int(df["community_district"]),
            "year_built": to_int(df["year_built"]),
            "address": df["address"].map(clean_string),
            "latitude": to_float(df["latitude"]),
            "longitude": to_float(df["longitude"]),
        }
    )[LOT_COLUMNS]
