"""Write the reconciled hotel set as a run snapshot (Parquet, CSV, summary JSON)."""

from __future__ import annotations

import json
import logging
import shutil
from datetime import date
from pathlib import Path
from typing import Any, Dict

import numpy as np
import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from hotel_schema import CANONICAL_COLUMNS, sanitize_csv_value


logger = logging.getLogger(__name__)

HOTELS_SCHEMA = pa.schema(
    [
        ("mappable_bbl", pa.string()),
        ("child_bbls", pa.string()),
        ("child_count", pa.int32()),
        ("building_class", pa.string()),
        ("rooms_current", pa.int32()),
        ("rooms_prior", pa.int32()),
        ("rooms_scrape", pa.int32()),
        ("rooms_manual", pa.int32()),
        ("final_rooms", pa.int32()),
        ("final_rooms_source", pa.string()),
        ("is_union", pa.bool_()),
        ("include", pa.bool_()),
        ("category_name", pa.string()),
        ("zoning_category", pa.string()),
        ("is_eligible", pa.bool_()),
        ("zonedist1", pa.string()),
        ("community_district", pa.int32()),
        ("year_built", pa.int32()),
        ("address", pa.string()),
        ("latitude", pa.float64()),
        ("longitude", pa.float64()),
        ("source_hotel_id", pa.string()),
        ("closed_from", pa.date32()),
        ("closed_to", pa.date32()),
        ("manual_note", pa.string()),
        ("overrides_applied", pa.string()),
    ]
)

STRING_COLUMNS = [
    field.name for field in HOTELS_SCHEMA if field.type == pa.string()
]


def to_python(value: Any) -> Any:
    if isinstance(value, (np.integer,)):
        return int(value)
    if isinstance(value, (np.floating,)):
        if np.isnan(value):
            return None
        return float(value)
    if isinstance(value, np.bool_):
        return bool(value)
    if value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, float) and np.isnan(value):
        return None
    return value


def _as_date(value: Any) -> Any:
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def _as_text(value: Any) -> Any:
    value = to_python(value)
    if value is None:
        return None
    return str(value)


def prepare_for_arrow(frame: pd.DataFrame) -> pd.DataFrame:
    working = frame.reindex(columns=CANONICAL_COLUMNS).copy()
    for column in ("closed_from", "closed_to"):
        working[column] = working[column].map(_as_date).astype(object)
    for column in STRING_COLUMNS:
        working[column] = working[column].map(_as_text).astype(object)
    return working


def write_parquet(df: pd.DataFrame, path: Path) -> None:
    try:
        table = pa.Table.from_pandas(prepare_for_arrow(df), schema=HOTELS_SCHEMA, preserve_index=False)
        pq.write_table(table, path, compression="snappy")
    except Exception as exc:  # pylint: disable=broad-except
        raise RuntimeError(
            f"Failed to write parquet file {path}: {exc}\n"
            "Ensure that a compatible pyarrow installation is available."
        ) from exc


def write_csv(df: pd.DataFrame, path: Path) -> None:
    working = df.reindex(columns=CANONICAL_COLUMNS).copy()
    for column in ("address", "manual_note"):
        working[column] = working[column].map(lambda value: sanitize_csv_value(to_python(value)))
    working.to_csv(path, index=False)


def build_summary(df: pd.DataFrame, run_date: str) -> Dict[str, Any]:
    rooms = pd.to_numeric(df["final_rooms"], errors="coerce") if not df.empty else pd.Series(dtype=float)
    return {
        "run_date": run_date,
        "total_hotels": int(df.shape[0]),
        "total_rooms": int(rooms.sum()) if not rooms.dropna().empty else 0,
        "hotels_missing_rooms": int(rooms.isna().sum()),
        "union_hotels": int(df["is_union"].sum()) if not df.empty else 0,
        "eligible_hotels": int(df["is_eligible"].sum()) if not df.empty else 0,
        "by_category": {str(k): int(v) for k, v in df["category_name"].value_counts().items()} if not df.empty else {},
        "by_zoning": (
            {str(k): int(v) for k, v in df["zoning_category"].fillna("Undefined").value_counts().items()}
            if not df.empty
            else {}
        ),
        "by_room_source": (
            {str(k): int(v) for k, v in df["final_rooms_source"].fillna("none").value_counts().items()}
            if not df.empty
            else {}
        ),
    }


def _replace_directory(staging: Path, target: Path) -> None:
    if target.exists():
        shutil.rmtree(target)
    staging.rename(target)


def write_outputs(df: pd.DataFrame, out_dir: Path, run_date: str) -> Dict[str, Any]:
    """
    Write ``run=<run_date>/`` and refresh ``latest/``.

    Everything is written into hidden staging directories first and moved into
    place only once every file exists, so a failed run leaves no partial snapshot.
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    run_dir = out_dir / f"run={run_date}"
    latest_dir = out_dir / "latest"
    run_staging = out_dir / f".run={run_date}.tmp"
    latest_staging = out_dir / ".latest.tmp"
    for staging in (run_staging, latest_staging):
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True)

    summary = build_summary(df, run_date)
    try:
        write_parquet(df, run_staging / "hotels.parquet")
        write_csv(df, run_staging / "hotels.csv")
        with open(run_staging / "summary.json", "w", encoding="utf-8") as summary_file:
            json.dump(summary, summary_file, ensure_ascii=False, indent=2)
        shutil.copyfile(run_staging / "hotels.parquet", latest_staging / "hotels.parquet")
    except Exception:
        shutil.rmtree(run_staging, ignore_errors=True)
        shutil.rmtree(latest_staging, ignore_errors=True)
        raise

    _replace_directory(run_staging, run_dir)
    _replace_directory(latest_staging, latest_dir)
    logger.info("Wrote %s hotels to %s.", summary["total_hotels"], run_dir)
    return summary
