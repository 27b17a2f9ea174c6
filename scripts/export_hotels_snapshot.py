#!/usr/bin/env python3
"""
Export hotels from the latest reconciled parquet snapshot as JSON.

Consumers can restrict the result set by borough, category or eligibility,
or limit the number of returned records.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Sequence

import numpy as np
import pandas as pd

DEFAULT_CANDIDATES: Iterable[Path] = (
    Path("hotel_runs/latest/hotels.parquet"),
)

BOROUGH_CODES = {
    "manhattan": "1",
    "bronx": "2",
    "brooklyn": "3",
    "queens": "4",
    "staten island": "5",
}


def resolve_parquet_path(explicit: Optional[str]) -> Path:
    """Return the parquet path to use, preferring an explicit input."""

    if explicit:
        candidate = Path(explicit).expanduser().resolve()
        if not candidate.exists():
            raise FileNotFoundError(f"Parquet file not found: {candidate}")
        return candidate

    for candidate in DEFAULT_CANDIDATES:
        if candidate.exists():
            return candidate.resolve()
    raise FileNotFoundError(
        "No hotel parquet snapshot found. Looked for: "
        + ", ".join(str(path) for path in DEFAULT_CANDIDATES)
    )


def _to_serialisable(value: Any) -> Any:
    if value is None or value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, float) and (value != value):  # NaN check
        return None
    if isinstance(value, np.generic):
        return _to_serialisable(value.item())
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def filter_hotels(
    df: pd.DataFrame,
    borough: Optional[str] = None,
    category: Optional[str] = None,
    eligible_only: bool = False,
) -> pd.DataFrame:
    borough_key = (borough or "").strip().lower()
    if borough_key and borough_key not in {"all", "*"}:
        code = BOROUGH_CODES.get(borough_key, borough_key)
        df = df[df["mappable_bbl"].astype(str).str[0] == code]

    category_key = (category or "").strip().lower()
    if category_key and category_key not in {"all", "*"}:
        df = df[df["category_name"].fillna("").str.lower() == category_key]

    if eligible_only:
        df = df[df["is_eligible"].fillna(False).astype(bool)]
    return df


def build_payload(df: pd.DataFrame, parquet_path: Path, limit: Optional[int] = None) -> Dict[str, Any]:
    total_rows = int(df.shape[0])
    if limit is not None and limit > 0:
        df = df.head(limit)

    records = [
        {key: _to_serialisable(value) for key, value in row.items()}
        for row in df.to_dict(orient="records")
    ]
    return {
        "data": records,
        "meta": {
            "total_rows": total_rows,
            "returned_rows": int(df.shape[0]),
            "parquet_path": str(parquet_path),
        },
    }


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Export reconciled hotels parquet to JSON.")
    parser.add_argument("--parquet-path", help="Custom parquet path (defaults to latest snapshot).")
    parser.add_argument("--limit", type=int, help="Limit number of returned rows.")
    parser.add_argument("--borough", help="Borough name or code (1-5). Use 'all' or omit for every borough.")
    parser.add_argument("--category", help="Category name filter (case-insensitive), e.g. 'Boutique Hotel'.")
    parser.add_argument("--eligible-only", action="store_true", help="Only export eligible hotels.")
    args = parser.parse_args(argv)

    parquet_path = resolve_parquet_path(args.parquet_path)
    df = pd.read_parquet(parquet_path)
    df = filter_hotels(df, borough=args.borough, category=args.category, eligible_only=args.eligible_only)
    print(json.dumps(build_payload(df, parquet_path, args.limit), ensure_ascii=False))


if __name__ == "__main__":
    main()
