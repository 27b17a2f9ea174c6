"""Terminal filter producing the deliverable hotel set."""

from __future__ import annotations

import logging

import pandas as pd

from pipelines.classify import HOTEL_CATEGORIES


logger = logging.getLogger(__name__)

# Private clubs, apartment hotels (rental and co-op) and dormitories are not hotels for this dataset.
EXCLUDED_CATEGORIES = frozenset(HOTEL_CATEGORIES[code] for code in ("H5", "H6", "H7", "H8"))


def filter_records(frame: pd.DataFrame) -> pd.DataFrame:
    """Drop excluded categories, manually excluded lots and lots without coordinates."""
    if frame.empty:
        return frame.copy()

    excluded_category = frame["category_name"].isin(EXCLUDED_CATEGORIES)
    excluded_manually = ~frame["include"].fillna(True).astype(bool)
    missing_coords = frame["latitude"].isna() | frame["longitude"].isna()

    logger.info(
        "Inclusion filter: %s excluded category, %s manually excluded, %s without coordinates.",
        int(excluded_category.sum()),
        int(excluded_manually.sum()),
        int(missing_coords.sum()),
    )
    if missing_coords.any():
        logger.warning(
            "Lots dropped for missing coordinates: %s",
            ", ".join(frame.loc[missing_coords, "mappable_bbl"].astype(str).tolist()),
        )

    keep = ~(excluded_category | excluded_manually | missing_coords)
    result = frame[keep].sort_values("mappable_bbl").reset_index(drop=True)
    logger.info("Inclusion filter kept %s of %s lots.", len(result), len(frame))
    return result
