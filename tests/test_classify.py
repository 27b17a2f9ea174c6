from __future__ import annotations

import pandas as pd
import pytest

from pipelines.classify import (
    DEFAULT_CATEGORY,
    category_name,
    classify_records,
    is_eligible,
    normalize_year_built,
    zoning_category,
)


@pytest.mark.parametrize(
    "code, expected",
    [
        ("H1", "Luxury Hotel"),
        ("hb", "Boutique Hotel"),
        (" RH ", "Hotel Portion of Mixed-Use Building"),
        ("H9", DEFAULT_CATEGORY),
        (None, DEFAULT_CATEGORY),
        (float("nan"), DEFAULT_CATEGORY),
    ],
)
def test_category_name(code, expected) -> None:
    assert category_name(code) == expected


@pytest.mark.parametrize(
    "zonedist, expected",
    [
        ("C6-4", "Commercial"),
        ("R8", "Residential"),
        ("m1-6", "Manufacturing"),
        ("BPC", "Commercial"),
        ("PARK", None),
        ("", None),
        (None, None),
    ],
)
def test_zoning_category(zonedist, expected) -> None:
    assert zoning_category(zonedist) == expected


def test_year_built_zero_is_unknown() -> None:
    assert normalize_year_built(0) is None
    assert normalize_year_built(pd.NA) is None
    assert normalize_year_built(1920) == 1920


@pytest.mark.parametrize(
    "zoning, district, year, expected",
    [
        ("Commercial", 105, 1920, True),
        ("Residential", 101, 1976, True),
        ("Commercial", 105, 1977, False),
        ("Commercial", 105, 0, False),
        ("Commercial", 105, None, False),
        ("Commercial", 107, 1920, False),
        ("Commercial", None, 1920, False),
        ("Manufacturing", 105, 1920, False),
        (None, 105, 1920, False),
    ],
)
def test_is_eligible(zoning, district, year, expected) -> None:
    assert is_eligible(zoning, district, year) is expected


def test_is_eligible_honours_configured_districts_and_threshold() -> None:
    assert is_eligible("Commercial", 301, 1990, eligible_districts=[301], year_threshold=2000) is True


def test_classify_records_adds_labels() -> None:
    frame = pd.DataFrame(
        {
            "mappable_bbl": ["1000477501", "1000487501", "1000510030"],
            "building_class": ["H2", "HB", "H9"],
            "zonedist1": ["C6-4", "BPC", "M1-6"],
            "community_district": pd.array([105, 101, 104], dtype="Int64"),
            "year_built": pd.array([1920, 1986, 0], dtype="Int64"),
        }
    )

    result = classify_records(frame).set_index("mappable_bbl")

    assert result.loc["1000477501", "category_name"] == "Full Service Hotel"
    assert result.loc["1000487501", "zoning_category"] == "Commercial"
    assert result.loc["1000510030", "category_name"] == DEFAULT_CATEGORY
    assert pd.isna(result.loc["1000510030", "year_built"])
    assert result["is_eligible"].tolist() == [True, False, False]


def test_classify_records_empty_frame() -> None:
    frame = pd.DataFrame(columns=["mappable_bbl", "building_class", "zonedist1", "community_district", "year_built"])

    result = classify_records(frame)

    assert result.empty
    assert {"category_name", "zoning_category", "is_eligible"} <= set(result.columns)
