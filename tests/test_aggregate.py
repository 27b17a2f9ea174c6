from __future__ import annotations

from datetime import date

import numpy as np
import pandas as pd
import pytest

from pipelines.aggregate import (
    aggregate_lots,
    collapse_representative,
    collapse_union,
    normalize_room_count,
    sum_distinct_rooms,
)


CROSSWALK = {
    "1000471001": "1000477501",
    "1000471002": "1000477501",
    "1000481001": "1000487501",
    "1000481002": "1000487501",
}


@pytest.mark.parametrize("raw", [None, pd.NA, np.nan, 0, 0.0])
def test_normalize_room_count_treats_missing_and_zero_as_null(raw) -> None:
    assert normalize_room_count(raw) is None


def test_normalize_room_count_is_idempotent() -> None:
    for raw in (None, 0, 45, 45.0):
        once = normalize_room_count(raw)
        assert normalize_room_count(once) == once


@pytest.mark.parametrize(
    "values, expected",
    [
        ([50, 50], 50),
        ([80, 120], 200),
        ([50, 0, None, 50, 70], 120),
        ([0, None, pd.NA], None),
        ([], None),
    ],
)
def test_sum_distinct_rooms(values, expected) -> None:
    assert sum_distinct_rooms(values) == expected


def _assessment(rows):
    return pd.DataFrame(rows, columns=["bbl", "building_class", "rooms"])


def test_aggregate_lots_groups_condo_units() -> None:
    frame = _assessment(
        [
            ["1000481002", "HB", 120],
            ["1000471001", "H2", 50],
            ["1000471002", "H3", 50],
            ["1000481001", "HB", 80],
            ["1000490010", "H1", 0],
        ]
    )

    result = aggregate_lots(frame, CROSSWALK)

    assert result["mappable_bbl"].tolist() == ["1000477501", "1000487501", "1000490010"]
    by_lot = result.set_index("mappable_bbl")
    assert by_lot.loc["1000477501", "rooms"] == 50
    assert by_lot.loc["1000487501", "rooms"] == 200
    assert pd.isna(by_lot.loc["1000490010", "rooms"])
    assert str(result["rooms"].dtype) == "Int64"


def test_aggregate_lots_keeps_first_member_values_and_child_order() -> None:
    frame = _assessment(
        [
            ["1000481002", "HB", 120],
            ["1000481001", "H2", 80],
            ["1000481002", "HB", 120],
        ]
    )

    row = aggregate_lots(frame, CROSSWALK).iloc[0]

    assert row["child_bbls"] == ["1000481002", "1000481001"]
    assert row["child_count"] == 2
    assert row["building_class"] == "HB"
    assert row["rooms"] == 200


def test_aggregate_lots_standalone_lot_is_its_own_child() -> None:
    row = aggregate_lots(_assessment([["1-49-10", "H1", 90]]), CROSSWALK).iloc[0]

    assert row["mappable_bbl"] == "1000490010"
    assert row["child_bbls"] == ["1000490010"]
    assert row["child_count"] == 1


def test_aggregate_lots_empty_frame() -> None:
    result = aggregate_lots(_assessment([]), CROSSWALK)

    assert result.empty
    assert "child_bbls" in result.columns


def test_collapse_representative_prefers_first_row_with_rooms() -> None:
    frame = pd.DataFrame(
        {
            "bbl": ["1000481001", "1000481002", "1000490010"],
            "source_hotel_id": ["", "S-2", "S-3"],
            "rooms": [0, 75, 40],
        }
    )

    result = collapse_representative(frame, CROSSWALK, ["source_hotel_id", "rooms"], source="scrape")
    result = result.set_index("mappable_bbl")

    assert result.loc["1000487501", "source_hotel_id"] == "S-2"
    assert result.loc["1000487501", "rooms"] == 75
    assert result.loc["1000490010", "rooms"] == 40


def test_collapse_representative_keeps_fields_of_one_listing() -> None:
    frame = pd.DataFrame(
        {
            "bbl": ["1000481001", "1000481002"],
            "source_hotel_id": ["S-1", "S-2"],
            "rooms": [None, 75],
            "closed_from": [None, date(2020, 3, 16)],
        }
    )

    row = collapse_representative(
        frame, CROSSWALK, ["source_hotel_id", "rooms", "closed_from"], source="scrape"
    ).iloc[0]

    assert row["source_hotel_id"] == "S-2"
    assert row["rooms"] == 75
    assert row["closed_from"] == date(2020, 3, 16)


def test_collapse_representative_falls_back_to_first_row() -> None:
    frame = pd.DataFrame(
        {
            "bbl": ["1000481002", "1000481001"],
            "source_hotel_id": ["S-2", "S-1"],
            "rooms": [0, None],
            "closed_from": [None, date(2020, 3, 16)],
        }
    )

    row = collapse_representative(
        frame, CROSSWALK, ["source_hotel_id", "rooms", "closed_from"], source="scrape"
    ).iloc[0]

    assert row["source_hotel_id"] == "S-2"
    assert pd.isna(row["rooms"])
    assert pd.isna(row["closed_from"])


def test_collapse_representative_blanks_string_dtype_columns() -> None:
    frame = pd.DataFrame(
        {
            "bbl": ["1000490010", "1000510030"],
            "zonedist1": pd.array(["", "C6-4"], dtype="string"),
            "address": pd.array(["3 West St", ""], dtype="string"),
        }
    )

    result = collapse_representative(frame, CROSSWALK, ["zonedist1", "address"], room_columns=(), source="lots")
    result = result.set_index("mappable_bbl")

    assert pd.isna(result.loc["1000490010", "zonedist1"])
    assert result.loc["1000510030", "zonedist1"] == "C6-4"
    assert pd.isna(result.loc["1000510030", "address"])


def test_collapse_union_flags_lot_when_any_address_is_union() -> None:
    frame = pd.DataFrame(
        {
            "bbl": ["1000471001", "1000471002", "1000490010"],
            "is_union": [False, True, False],
        }
    )

    result = collapse_union(frame, CROSSWALK).set_index("mappable_bbl")["union_flag"]

    assert bool(result["1000477501"]) is True
    assert bool(result["1000490010"]) is False
