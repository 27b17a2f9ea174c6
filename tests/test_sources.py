from __future__ import annotations

from datetime import date
import logging

import pandas as pd
import pytest

from hotel_schema import ASSESSMENT_COLUMNS, MANUAL_COLUMNS, SCRAPE_COLUMNS
from pipelines.errors import MissingRequiredSource
from pipelines.sources import (
    load_assessment,
    load_crosswalk_table,
    load_lots,
    load_manual,
    load_scrape,
    load_union,
    read_source,
    to_bool,
    to_int,
)


def test_to_int_handles_thousands_separators_and_blanks() -> None:
    result = to_int(pd.Series(["1,200", "", "45", "n/a"]))

    assert result.tolist()[0] == 1200
    assert result.tolist()[2] == 45
    assert result.isna().tolist() == [False, True, False, True]


def test_to_bool_parses_common_spellings() -> None:
    result = to_bool(pd.Series(["Yes", "0", "true", "", "maybe"]))

    assert result.tolist()[:3] == [True, False, True]
    assert result.isna().tolist() == [False, False, False, True, True]


def test_load_assessment_filters_year_and_class_prefix(hotel_inputs) -> None:
    current = load_assessment(hotel_inputs["assessment"], 2024)
    prior = load_assessment(hotel_inputs["assessment"], 2023)

    assert list(current.columns) == ASSESSMENT_COLUMNS
    assert "1000520040" not in current["bbl"].tolist()
    assert len(current) == 9
    assert sorted(prior["bbl"].tolist()) == ["1000471001", "1000490010"]


def test_load_crosswalk_table(hotel_inputs) -> None:
    table = load_crosswalk_table(hotel_inputs["crosswalk"])

    assert len(table) == 7
    assert table["report_year"].tolist()[0] == 2024


def test_required_source_missing_raises(tmp_path) -> None:
    with pytest.raises(MissingRequiredSource) as excinfo:
        load_lots(tmp_path / "missing.csv")

    assert excinfo.value.name == "lots"


def test_required_source_without_path_raises() -> None:
    with pytest.raises(MissingRequiredSource):
        load_assessment(None, 2024)


def test_optional_source_missing_returns_empty_frame(tmp_path, caplog) -> None:
    with caplog.at_level(logging.WARNING):
        scrape = load_scrape(tmp_path / "missing.csv")
        manual = load_manual(None)

    assert scrape.empty and list(scrape.columns) == SCRAPE_COLUMNS
    assert manual.empty and list(manual.columns) == MANUAL_COLUMNS
    assert "scrape" in caplog.text


def test_source_missing_required_column_raises(tmp_path) -> None:
    path = tmp_path / "lots.csv"
    path.write_text("bbl,zonedist1\n1000477501,C6-4\n", encoding="utf-8")

    with pytest.raises(ValueError, match="community_district"):
        read_source("lots", path, ["bbl", "zonedist1", "community_district"])


def test_source_headers_are_case_insensitive(tmp_path) -> None:
    path = tmp_path / "union.csv"
    path.write_text("BBL, Is_Union\n1000477501,yes\n", encoding="utf-8")

    union = load_union(path)

    assert union["bbl"].tolist() == ["1000477501"]
    assert union["is_union"].tolist() == [True]


def test_load_manual_parses_flags_and_counts(hotel_inputs) -> None:
    manual = load_manual(hotel_inputs["manual"]).set_index("bbl")

    assert bool(manual.loc["1000530050", "include"]) is False
    assert manual.loc["1000490010", "rooms"] == 95
    assert manual.loc["1000490010", "source_note"] == "Phone survey"


def test_load_scrape_parses_closure_dates(hotel_inputs) -> None:
    scrape = load_scrape(hotel_inputs["scrape"]).set_index("source_hotel_id")

    assert scrape.loc["S-1", "closed_from"] == date(2020, 3, 16)
    assert scrape.loc["S-1", "closed_to"] == date(2021, 6, 1)
    assert pd.isna(scrape.loc["S-2", "closed_from"])


def test_load_union_skips_rows_without_bbl(hotel_inputs) -> None:
    union = load_union(hotel_inputs["union"])

    assert union["bbl"].tolist() == ["1000471002", "1000990001"]


def test_load_lots_optional_columns_default_blank(tmp_path) -> None:
    path = tmp_path / "lots.csv"
    path.write_text(
        "bbl,zonedist1,community_district,year_built\n1000477501,c6-4,105,1920\n",
        encoding="utf-8",
    )

    lots = load_lots(path)

    assert lots.loc[0, "zonedist1"] == "C6-4"
    assert lots.loc[0, "address"] == ""
    assert pd.isna(lots.loc[0, "latitude"])
