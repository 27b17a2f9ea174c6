from __future__ import annotations

import csv
from pathlib import Path
import sys
from typing import Dict, Iterable, Sequence

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


ASSESSMENT_ROWS = [
    # condo P: two units both reporting the building-wide count
    ["1000471001", "2024", "H2", "50"],
    ["1000471002", "2024", "H2", "50"],
    # condo Q: two units reporting their own shares
    ["1000481001", "2024", "HB", "80"],
    ["1000481002", "2024", "HB", "120"],
    # lot X: current roll reports zero rooms
    ["1000490010", "2024", "H1", "0"],
    ["1000500020", "2024", "H5", "40"],
    ["1000510030", "2024", "H9", "30"],
    ["1000520040", "2024", "D4", "12"],
    ["1000540060", "2024", "H3", "60"],
    ["bad-bbl", "2024", "H2", "10"],
    ["1000490010", "2023", "H1", "90"],
    ["1000471001", "2023", "H2", "45"],
]

CROSSWALK_ROWS = [
    ["2024", "1000471001", "1000477501"],
    ["2024", "1000471002", "1000477501"],
    ["2024", "1000471002", "1000477501"],
    ["2024", "1000481001", "1000487501"],
    ["2024", "1000481002", "1000487501"],
    ["2023", "1000471001", "1000477501"],
    ["2023", "1000471002", "1000477501"],
]

LOT_ROWS = [
    ["1000477501", "C6-4", "105", "1920", "1 Park Ave", "40.75", "-73.98"],
    ["1000487501", "BPC", "101", "1986", "2 River Ter", "40.71", "-74.01"],
    ["1000490010", "R8", "107", "1960", "3 West St", "40.78", "-73.97"],
    ["1000500020", "C5-3", "105", "1900", "4 Club Pl", "40.76", "-73.97"],
    ["1000510030", "M1-6", "104", "0", "5 Tenth Ave", "40.76", "-73.99"],
    ["1000530050", "C6-2", "102", "1950", "6 Bowery", "40.72", "-73.99"],
]

MANUAL_ROWS = [
    ["1000490010", "true", "95", "Phone survey"],
    ["1000530050", "false", "10", "Closed permanently"],
]

UNION_ROWS = [
    ["1000471002", "true"],
    ["", "true"],
    ["1000990001", "true"],
]

SCRAPE_ROWS = [
    ["1000481001", "S-1", "999", "2020-03-16", "2021-06-01"],
    ["1000990001", "S-2", "40", "", ""],
]


def write_csv(path: Path, header: Sequence[str], rows: Iterable[Sequence[str]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(header)
        writer.writerows(rows)
    return path


@pytest.fixture
def write_source():
    """Expose the CSV writer so a test can replace one of the fixture sources."""

    return write_csv


@pytest.fixture
def hotel_inputs(tmp_path: Path) -> Dict[str, Path]:
    """Write a small but complete set of source files and return their paths."""

    data_dir = tmp_path / "data"
    return {
        "assessment": write_csv(
            data_dir / "assessment.csv", ["bbl", "report_year", "building_class", "rooms"], ASSESSMENT_ROWS
        ),
        "crosswalk": write_csv(
            data_dir / "crosswalk.csv", ["report_year", "unit_bbl", "parent_bbl"], CROSSWALK_ROWS
        ),
        "lots": write_csv(
            data_dir / "lots.csv",
            ["bbl", "zonedist1", "community_district", "year_built", "address", "latitude", "longitude"],
            LOT_ROWS,
        ),
        "manual": write_csv(data_dir / "manual.csv", ["bbl", "include", "rooms", "source_note"], MANUAL_ROWS),
        "union": write_csv(data_dir / "union.csv", ["bbl", "is_union"], UNION_ROWS),
        "scrape": write_csv(
            data_dir / "scrape.csv",
            ["bbl", "source_hotel_id", "rooms", "closed_from", "closed_to"],
            SCRAPE_ROWS,
        ),
    }


@pytest.fixture
def settings():
    from pipelines.hotels import PipelineSettings

    return PipelineSettings(current_year=2024, prior_year=2023)


@pytest.fixture
def hotel_sources(hotel_inputs: Dict[str, Path], settings):
    from pipelines.hotels import load_sources

    return load_sources(
        settings,
        assessment=str(hotel_inputs["assessment"]),
        crosswalk=str(hotel_inputs["crosswalk"]),
        lots=str(hotel_inputs["lots"]),
        scrape=str(hotel_inputs["scrape"]),
        manual=str(hotel_inputs["manual"]),
        union=str(hotel_inputs["union"]),
    )


@pytest.fixture
def pipeline_result(hotel_sources, settings):
    from pipelines.hotels import run_pipeline

    return run_pipeline(hotel_sources, settings)

