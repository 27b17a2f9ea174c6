"""Reconcile hotel sources into one canonical record per mappable lot."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import pandas as pd

from hotel_schema import (
    CANONICAL_COLUMNS,
    CHILD_BBL_SEPARATOR,
    LOT_COLUMNS,
    MANUAL_COLUMNS,
    SCRAPE_COLUMNS,
    UNION_COLUMNS,
)
from pipelines.aggregate import aggregate_lots, collapse_representative, collapse_union
from pipelines.classify import DEFAULT_ELIGIBLE_DISTRICTS, DEFAULT_YEAR_THRESHOLD, classify_records
from pipelines.fusion import OverrideTable, load_overrides, resolve_fields
from pipelines.identifiers import build_crosswalk
from pipelines.inclusion import filter_records
from pipelines.persist import write_outputs
from pipelines.sources import (
    empty_frame,
    load_assessment,
    load_crosswalk_table,
    load_lots,
    load_manual,
    load_scrape,
    load_union,
)


logger = logging.getLogger(__name__)

INT_COLUMNS = [
    "child_count",
    "rooms_current",
    "rooms_prior",
    "rooms_scrape",
    "rooms_manual",
    "final_rooms",
    "community_district",
    "year_built",
]


@dataclass
class PipelineSettings:
    current_year: int
    prior_year: int
    class_prefix: str = "H"
    eligible_districts: Tuple[int, ...] = tuple(sorted(DEFAULT_ELIGIBLE_DISTRICTS))
    year_threshold: int = DEFAULT_YEAR_THRESHOLD


@dataclass
class HotelSources:
    assessment_current: pd.DataFrame
    assessment_prior: pd.DataFrame
    crosswalk: pd.DataFrame
    lots: pd.DataFrame
    scrape: pd.DataFrame = field(default_factory=lambda: empty_frame(SCRAPE_COLUMNS))
    manual: pd.DataFrame = field(default_factory=lambda: empty_frame(MANUAL_COLUMNS))
    union: pd.DataFrame = field(default_factory=lambda: empty_frame(UNION_COLUMNS))


def load_sources(
    settings: PipelineSettings,
    assessment: str,
    crosswalk: str,
    lots: str,
    scrape: Optional[str] = None,
    manual: Optional[str] = None,
    union: Optional[str] = None,
) -> HotelSources:
    """Read every source. Required sources are read first so a missing one aborts before any work."""
    assessment_current = load_assessment(assessment, settings.current_year, settings.class_prefix)
    assessment_prior = load_assessment(assessment, settings.prior_year, settings.class_prefix)
    crosswalk_table = load_crosswalk_table(crosswalk)
    lots_df = load_lots(lots)
    return HotelSources(
        assessment_current=assessment_current,
        assessment_prior=assessment_prior,
        crosswalk=crosswalk_table,
        lots=lots_df,
        scrape=load_scrape(scrape),
        manual=load_manual(manual),
        union=load_union(union),
    )


def _log_unmatched(name: str, frame: pd.DataFrame, universe: Set[str]) -> None:
    if frame.empty:
        return
    unmatched = frame.loc[~frame["mappable_bbl"].isin(universe), "mappable_bbl"]
    if not unmatched.empty:
        logger.info("%s: %s lots have no assessment or manual record and are ignored.", name, len(unmatched))


def _child_list(current: Any, prior: Any, mappable_bbl: str) -> List[str]:
    for candidate in (current, prior):
        if isinstance(candidate, list) and candidate:
            return candidate
    return [mappable_bbl]


def build_lot_frame(sources: HotelSources, settings: PipelineSettings) -> pd.DataFrame:
    """Join every source onto the universe of mappable lots, one column per fusion candidate."""
    crosswalk_current = build_crosswalk(sources.crosswalk, settings.current_year)
    crosswalk_prior = build_crosswalk(sources.crosswalk, settings.prior_year)

    current = aggregate_lots(sources.assessment_current, crosswalk_current, source="current assessment")
    prior = aggregate_lots(sources.assessment_prior, crosswalk_prior, source="prior assessment")
    scrape = collapse_representative(
        sources.scrape,
        crosswalk_current,
        ["source_hotel_id", "rooms", "closed_from", "closed_to"],
        source="scrape",
    )
    manual = collapse_representative(
        sources.manual, crosswalk_current, ["include", "rooms", "source_note"], source="manual"
    )
    union = collapse_union(sources.union, crosswalk_current)
    lots = collapse_representative(
        sources.lots,
        crosswalk_current,
        [column for column in LOT_COLUMNS if column != "bbl"],
        room_columns=(),
        source="lots",
    )

    universe = set(current["mappable_bbl"]) | set(prior["mappable_bbl"]) | set(manual["mappable_bbl"])
    for name, frame in (("scrape", scrape), ("union", union), ("lots", lots)):
        _log_unmatched(name, frame, universe)

    base = pd.DataFrame({"mappable_bbl": pd.Series(sorted(universe), dtype=object)})
    base = base.merge(
        current.rename(
            columns={
                "rooms": "rooms_current",
                "building_class": "building_class_current",
                "child_bbls": "child_bbls_current",
                "child_count": "child_count_current",
            }
        ),
        on="mappable_bbl",
        how="left",
    )
    base = base.merge(
        prior.rename(
            columns={
                "rooms": "rooms_prior",
                "building_class": "building_class_prior",
                "child_bbls": "child_bbls_prior",
                "child_count": "child_count_prior",
            }
        ),
        on="mappable_bbl",
        how="left",
    )
    base = base.merge(scrape.rename(columns={"rooms": "rooms_scrape"}), on="mappable_bbl", how="left")
    base = base.merge(
        manual.rename(columns={"include": "manual_include", "rooms": "rooms_manual", "source_note": "manual_note"}),
        on="mappable_bbl",
        how="left",
    )
    base = base.merge(union, on="mappable_bbl", how="left")
    base = base.merge(lots, on="mappable_bbl", how="left")

    base["child_bbls"] = [
        _child_list(current_children, prior_children, mappable_bbl)
        for current_children, prior_children, mappable_bbl in zip(
            base["child_bbls_current"], base["child_bbls_prior"], base["mappable_bbl"]
        )
    ]
    base["child_count"] = base["child_bbls"].map(len)
    base = base.drop(
        columns=["child_bbls_current", "child_bbls_prior", "child_count_current", "child_count_prior"]
    )
    logger.info(
        "Built %s mappable lots (%s current, %s prior, %s manual).",
        len(base),
        len(current),
        len(prior),
        len(manual),
    )
    return base


def finalize(frame: pd.DataFrame) -> pd.DataFrame:
    """Project onto the canonical output schema, sorted by lot."""
    working = frame.copy()
    working["child_bbls"] = working["child_bbls"].map(
        lambda children: CHILD_BBL_SEPARATOR.join(children) if isinstance(children, list) else str(children)
    )
    for column in CANONICAL_COLUMNS:
        if column not in working.columns:
            working[column] = None
    for column in INT_COLUMNS:
        working[column] = pd.to_numeric(working[column], errors="coerce").astype("Int64")
    for column in ("latitude", "longitude"):
        working[column] = pd.to_numeric(working[column], errors="coerce").astype(float)
    for column in ("is_union", "include", "is_eligible"):
        working[column] = working[column].astype(bool)
    working["overrides_applied"] = working["overrides_applied"].fillna("").astype(str)
    return working[CANONICAL_COLUMNS].sort_values("mappable_bbl").reset_index(drop=True)


def run_pipeline(
    sources: HotelSources,
    settings: PipelineSettings,
    overrides: Optional[OverrideTable] = None,
) -> pd.DataFrame:
    """
    Normalize -> aggregate -> fuse (+ overrides) -> classify -> filter.

    Returns the deliverable set in CANONICAL_COLUMNS order, sorted by
    mappable_bbl. Raises LookupAmbiguous on a corrupt crosswalk.
    """
    table = overrides if overrides is not None else OverrideTable(version="none")
    lots = build_lot_frame(sources, settings)
    fused = resolve_fields(lots, table)
    classified = classify_records(fused, settings.eligible_districts, settings.year_threshold)
    included = filter_records(classified)
    return finalize(included)


def _parse_districts(value: str) -> Tuple[int, ...]:
    districts = tuple(int(part) for part in value.split(",") if part.strip())
    if not districts:
        raise argparse.ArgumentTypeError("At least one community district is required")
    return districts


def _default_run_date() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile NYC hotel sources into one record per mappable lot.")
    parser.add_argument("--assessment", required=True, help="Assessment (NOPV) extract CSV")
    parser.add_argument("--crosswalk", required=True, help="Condo unit -> parent lot crosswalk CSV")
    parser.add_argument("--lots", required=True, help="Lot attributes CSV (zoning, district, year built, coordinates)")
    parser.add_argument("--scrape", help="Scraped hotel listings CSV (optional)")
    parser.add_argument("--manual", help="Manually researched hotels CSV (optional)")
    parser.add_argument("--union", help="Geocoded union directory CSV (optional)")
    parser.add_argument("--overrides", help="Override table JSON (optional)")
    parser.add_argument("--current-year", type=int, required=True, help="Current assessment report year")
    parser.add_argument("--prior-year", type=int, help="Prior assessment report year (default: current - 1)")
    parser.add_argument("--class-prefix", default="H", help="Building class family to keep")
    parser.add_argument(
        "--eligible-districts",
        type=_parse_districts,
        default=tuple(sorted(DEFAULT_ELIGIBLE_DISTRICTS)),
        help="Comma list of eligible community districts",
    )
    parser.add_argument("--year-threshold", type=int, default=DEFAULT_YEAR_THRESHOLD)
    parser.add_argument("--out-dir", required=True, help="Output directory for run snapshots")
    parser.add_argument("--run-date", default=_default_run_date(), help="Run date in YYYY-MM-DD format")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")
    args = parse_args(argv)
    settings = PipelineSettings(
        current_year=args.current_year,
        prior_year=args.prior_year if args.prior_year is not None else args.current_year - 1,
        class_prefix=args.class_prefix,
        eligible_districts=args.eligible_districts,
        year_threshold=args.year_threshold,
    )
    overrides = load_overrides(args.overrides)
    sources = load_sources(
        settings,
        assessment=args.assessment,
        crosswalk=args.crosswalk,
        lots=args.lots,
        scrape=args.scrape,
        manual=args.manual,
        union=args.union,
    )
    result = run_pipeline(sources, settings, overrides)
    summary: Dict[str, Any] = write_outputs(result, Path(args.out_dir), args.run_date)
    logger.info("Run %s complete: %s", args.run_date, summary)


if __name__ == "__main__":
    main()
