import argparse
import copy
import logging
import os
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence


DEFAULT_CONFIG = {
    "geocode_union": {
        "enabled": True,
        "input": "data/union_directory.csv",
        "output": "data/union_geocoded.csv",
        "cache": "data/geoclient_cache.json",
        "subscription_key_env": "GEOCLIENT_SUBSCRIPTION_KEY",
        "max_new": None,
    },
    "hotels": {
        "enabled": True,
        "assessment": "data/nopv_hotels.csv",
        "crosswalk": "data/condo_crosswalk.csv",
        "lots": "data/pluto_lots.csv",
        "scrape": "data/scraped_hotels.csv",
        "manual": "data/manual_hotels.csv",
        "union": "data/union_geocoded.csv",
        "overrides": "config/overrides.json",
        "current_year": 2024,
        "prior_year": 2023,
        "class_prefix": "H",
        "eligible_districts": [101, 102, 103, 104, 105, 106],
        "year_threshold": 1977,
        "out_dir": "./hotel_runs",
    },
}


def build_geocode_command(config: Dict[str, object], subscription_key: str) -> List[str]:
    cmd = [
        sys.executable,
        "-m",
        "tools.geo_locator",
        "--input",
        str(config["input"]),
        "--output",
        str(config["output"]),
        "--cache",
        str(config["cache"]),
        "--subscription-key",
        subscription_key,
    ]

    max_new = config.get("max_new")
    if max_new is not None:
        cmd.extend(["--max-new", str(max_new)])

    return cmd


def build_hotels_command(config: Dict[str, object], run_date: str) -> List[str]:
    cmd = [
        sys.executable,
        "-m",
        "pipelines.hotels",
        "--assessment",
        str(config["assessment"]),
        "--crosswalk",
        str(config["crosswalk"]),
        "--lots",
        str(config["lots"]),
        "--current-year",
        str(config["current_year"]),
        "--class-prefix",
        str(config["class_prefix"]),
        "--eligible-districts",
        ",".join(str(district) for district in config["eligible_districts"]),
        "--year-threshold",
        str(config["year_threshold"]),
        "--out-dir",
        str(config["out_dir"]),
        "--run-date",
        run_date,
    ]

    if config.get("prior_year") is not None:
        cmd.extend(["--prior-year", str(config["prior_year"])])

    for option in ("scrape", "manual", "union", "overrides"):
        value = config.get(option)
        if value:
            cmd.extend([f"--{option}", str(value)])

    return cmd


def run_command(label: str, command: List[str], cwd: Path) -> None:
    logging.info("Running %s command: %s", label, " ".join(command))
    result = subprocess.run(command, cwd=cwd, check=False)
    if result.returncode != 0:
        raise RuntimeError(f"{label} command failed with exit code {result.returncode}")


def load_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Runner for the union geocode step and the hotel reconciliation.")
    parser.add_argument("--skip-geocode", action="store_true", help="Skip geocoding the union directory.")
    parser.add_argument("--skip-hotels", action="store_true", help="Skip the hotel reconciliation pipeline.")
    parser.add_argument("--subscription-key", help="Override the Geoclient subscription key.")
    parser.add_argument("--geocode-max-new", type=int, help="Cap new Geoclient calls.")
    parser.add_argument("--current-year", type=int, help="Override the current assessment report year.")
    parser.add_argument("--prior-year", type=int, help="Override the prior assessment report year.")
    parser.add_argument("--overrides", help="Override table JSON path.")
    parser.add_argument("--out-dir", help="Override the output directory.")
    parser.add_argument("--run-date", help="Run date (YYYY-MM-DD), defaults to today.")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    args = load_arguments(argv)

    geocode_cfg = copy.deepcopy(DEFAULT_CONFIG["geocode_union"])
    hotels_cfg = copy.deepcopy(DEFAULT_CONFIG["hotels"])

    if args.geocode_max_new is not None:
        geocode_cfg["max_new"] = args.geocode_max_new
    if args.current_year is not None:
        hotels_cfg["current_year"] = args.current_year
        if args.prior_year is None:
            hotels_cfg["prior_year"] = args.current_year - 1
    if args.prior_year is not None:
        hotels_cfg["prior_year"] = args.prior_year
    if args.overrides:
        hotels_cfg["overrides"] = args.overrides

    project_root = Path(__file__).resolve().parent
    out_dir = args.out_dir or hotels_cfg.get("out_dir", "hotel_runs")
    hotels_cfg["out_dir"] = str((project_root / out_dir).resolve())
    run_date = args.run_date or datetime.now().strftime("%Y-%m-%d")

    run_geocode = geocode_cfg["enabled"] and not args.skip_geocode
    run_hotels = hotels_cfg["enabled"] and not args.skip_hotels

    if run_geocode:
        subscription_key = args.subscription_key or os.environ.get(str(geocode_cfg["subscription_key_env"]), "")
        if not subscription_key:
            raise ValueError(
                f"A Geoclient subscription key is required; set {geocode_cfg['subscription_key_env']} "
                "or pass --subscription-key."
            )
        run_command("union geocode", build_geocode_command(geocode_cfg, subscription_key), project_root)
        hotels_cfg["union"] = geocode_cfg["output"]

    if run_hotels:
        run_command("hotel reconciliation", build_hotels_command(hotels_cfg, run_date), project_root)

    logging.info("Runner completed.")


if __name__ == "__main__":
    main()
