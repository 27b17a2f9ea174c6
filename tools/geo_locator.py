"""Geocode the hotel union directory to BBLs using NYC Geoclient."""

from __future__ import annotations

import argparse
import json
import logging
import time
from pathlib import Path
from typing import Dict, Optional, Tuple

import pandas as pd
import requests
from requests import Response
from tqdm import tqdm


GEOCLIENT_URL = "https://api.nyc.gov/geo/geoclient/v2/search.json"

GeocodeResult = Tuple[str, float, float]


class RateLimiter:
    """Simple rate limiter ensuring a minimum interval between events."""

    def __init__(self, min_interval_sec: float = 1.0) -> None:
        self.min_interval = max(0.0, float(min_interval_sec))
        self._last_time: Optional[float] = None

    def wait(self) -> None:
        now = time.monotonic()
        if self._last_time is not None and self.min_interval > 0:
            elapsed = now - self._last_time
            if elapsed < self.min_interval:
                time.sleep(self.min_interval - elapsed)
        self._last_time = time.monotonic()


def build_query(address: Optional[str], borough: Optional[str]) -> Optional[str]:
    """Construct the single-line Geoclient search input."""
    parts = [part.strip() for part in [address or "", borough or ""] if part and part.strip()]
    if not parts:
        return None
    return ", ".join(parts)


def cache_key(address: Optional[str], borough: Optional[str]) -> str:
    street = " ".join((address or "").lower().split())
    boro = (borough or "").strip().lower()
    return f"{street}|{boro}"


def cache_load(path: str) -> Dict[str, Dict[str, object]]:
    """Load cache data from JSON file."""
    cache_path = Path(path)
    if not cache_path.exists():
        return {}
    try:
        with cache_path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
            if isinstance(data, dict):
                return data
    except (json.JSONDecodeError, OSError):
        logging.warning("Failed to load cache from %s; starting with empty cache.", path)
    return {}


def cache_save(path: str, cache: Dict[str, Dict[str, object]]) -> None:
    """Persist cache to disk."""
    cache_path = Path(path)
    cache_path.parent.mkdir(parents=True, exist_ok=True)
    with cache_path.open("w", encoding="utf-8") as handle:
        json.dump(cache, handle, ensure_ascii=False, indent=2)


def _parse_response(resp: Response) -> Optional[GeocodeResult]:
    try:
        resp.raise_for_status()
        data = resp.json()
    except (ValueError, requests.HTTPError):
        return None
    results = data.get("results") if isinstance(data, dict) else None
    if not isinstance(results, list) or not results:
        return None
    payload = results[0].get("response") or {}
    try:
        bbl = str(payload["bbl"]).strip()
        lat = float(payload["latitude"])
        lon = float(payload["longitude"])
    except (KeyError, ValueError, TypeError):
        return None
    if not bbl:
        return None
    return bbl, lat, lon


def geocode_geoclient(query: str, subscription_key: str, rl: RateLimiter) -> Optional[GeocodeResult]:
    """Call Geoclient's single-field search for one address."""
    rl.wait()
    headers = {
        "Ocp-Apim-Subscription-Key": subscription_key,
        "Accept": "application/json",
    }
    try:
        response = requests.get(GEOCLIENT_URL, params={"input": query}, headers=headers, timeout=20)
    except requests.RequestException:
        return None
    return _parse_response(response)


def geocode_directory(
    df: pd.DataFrame,
    subscription_key: str,
    cache_path: str,
    max_new: Optional[int] = None,
    min_interval: float = 0.5,
) -> Tuple[pd.DataFrame, Dict[str, int]]:
    """
    Resolve each directory address to (bbl, latitude, longitude) via cache + Geoclient.

    Returns only the rows that resolved, plus a stats dict with keys
    total, resolved, cache_hits, geocoded_now, failures, capped.
    """
    working = df.copy()
    for column in ("bbl", "latitude", "longitude"):
        working[column] = None
    cache = cache_load(cache_path)
    rl = RateLimiter(min_interval)

    stats = {
        "total": len(working),
        "resolved": 0,
        "cache_hits": 0,
        "geocoded_now": 0,
        "failures": 0,
        "capped": False,
    }

    new_calls = 0
    for idx, row in tqdm(working.iterrows(), total=len(working), desc="Geocoding", unit="hotel"):
        address = row.get("address")
        borough = row.get("borough")
        query = build_query(address, borough)
        if not query:
            stats["failures"] += 1
            continue

        key = cache_key(address, borough)
        cached = cache.get(key)
        result: Optional[GeocodeResult] = None
        if cached is not None:
            try:
                result = (str(cached["bbl"]), float(cached["lat"]), float(cached["lng"]))
                stats["cache_hits"] += 1
            except (KeyError, ValueError, TypeError):
                result = None

        if result is None:
            if max_new is not None and new_calls >= max_new:
                stats["capped"] = True
                stats["failures"] += 1
                continue
            result = geocode_geoclient(query, subscription_key, rl)
            new_calls += 1
            if result is None:
                stats["failures"] += 1
                continue
            bbl, lat, lng = result
            cache[key] = {"bbl": bbl, "lat": lat, "lng": lng, "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())}
            stats["geocoded_now"] += 1

        bbl, lat, lng = result
        working.at[idx, "bbl"] = bbl
        working.at[idx, "latitude"] = lat
        working.at[idx, "longitude"] = lng

    cache_save(cache_path, cache)
    resolved = working[working["bbl"].notna()].reset_index(drop=True)
    stats["resolved"] = len(resolved)
    return resolved, stats


def _parse_bool(value: str) -> bool:
    return value.lower() in {"1", "true", "yes", "y", "on"}


def main() -> None:
    parser = argparse.ArgumentParser(description="Geocode the hotel union directory to BBLs.")
    parser.add_argument("--input", required=True, help="Union directory CSV (address, borough, is_union).")
    parser.add_argument("--output", required=True, help="Output CSV with bbl and is_union columns.")
    parser.add_argument("--cache", default="data/geoclient_cache.json", help="Cache JSON path.")
    parser.add_argument("--subscription-key", required=True, help="NYC API portal subscription key.")
    parser.add_argument("--max-new", type=int, default=None, help="Maximum number of new geocode API calls.")
    parser.add_argument("--dry-run", default="false", help="If true, do not write output.")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")

    df = pd.read_csv(args.input, dtype=str, keep_default_na=False)
    resolved, stats = geocode_directory(
        df,
        subscription_key=args.subscription_key,
        cache_path=args.cache,
        max_new=args.max_new,
    )

    report = (
        f"Rows: {stats['total']}  | Resolved: {stats['resolved']}  | Failures: {stats['failures']}\n"
        f"Cache hits: {stats['cache_hits']}  | Geocoded now: {stats['geocoded_now']}  | Capped: {str(stats['capped']).lower()}"
    )
    print(report)

    if _parse_bool(str(args.dry_run)):
        print("Dry-run mode enabled; not writing output CSV.")
        return

    Path(args.output).parent.mkdir(parents=True, exist_ok=True)
    resolved.to_csv(args.output, index=False)
    print(f"Wrote {args.output}")


if __name__ == "__main__":
    main()
