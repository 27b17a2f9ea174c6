"""Exceptions raised by the hotel reconciliation pipeline."""

from __future__ import annotations

from typing import Any, List


class HotelPipelineError(Exception):
    """Base class for pipeline failures."""


class IdentifierParseError(HotelPipelineError):
    """A raw BBL could not be parsed. The affected row is dropped."""

    def __init__(self, value: Any, reason: str) -> None:
        super().__init__(f"Cannot parse BBL {value!r}: {reason}")
        self.value = value
        self.reason = reason


class LookupAmbiguous(HotelPipelineError):
    """A condo unit maps to more than one parent lot in one crosswalk snapshot."""

    def __init__(self, unit_bbl: str, parents: List[str], report_year: Any = None) -> None:
        year_part = f" for report year {report_year}" if report_year is not None else ""
        super().__init__(
            f"Unit BBL {unit_bbl} maps to multiple parent lots{year_part}: {', '.join(parents)}"
        )
        self.unit_bbl = unit_bbl
        self.parents = parents
        self.report_year = report_year


class MissingRequiredSource(HotelPipelineError):
    """A required input file is unreachable."""

    def __init__(self, name: str, path: Any) -> None:
        super().__init__(f"Required source '{name}' not found: {path}")
        self.name = name
        self.path = path


class OverrideKeyNotFound(HotelPipelineError):
    """An override entry matches no reconciled record."""

    def __init__(self, key_type: str, key: str) -> None:
        super().__init__(f"Override key {key_type}={key} matches no record")
        self.key_type = key_type
        self.key = key
