"""
stationdensity - Alternative fuel station density vs population density by US state

Includes:
- Static state reference table (name, abbreviation, land area)
- Population density series merged from Census 2010-2019 estimates and 2020 counts
- Station record cleaning (fuel type, open date, continental bounding box)
- Cumulative station density on a dense state x year grid with forward fill
- Log10-log10 OLS of station density on population density
- Join-loss accounting, text/JSON reports and a command-line wrapper
"""

from .aggregate import aggregate_by_fuel_type, aggregate_station_density
from .config import PipelineConfig
from .exceptions import (
    InsufficientDataError,
    MissingReferenceError,
    PopulationCoverageError,
    StationDensityError,
)
from .joins import JoinReport, tracked_merge
from .pipeline import PipelineResult, run_from_sources, run_pipeline
from .population import (
    PopulationDensityResult,
    ReconciliationReport,
    resolve_population_density,
)
from .reference import US_STATES, StateInfo, StateRegistry, build_state_reference
from .regression import RegressionResult, fit_by_year, fit_log_log
from .sources import RawSources, load_sources
from .stations import (
    CONTINENTAL_US,
    BoundingBox,
    FuelType,
    StationNormalizationResult,
    normalize_stations,
)

__version__ = "0.1.0"

__all__ = [
    # Reference
    "StateInfo",
    "StateRegistry",
    "US_STATES",
    "build_state_reference",
    # Population
    "PopulationDensityResult",
    "ReconciliationReport",
    "resolve_population_density",
    # Stations
    "FuelType",
    "BoundingBox",
    "CONTINENTAL_US",
    "StationNormalizationResult",
    "normalize_stations",
    # Aggregation
    "aggregate_station_density",
    "aggregate_by_fuel_type",
    # Regression
    "RegressionResult",
    "fit_log_log",
    "fit_by_year",
    # Joins
    "JoinReport",
    "tracked_merge",
    # Pipeline
    "PipelineConfig",
    "PipelineResult",
    "RawSources",
    "load_sources",
    "run_pipeline",
    "run_from_sources",
    # Errors
    "StationDensityError",
    "MissingReferenceError",
    "PopulationCoverageError",
    "InsufficientDataError",
]
