"""
Pipeline configuration.

Holds the analysis window, the geographic filter, the fuel type and
regression year of interest, and where the raw source tables live or come
from.  Values can be passed explicitly or read from ``STATIONDENSITY_*``
environment variables via :meth:`PipelineConfig.from_env`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from stationdensity.stations import CONTINENTAL_US, BoundingBox, FuelType

logger = logging.getLogger(__name__)

DEFAULT_YEARS: Tuple[int, int] = (2010, 2020)
DEFAULT_REGRESSION_YEAR = 2020

STATIONS_URL = "https://developer.nrel.gov/api/alt-fuel-stations/v1.csv"
POPULATION_WIDE_URL = (
    "https://www2.census.gov/programs-surveys/popest/datasets/2010-2019/"
    "national/totals/nst-est2019-alldata.csv"
)
POPULATION_2020_URL = (
    "https://www2.census.gov/programs-surveys/decennial/2020/data/"
    "apportionment/apportionment.csv"
)


@dataclass
class PipelineConfig:
    """Configuration for one pipeline run.

    Parameters
    ----------
    years : tuple of int
        Inclusive (first, last) year of the analysis window.
    bbox : BoundingBox
        Station location filter.
    fuel_type : FuelType or str
        Fuel type aggregated into station density.
    regression_year : int
        Year slice used by the log-log fit.
    confidence : float
        Confidence level of the slope interval.
    population_from_table : bool
        Take every grid cell's ``pop_density`` from the population table
        instead of forward-filling it from the latest station year.
    data_dir : Path or None
        Directory holding (or receiving) the raw CSV sources.
    stations_url, population_wide_url, population_2020_url : str
        Download locations of the three raw sources.
    nrel_api_key : str
        API key for the NREL alternative-fuel-station service.
    timeout_seconds : int
        HTTP timeout for source downloads.
    """

    years: Tuple[int, int] = DEFAULT_YEARS
    bbox: BoundingBox = CONTINENTAL_US
    fuel_type: FuelType = FuelType.ELEC
    regression_year: int = DEFAULT_REGRESSION_YEAR
    confidence: float = 0.95
    population_from_table: bool = False
    data_dir: Optional[Path] = None
    stations_url: str = STATIONS_URL
    population_wide_url: str = POPULATION_WIDE_URL
    population_2020_url: str = POPULATION_2020_URL
    nrel_api_key: str = "DEMO_KEY"
    timeout_seconds: int = 60

    def __post_init__(self) -> None:
        self.years = (int(self.years[0]), int(self.years[1]))
        if self.years[0] > self.years[1]:
            raise ValueError(f"years must be (first, last) with first <= last, got {self.years}")
        self.fuel_type = FuelType.parse(self.fuel_type)
        self.regression_year = int(self.regression_year)
        if not 0.0 < self.confidence < 1.0:
            raise ValueError(f"confidence must be in (0, 1), got {self.confidence}")
        if self.data_dir is not None:
            self.data_dir = Path(self.data_dir)

    @property
    def year_range(self) -> range:
        """All years of the analysis window, ascending."""
        return range(self.years[0], self.years[1] + 1)

    @classmethod
    def from_env(cls, **overrides) -> "PipelineConfig":
        """Build a config from environment variables, then apply *overrides*.

        Recognised variables: ``STATIONDENSITY_DATA_DIR``,
        ``STATIONDENSITY_FUEL_TYPE``, ``STATIONDENSITY_YEAR`` (regression
        year) and ``NREL_API_KEY``.
        """
        kwargs = {}
        env_dir = os.environ.get("STATIONDENSITY_DATA_DIR")
        if env_dir:
            kwargs["data_dir"] = Path(env_dir)
            logger.info("Data directory from STATIONDENSITY_DATA_DIR: %s", env_dir)
        env_fuel = os.environ.get("STATIONDENSITY_FUEL_TYPE")
        if env_fuel:
            kwargs["fuel_type"] = env_fuel
        env_year = os.environ.get("STATIONDENSITY_YEAR")
        if env_year:
            try:
                kwargs["regression_year"] = int(env_year)
            except ValueError:
                raise ValueError(
                    f"STATIONDENSITY_YEAR must be an integer year, got {env_year!r}"
                ) from None
        env_key = os.environ.get("NREL_API_KEY")
        if env_key:
            kwargs["nrel_api_key"] = env_key
        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**kwargs)
