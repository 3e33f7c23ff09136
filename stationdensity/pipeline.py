"""
stationdensity.pipeline - End-to-end composition of the analysis stages.

::

    reference  = build_state_reference()
    population = resolve_population_density(wide, single_year, reference)
    stations   = normalize_stations(raw_stations, population.table)
    density    = aggregate_station_density(stations.table, reference, ...)
    regression = fit_log_log(density, year=...)

Each stage takes immutable tables and returns new ones; nothing is carried
between calls except what :func:`run_pipeline` passes explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from stationdensity.aggregate import aggregate_station_density
from stationdensity.config import PipelineConfig
from stationdensity.exceptions import InsufficientDataError
from stationdensity.joins import JoinReport
from stationdensity.population import PopulationDensityResult, resolve_population_density
from stationdensity.reference import build_state_reference, validate_reference
from stationdensity.regression import RegressionResult, fit_log_log
from stationdensity.sources import RawSources
from stationdensity.stations import StationNormalizationResult, normalize_stations

log = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """
    Every table the pipeline produces, plus its accounting.

    Parameters
    ----------
    config : PipelineConfig
        Configuration the run used.
    reference : pd.DataFrame
        ``StateReference`` table.
    population : PopulationDensityResult
        ``PopulationDensityRecord`` table with join and overlap reports.
    stations : StationNormalizationResult
        ``StationRecord`` table with exclusion counts and join reports.
    density : pd.DataFrame
        ``StationDensityRecord`` grid for ``config.fuel_type``.
    regression : RegressionResult or None
        Fit for ``config.regression_year``; None if the fit failed.
    regression_error : str or None
        Why the fit failed.
    """

    config: PipelineConfig
    reference: pd.DataFrame
    population: PopulationDensityResult
    stations: StationNormalizationResult
    density: pd.DataFrame
    regression: Optional[RegressionResult] = None
    regression_error: Optional[str] = None

    @property
    def joins(self) -> List[JoinReport]:
        """Reports of every join in stage order."""
        return list(self.population.joins) + list(self.stations.joins)

    def tables(self) -> Dict[str, pd.DataFrame]:
        """Output tables keyed by file stem."""
        tables = {
            "state_reference": self.reference,
            "population_density": self.population.table,
            "stations": self.stations.table,
            "station_density": self.density,
        }
        if self.regression is not None:
            tables["regression"] = pd.DataFrame([self.regression.to_dict()])
        return tables

    def write_tables(self, output_dir: str | Path) -> List[Path]:
        """Write every output table as CSV into *output_dir*."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        written = []
        for stem, table in self.tables().items():
            path = output_dir / f"{stem}.csv"
            table.to_csv(path, index=False)
            written.append(path)
        log.info("Wrote %d tables to %s", len(written), output_dir)
        return written


def run_pipeline(
    stations: pd.DataFrame,
    population_wide: pd.DataFrame,
    population_2020: pd.DataFrame,
    config: Optional[PipelineConfig] = None,
    *,
    reference: Optional[pd.DataFrame] = None,
) -> PipelineResult:
    """
    Run every stage on in-memory raw tables.

    Parameters
    ----------
    stations : pd.DataFrame
        Raw station rows.
    population_wide : pd.DataFrame
        Wide 2010-2019 population estimates.
    population_2020 : pd.DataFrame
        2020 single-year population table.
    config : PipelineConfig, optional
        Defaults to ``PipelineConfig()``.
    reference : pd.DataFrame, optional
        ``StateReference`` table; defaults to all 50 states.  A supplied
        table is validated first.

    Returns
    -------
    PipelineResult
        A failed regression is recorded in ``regression_error`` instead of
        raising, so the wrangled tables are still available.
    """
    config = config or PipelineConfig()
    if reference is None:
        reference = build_state_reference()
    else:
        validate_reference(reference)

    population = resolve_population_density(
        population_wide, population_2020, reference, years=config.years
    )
    normalized = normalize_stations(stations, population.table, bbox=config.bbox)
    density = aggregate_station_density(
        normalized.table,
        reference,
        fuel_type=config.fuel_type,
        years=config.years,
        population=population.table if config.population_from_table else None,
    )

    result = PipelineResult(
        config=config,
        reference=reference,
        population=population,
        stations=normalized,
        density=density,
    )
    try:
        result.regression = fit_log_log(
            density, year=config.regression_year, confidence=config.confidence
        )
    except InsufficientDataError as e:
        log.warning("Regression skipped: %s", e)
        result.regression_error = str(e)
    return result


def run_from_sources(
    sources: RawSources, config: Optional[PipelineConfig] = None
) -> PipelineResult:
    """Convenience wrapper around :func:`run_pipeline` for a :class:`RawSources`."""
    return run_pipeline(
        sources.stations, sources.population_wide, sources.population_2020, config
    )
