"""
stationdensity.aggregate - Cumulative station density on a state x year grid.

For one fuel type, counts the stations opened per (state, year), carries a
running total forward within each state, and divides by land area::

    station_density = tot_stations / land_area_sqmi

The output is dense: every reference state has one row for every year of
the window.  Years with no station opened are filled from the latest earlier
year of the same state; years before any observation are zero.  The fill is
an explicit per-state scan in ascending year order, so it never looks
forward in time and never crosses from one state into another.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from stationdensity.exceptions import MissingReferenceError
from stationdensity.stations import FuelType

log = logging.getLogger(__name__)

DEFAULT_YEARS: Tuple[int, int] = (2010, 2020)

DENSITY_GRID_COLUMNS: Tuple[str, ...] = (
    "state",
    "state_name",
    "open_year",
    "num_stations",
    "tot_stations",
    "land_area_sqmi",
    "pop_density",
    "station_density",
    "filled",
)


def count_stations(stations: pd.DataFrame, fuel_type: FuelType | str) -> pd.Series:
    """
    Number of stations of *fuel_type* opened per (state, open_year).

    Returns
    -------
    pd.Series
        Integer counts indexed by (state, open_year).
    """
    code = FuelType.parse(fuel_type).value
    subset = stations.loc[stations["fuel_type"].astype(str) == code]
    return subset.groupby(["state", "open_year"]).size()


def _observed_pop_density(
    stations: pd.DataFrame, fuel_type: FuelType | str
) -> Dict[Tuple[str, int], float]:
    code = FuelType.parse(fuel_type).value
    subset = stations.loc[stations["fuel_type"].astype(str) == code]
    if "pop_density" not in subset.columns or subset.empty:
        return {}
    return subset.groupby(["state", "open_year"])["pop_density"].first().to_dict()


def _population_lookup(population: Optional[pd.DataFrame]) -> Dict[Tuple[str, int], float]:
    if population is None:
        return {}
    return {
        (row.state, int(row.year)): float(row.pop_density)
        for row in population.loc[:, ["state", "year", "pop_density"]].itertuples(index=False)
    }


def aggregate_station_density(
    stations: pd.DataFrame,
    reference: pd.DataFrame,
    *,
    fuel_type: FuelType | str = FuelType.ELEC,
    years: Tuple[int, int] = DEFAULT_YEARS,
    population: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    Build the dense ``StationDensityRecord`` grid for one fuel type.

    Parameters
    ----------
    stations : pd.DataFrame
        ``StationRecord`` table (``state``, ``open_year``, ``fuel_type`` and,
        for the forward-filled population density, ``pop_density``).
    reference : pd.DataFrame
        ``StateReference`` table; defines the grid's states and land areas.
    fuel_type : FuelType or str
        Fuel type to aggregate.
    years : tuple of int
        Inclusive (first, last) year of the grid.
    population : pd.DataFrame, optional
        ``PopulationDensityRecord`` table.  When given, each cell's
        ``pop_density`` is taken from it, and the forward fill is only used
        where it has no value.

    Returns
    -------
    pd.DataFrame
        One row per reference state and year, columns
        :data:`DENSITY_GRID_COLUMNS`, sorted by state then year.

    Raises
    ------
    MissingReferenceError
        If a station of *fuel_type* belongs to a state not in *reference*.

    Notes
    -----
    A state with no station of *fuel_type* gets ``station_density == 0``
    for every year; that is a valid result.
    """
    counts = count_stations(stations, fuel_type)
    observed_pop = _observed_pop_density(stations, fuel_type)
    known_pop = _population_lookup(population)

    ref_states = set(reference["state"])
    unknown = {state for state, _ in counts.index if state not in ref_states}
    if unknown:
        raise MissingReferenceError(unknown, context="station density aggregation")

    first, last = years
    rows: List[dict] = []
    for ref in reference.sort_values("state").itertuples(index=False):
        total = 0
        last_station_density = 0.0
        last_pop_density = 0.0
        for year in range(first, last + 1):
            key = (ref.state, year)
            n_opened = int(counts.get(key, 0))
            observed = n_opened > 0
            if observed:
                total += n_opened
                last_station_density = total / ref.land_area_sqmi
                last_pop_density = observed_pop.get(key, last_pop_density)
            pop_density = known_pop.get(key, last_pop_density)
            rows.append(
                {
                    "state": ref.state,
                    "state_name": ref.state_name,
                    "open_year": year,
                    "num_stations": n_opened,
                    "tot_stations": total,
                    "land_area_sqmi": float(ref.land_area_sqmi),
                    "pop_density": float(pop_density),
                    "station_density": last_station_density,
                    "filled": not observed,
                }
            )

    out_of_window = [y for _, y in counts.index if y < first or y > last]
    if out_of_window:
        log.warning(
            "Ignoring %d station-years outside %d-%d in density aggregation",
            len(out_of_window),
            first,
            last,
        )

    grid = pd.DataFrame(rows, columns=list(DENSITY_GRID_COLUMNS))
    grid = grid.astype({"open_year": "int64", "num_stations": "int64", "tot_stations": "int64"})
    log.info(
        "Aggregated %s station density: %d states x %d years, %d stations",
        FuelType.parse(fuel_type).value,
        len(reference),
        last - first + 1,
        int(grid.groupby("state")["tot_stations"].max().sum()) if len(grid) else 0,
    )
    return grid


def aggregate_by_fuel_type(
    stations: pd.DataFrame,
    reference: pd.DataFrame,
    fuel_types: Optional[Iterable[FuelType | str]] = None,
    *,
    years: Tuple[int, int] = DEFAULT_YEARS,
    population: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    Stack the density grids of several fuel types.

    Parameters
    ----------
    fuel_types : iterable of FuelType or str, optional
        Defaults to the seven known fuel codes.

    Returns
    -------
    pd.DataFrame
        :data:`DENSITY_GRID_COLUMNS` plus a leading ``fuel_type`` column.
    """
    types = [FuelType.parse(f) for f in (fuel_types or FuelType.known())]
    frames = []
    for fuel in types:
        grid = aggregate_station_density(
            stations, reference, fuel_type=fuel, years=years, population=population
        )
        grid.insert(0, "fuel_type", fuel.value)
        frames.append(grid)
    return pd.concat(frames, ignore_index=True)
