"""
Shared synthetic tables for the stationdensity tests.

Populations and station counts are invented so that densities come out as
round numbers; they are not real Census or AFDC values.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

import pandas as pd
import pytest

from stationdensity.reference import StateInfo, build_state_reference


def _wide_table(populations: Dict[str, Sequence[int]]) -> pd.DataFrame:
    """Wide 2010-2019 table with nation/region rows plus one row per name."""
    rows = [
        {"SUMLEV": 10, "REGION": "0", "NAME": "United States"},
        {"SUMLEV": 20, "REGION": "4", "NAME": "West Region"},
    ]
    for row in rows:
        for i, year in enumerate(range(2010, 2020)):
            row[f"POPESTIMATE{year}"] = 1_000_000 + i
    for name, pops in populations.items():
        row = {"SUMLEV": 40, "REGION": "4", "NAME": name}
        for year, pop in zip(range(2010, 2020), pops[:10]):
            row[f"POPESTIMATE{year}"] = pop
        rows.append(row)
    df = pd.DataFrame(rows)
    df["CENSUS2010POP"] = 0
    return df


def _single_year_table(populations: Dict[str, Sequence[int]]) -> pd.DataFrame:
    rows = [
        {"Name": "United States", "Geography Type": "Nation", "Year": 2020,
         "Resident Population": "331,449,281"},
        {"Name": "West Region", "Geography Type": "Region", "Year": 2020,
         "Resident Population": "78,588,572"},
    ]
    for name, pops in populations.items():
        rows.append(
            {"Name": name, "Geography Type": "State", "Year": 2020,
             "Resident Population": f"{pops[10]:,}"}
        )
        # Earlier decennial rows must be ignored
        rows.append(
            {"Name": name, "Geography Type": "State", "Year": 2010,
             "Resident Population": f"{pops[0] + 1:,}"}
        )
    return pd.DataFrame(rows)


@pytest.fixture
def small_states() -> List[StateInfo]:
    return [StateInfo("California", "CA", 100.0), StateInfo("Texas", "TX", 200.0)]


@pytest.fixture
def small_reference(small_states) -> pd.DataFrame:
    """CA (area 100) and TX (area 200)."""
    return build_state_reference(small_states)


@pytest.fixture
def small_populations() -> Dict[str, List[int]]:
    """CA grows 500 -> 950 then 1000 in 2020; TX 2000 -> 2900 then 3000."""
    return {
        "California": [500 + 50 * i for i in range(10)] + [1000],
        "Texas": [2000 + 100 * i for i in range(10)] + [3000],
        "District of Columbia": [600 + i for i in range(11)],
    }


@pytest.fixture
def make_wide():
    return _wide_table


@pytest.fixture
def make_single_year():
    return _single_year_table


@pytest.fixture
def wide_population(small_populations) -> pd.DataFrame:
    return _wide_table(small_populations)


@pytest.fixture
def single_year_population(small_populations) -> pd.DataFrame:
    return _single_year_table(small_populations)


def _station_rows(groups: Sequence[Tuple[str, str, str, int]], lat: float = 35.0, lon: float = -100.0):
    """Rows in AFDC export layout from (state, fuel, open date, count) tuples."""
    rows = []
    for state, fuel, opened, count in groups:
        for i in range(count):
            rows.append(
                {
                    "Fuel Type Code": fuel,
                    "Station Name": f"{state} station {i}",
                    "City": "Somewhere",
                    "State": state,
                    "Latitude": lat,
                    "Longitude": lon,
                    "Open Date": opened,
                }
            )
    return pd.DataFrame(
        rows,
        columns=[
            "Fuel Type Code",
            "Station Name",
            "City",
            "State",
            "Latitude",
            "Longitude",
            "Open Date",
        ],
    )


@pytest.fixture
def make_stations():
    return _station_rows


@pytest.fixture
def population_density(small_reference, wide_population, single_year_population) -> pd.DataFrame:
    from stationdensity.population import resolve_population_density

    return resolve_population_density(wide_population, single_year_population, small_reference).table


@pytest.fixture
def four_states() -> List[StateInfo]:
    return [
        StateInfo("California", "CA", 100.0),
        StateInfo("New York", "NY", 80.0),
        StateInfo("Ohio", "OH", 50.0),
        StateInfo("Texas", "TX", 200.0),
    ]


@pytest.fixture
def pipeline_inputs(four_states, small_populations, make_stations):
    """(stations, wide, single_year, reference) for a four-state run.

    2020 population densities are CA 10, NY 30, OH 8, TX 15.
    """
    populations = dict(small_populations)
    populations["Ohio"] = [300 + 10 * i for i in range(10)] + [400]
    populations["New York"] = [2000 + 40 * i for i in range(10)] + [2400]
    stations = make_stations(
        [
            ("CA", "ELEC", "2012-04-01", 2),
            ("CA", "ELEC", "2020-04-01", 3),
            ("NY", "ELEC", "2016-07-15", 6),
            ("OH", "ELEC", "2019-01-20", 1),
            ("TX", "ELEC", "2014-10-01", 4),
            ("TX", "CNG", "2014-10-01", 3),
            ("DC", "ELEC", "2015-01-01", 2),
            ("CA", "ELEC", "bad date", 1),
        ]
    )
    return (
        stations,
        _wide_table(populations),
        _single_year_table(populations),
        build_state_reference(four_states),
    )
