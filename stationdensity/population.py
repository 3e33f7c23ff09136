"""
stationdensity.population - Yearly state population density series.

Merges two Census Bureau population sources into one
``PopulationDensityRecord`` table:

* a **wide** table with one ``POPESTIMATE<year>`` column per year
  (``nst-est2019-alldata.csv``: 2010-2019), one row per geography, where
  ``SUMLEV == 40`` marks state rows and 10/20 mark the nation and regions;
* a **single-year** table (``apportionment.csv``) with one row per
  geography and year, tagged by ``Geography Type``.

The wide table is melted to one row per (state, year), the 2020 state rows
of the single-year table are appended, overlaps are reconciled, and the
result is joined to the state reference by name to attach land area::

    pop_density = population / land_area_sqmi

Names that do not match the reference (District of Columbia, Puerto Rico)
are dropped by the inner join and counted in a
:class:`~stationdensity.joins.JoinReport`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np
import pandas as pd

from stationdensity.exceptions import PopulationCoverageError
from stationdensity.joins import JoinReport, tracked_merge

log = logging.getLogger(__name__)

DEFAULT_YEARS: Tuple[int, int] = (2010, 2020)

# Wide (vintage 2019 estimates) layout
WIDE_NAME_COL = "NAME"
WIDE_GEO_CODE_COL = "SUMLEV"
WIDE_STATE_CODE = 40
WIDE_YEAR_COL_RE = re.compile(r"^POPESTIMATE(\d{4})$")

# Single-year (2020 apportionment) layout
SINGLE_NAME_COL = "Name"
SINGLE_GEO_TYPE_COL = "Geography Type"
SINGLE_YEAR_COL = "Year"
SINGLE_POP_COL = "Resident Population"
SINGLE_STATE_TAG = "State"
SINGLE_YEAR = 2020

POPULATION_COLUMNS: Tuple[str, ...] = ("state_name", "year", "population")
DENSITY_COLUMNS: Tuple[str, ...] = (
    "state_name",
    "state",
    "year",
    "population",
    "land_area_sqmi",
    "pop_density",
)


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReconciliationReport:
    """How overlapping (state, year) keys between the two sources were resolved.

    Parameters
    ----------
    overlapping_keys : int
        Number of (state, year) pairs present in both sources.
    conflicting_keys : int
        Overlapping pairs whose populations differ.
    max_relative_diff : float
        Largest ``|single - wide| / wide`` among overlapping pairs.
    preferred_source : str
        Source whose value was kept for overlapping pairs.
    """

    overlapping_keys: int = 0
    conflicting_keys: int = 0
    max_relative_diff: float = 0.0
    preferred_source: str = "single_year"

    def to_dict(self) -> dict:
        return {
            "overlapping_keys": self.overlapping_keys,
            "conflicting_keys": self.conflicting_keys,
            "max_relative_diff": self.max_relative_diff,
            "preferred_source": self.preferred_source,
        }


@dataclass(frozen=True)
class PopulationDensityResult:
    """Output of :func:`resolve_population_density`.

    Parameters
    ----------
    table : pd.DataFrame
        ``PopulationDensityRecord`` rows sorted by state name and year.
    joins : tuple of JoinReport
        Accounting for the join against the state reference.
    reconciliation : ReconciliationReport
        Overlap handling between the two sources.
    """

    table: pd.DataFrame
    joins: Tuple[JoinReport, ...] = field(default_factory=tuple)
    reconciliation: ReconciliationReport = field(default_factory=ReconciliationReport)


# ---------------------------------------------------------------------------
# Source extraction
# ---------------------------------------------------------------------------


def _to_population(values: pd.Series) -> pd.Series:
    """Numeric population; accepts strings with thousands separators."""
    if not pd.api.types.is_numeric_dtype(values):
        values = values.astype(str).str.replace(",", "", regex=False).str.strip()
    return pd.to_numeric(values, errors="coerce")


def melt_wide_population(wide: pd.DataFrame) -> pd.DataFrame:
    """
    Reshape the wide estimates table to one row per (state, year).

    Parameters
    ----------
    wide : pd.DataFrame
        One row per geography with ``SUMLEV``, ``NAME`` and
        ``POPESTIMATE<year>`` columns.

    Returns
    -------
    pd.DataFrame
        Columns ``state_name``, ``year``, ``population`` for state rows
        only (``SUMLEV == 40``).

    Raises
    ------
    ValueError
        If the geography code, name, or any year column is missing.
    """
    for col in (WIDE_GEO_CODE_COL, WIDE_NAME_COL):
        if col not in wide.columns:
            raise ValueError(f"Wide population table has no {col!r} column")
    year_cols = [c for c in wide.columns if WIDE_YEAR_COL_RE.match(str(c))]
    if not year_cols:
        raise ValueError("Wide population table has no POPESTIMATE<year> columns")

    geo_code = pd.to_numeric(wide[WIDE_GEO_CODE_COL], errors="coerce")
    states = wide.loc[geo_code == WIDE_STATE_CODE, [WIDE_NAME_COL] + year_cols]
    log.debug("Wide population: %d of %d rows are states", len(states), len(wide))

    long = states.melt(id_vars=WIDE_NAME_COL, var_name="column", value_name="population")
    year = long["column"].astype(str).str.extract(WIDE_YEAR_COL_RE.pattern, expand=False)
    long["year"] = year.astype("int64")
    long["population"] = _to_population(long["population"])
    long["state_name"] = long[WIDE_NAME_COL].astype(str).str.strip()
    return long.loc[:, list(POPULATION_COLUMNS)]


def extract_single_year_population(
    single_year: pd.DataFrame, year: int = SINGLE_YEAR
) -> pd.DataFrame:
    """
    Pull the state rows for *year* out of the single-year table.

    Returns
    -------
    pd.DataFrame
        Columns ``state_name``, ``year``, ``population``.
    """
    required = (SINGLE_NAME_COL, SINGLE_GEO_TYPE_COL, SINGLE_YEAR_COL, SINGLE_POP_COL)
    missing = [c for c in required if c not in single_year.columns]
    if missing:
        raise ValueError(f"Single-year population table missing columns: {missing}")

    is_state = single_year[SINGLE_GEO_TYPE_COL].astype(str).str.strip() == SINGLE_STATE_TAG
    in_year = pd.to_numeric(single_year[SINGLE_YEAR_COL], errors="coerce") == year
    rows = single_year.loc[is_state & in_year]
    return pd.DataFrame(
        {
            "state_name": rows[SINGLE_NAME_COL].astype(str).str.strip().to_numpy(),
            "year": np.full(len(rows), year, dtype="int64"),
            "population": _to_population(rows[SINGLE_POP_COL]).to_numpy(),
        }
    )


def reconcile_population_sources(
    wide_records: pd.DataFrame, single_records: pd.DataFrame
) -> Tuple[pd.DataFrame, ReconciliationReport]:
    """
    Concatenate the two record sets, keeping the single-year value for any
    (state, year) present in both.

    Returns
    -------
    (pd.DataFrame, ReconciliationReport)
    """
    keys = ["state_name", "year"]
    overlap = pd.merge(wide_records, single_records, on=keys, suffixes=("_wide", "_single"))
    conflicting = 0
    max_diff = 0.0
    if len(overlap):
        diff = (overlap["population_single"] - overlap["population_wide"]).abs()
        conflicting = int((diff > 0).sum())
        base = overlap["population_wide"].where(overlap["population_wide"] != 0)
        rel = (diff / base).dropna()
        max_diff = float(rel.max()) if len(rel) else 0.0
        log.warning(
            "Population sources overlap on %d state-years (%d disagree, max relative diff %.4f); "
            "keeping single-year values",
            len(overlap),
            conflicting,
            max_diff,
        )

    single_keys = pd.MultiIndex.from_frame(single_records[keys])
    wide_keys = pd.MultiIndex.from_frame(wide_records[keys])
    kept_wide = wide_records.loc[~wide_keys.isin(single_keys)]
    records = pd.concat([kept_wide, single_records], ignore_index=True)
    report = ReconciliationReport(
        overlapping_keys=len(overlap),
        conflicting_keys=conflicting,
        max_relative_diff=max_diff,
    )
    return records, report


def check_population_coverage(
    table: pd.DataFrame, state_names: List[str], years: Tuple[int, int]
) -> None:
    """
    Raise :class:`PopulationCoverageError` unless every state in
    *state_names* has exactly one row for every year in *years*.
    """
    counts = table.groupby(["state_name", "year"]).size()
    missing = []
    for name in sorted(state_names):
        for year in range(years[0], years[1] + 1):
            if (name, year) not in counts.index:
                missing.append((name, year))
    duplicated = [key for key, n in counts.items() if n > 1]
    if missing or duplicated:
        raise PopulationCoverageError(missing, duplicated)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


def resolve_population_density(
    wide: pd.DataFrame,
    single_year: pd.DataFrame,
    reference: pd.DataFrame,
    *,
    years: Tuple[int, int] = DEFAULT_YEARS,
    require_complete: bool = True,
    single_year_value: int = SINGLE_YEAR,
) -> PopulationDensityResult:
    """
    Merge both population sources into a yearly state density table.

    Parameters
    ----------
    wide : pd.DataFrame
        Wide 2010-2019 estimates table.
    single_year : pd.DataFrame
        Single-year (2020) table with a ``Geography Type`` tag.
    reference : pd.DataFrame
        ``StateReference`` table (``state_name``, ``state``,
        ``land_area_sqmi``).
    years : tuple of int
        Inclusive year window kept in the output.
    require_complete : bool
        If True, every reference state must have exactly one record per
        year of the window.
    single_year_value : int
        Year selected from the single-year table.

    Returns
    -------
    PopulationDensityResult

    Raises
    ------
    PopulationCoverageError
        If *require_complete* and a (state, year) is missing or duplicated.
    ValueError
        If a source lacks a required column or has a negative population.
    """
    wide_records = melt_wide_population(wide)
    single_records = extract_single_year_population(single_year, single_year_value)
    records, reconciliation = reconcile_population_sources(wide_records, single_records)

    in_window = records["year"].between(years[0], years[1])
    if (~in_window).any():
        log.debug("Discarding %d population records outside %s", int((~in_window).sum()), years)
    records = records.loc[in_window]

    unknown_pop = records["population"].isna()
    if unknown_pop.any():
        log.warning(
            "Discarding %d population records with non-numeric values: %s",
            int(unknown_pop.sum()),
            sorted(records.loc[unknown_pop, "state_name"].unique())[:8],
        )
        records = records.loc[~unknown_pop]
    if (records["population"] < 0).any():
        bad = sorted(records.loc[records["population"] < 0, "state_name"].unique())
        raise ValueError(f"Negative population values for: {bad}")
    records = records.assign(population=records["population"].round().astype("int64"))

    joined, report = tracked_merge(
        records,
        reference.loc[:, ["state_name", "state", "land_area_sqmi"]],
        name="population x state reference",
        on="state_name",
        validate="many_to_one",
    )
    joined["pop_density"] = joined["population"] / joined["land_area_sqmi"]
    table = (
        joined.loc[:, list(DENSITY_COLUMNS)]
        .sort_values(["state_name", "year"])
        .reset_index(drop=True)
    )

    if require_complete:
        check_population_coverage(table, list(reference["state_name"]), years)

    log.info(
        "Resolved %d population density records for %d states, %d-%d",
        len(table),
        table["state_name"].nunique(),
        years[0],
        years[1],
    )
    return PopulationDensityResult(table=table, joins=(report,), reconciliation=reconciliation)
