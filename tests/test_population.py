"""Tests for stationdensity.population."""

import pandas as pd
import pytest

from stationdensity.exceptions import PopulationCoverageError
from stationdensity.population import (
    DENSITY_COLUMNS,
    check_population_coverage,
    extract_single_year_population,
    melt_wide_population,
    reconcile_population_sources,
    resolve_population_density,
)


class TestMeltWidePopulation:
    def test_state_rows_only(self, wide_population):
        """Nation and region rows (SUMLEV 10/20) are discarded."""
        long = melt_wide_population(wide_population)
        assert list(long.columns) == ["state_name", "year", "population"]
        assert set(long["state_name"]) == {"California", "Texas", "District of Columbia"}
        assert len(long) == 3 * 10
        assert long["year"].min() == 2010
        assert long["year"].max() == 2019

    def test_values(self, wide_population):
        long = melt_wide_population(wide_population).set_index(["state_name", "year"])
        assert long.loc[("California", 2010), "population"] == 500
        assert long.loc[("Texas", 2019), "population"] == 2900

    def test_missing_name_column(self, wide_population):
        with pytest.raises(ValueError, match="NAME"):
            melt_wide_population(wide_population.drop(columns="NAME"))

    def test_no_year_columns(self):
        with pytest.raises(ValueError, match="POPESTIMATE"):
            melt_wide_population(pd.DataFrame({"SUMLEV": [40], "NAME": ["Ohio"]}))


class TestExtractSingleYear:
    def test_selects_2020_state_rows(self, single_year_population):
        records = extract_single_year_population(single_year_population)
        assert set(records["state_name"]) == {"California", "Texas", "District of Columbia"}
        assert (records["year"] == 2020).all()

    def test_thousands_separators_parsed(self, single_year_population):
        records = extract_single_year_population(single_year_population).set_index("state_name")
        assert records.loc["California", "population"] == 1000
        assert records.loc["Texas", "population"] == 3000

    def test_missing_column(self, single_year_population):
        with pytest.raises(ValueError, match="Geography Type"):
            extract_single_year_population(single_year_population.drop(columns="Geography Type"))


class TestReconcile:
    def test_no_overlap(self):
        wide = pd.DataFrame({"state_name": ["Ohio"], "year": [2019], "population": [10]})
        single = pd.DataFrame({"state_name": ["Ohio"], "year": [2020], "population": [11]})
        records, report = reconcile_population_sources(wide, single)
        assert len(records) == 2
        assert report.overlapping_keys == 0

    def test_single_year_wins_on_overlap(self):
        """A (state, year) in both sources keeps the single-year value once."""
        wide = pd.DataFrame(
            {"state_name": ["Ohio", "Ohio"], "year": [2019, 2020], "population": [10, 100]}
        )
        single = pd.DataFrame({"state_name": ["Ohio"], "year": [2020], "population": [110]})
        records, report = reconcile_population_sources(wide, single)
        assert len(records) == 2
        ohio_2020 = records.loc[records["year"] == 2020, "population"]
        assert list(ohio_2020) == [110]
        assert report.overlapping_keys == 1
        assert report.conflicting_keys == 1
        assert report.max_relative_diff == pytest.approx(0.1)
        assert report.preferred_source == "single_year"


class TestResolvePopulationDensity:
    def test_density_values(self, population_density):
        table = population_density.set_index(["state", "year"])
        assert table.loc[("CA", 2020), "pop_density"] == pytest.approx(10.0)
        assert table.loc[("TX", 2020), "pop_density"] == pytest.approx(15.0)
        assert table.loc[("CA", 2010), "pop_density"] == pytest.approx(5.0)

    def test_one_record_per_state_year(self, population_density):
        """Each reference state has exactly one record for each year 2010-2020."""
        assert list(population_density.columns) == list(DENSITY_COLUMNS)
        assert len(population_density) == 2 * 11
        assert not population_density.duplicated(["state_name", "year"]).any()
        assert population_density["population"].dtype == "int64"

    def test_unmatched_names_reported(self, small_reference, wide_population, single_year_population):
        """DC is not in the reference; the join drops it and says so."""
        result = resolve_population_density(wide_population, single_year_population, small_reference)
        (join,) = result.joins
        assert join.dropped_left == 11
        assert join.dropped_left_keys == ("District of Columbia",)
        assert "District of Columbia" not in set(result.table["state_name"])

    def test_overlapping_year_reconciled(self, small_reference, wide_population, single_year_population):
        wide = wide_population.assign(POPESTIMATE2020=999)
        result = resolve_population_density(wide, single_year_population, small_reference)
        assert result.reconciliation.overlapping_keys == 3
        assert result.reconciliation.conflicting_keys == 3
        table = result.table.set_index(["state", "year"])
        assert table.loc[("CA", 2020), "population"] == 1000
        assert len(result.table) == 22

    def test_year_window(self, small_reference, wide_population, single_year_population):
        result = resolve_population_density(
            wide_population, single_year_population, small_reference, years=(2012, 2015)
        )
        assert sorted(result.table["year"].unique()) == [2012, 2013, 2014, 2015]
        assert len(result.table) == 8

    def test_missing_state_year_raises(self, small_reference, wide_population, single_year_population):
        single = single_year_population.loc[single_year_population["Name"] != "Texas"]
        with pytest.raises(PopulationCoverageError) as exc:
            resolve_population_density(wide_population, single, small_reference)
        assert exc.value.missing == [("Texas", 2020)]

    def test_incomplete_allowed(self, small_reference, wide_population, single_year_population):
        single = single_year_population.loc[single_year_population["Name"] != "Texas"]
        result = resolve_population_density(
            wide_population, single, small_reference, require_complete=False
        )
        assert len(result.table) == 21

    def test_non_numeric_population_dropped(
        self, small_reference, wide_population, single_year_population
    ):
        wide = wide_population.copy()
        wide["POPESTIMATE2012"] = wide["POPESTIMATE2012"].astype(object)
        wide.loc[wide["NAME"] == "California", "POPESTIMATE2012"] = "n/a"
        result = resolve_population_density(
            wide, single_year_population, small_reference, require_complete=False
        )
        ca_years = set(result.table.loc[result.table["state"] == "CA", "year"])
        assert 2012 not in ca_years
        assert len(ca_years) == 10

    def test_negative_population_rejected(
        self, small_reference, wide_population, single_year_population
    ):
        wide = wide_population.copy()
        wide.loc[wide["NAME"] == "Texas", "POPESTIMATE2013"] = -5
        with pytest.raises(ValueError, match="Negative"):
            resolve_population_density(wide, single_year_population, small_reference)


class TestCheckCoverage:
    def test_duplicates_reported(self):
        table = pd.DataFrame({"state_name": ["Ohio", "Ohio"], "year": [2010, 2010]})
        with pytest.raises(PopulationCoverageError) as exc:
            check_population_coverage(table, ["Ohio"], (2010, 2010))
        assert exc.value.duplicated == [("Ohio", 2010)]
        assert exc.value.missing == []

    def test_complete(self):
        table = pd.DataFrame({"state_name": ["Ohio", "Ohio"], "year": [2010, 2011]})
        check_population_coverage(table, ["Ohio"], (2010, 2011))
