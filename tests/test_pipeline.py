"""End-to-end tests for stationdensity.pipeline."""

import pandas as pd
import pytest

from stationdensity.config import PipelineConfig
from stationdensity.pipeline import run_from_sources, run_pipeline
from stationdensity.sources import RawSources


class TestRunPipeline:
    def test_four_state_run(self, pipeline_inputs):
        stations, wide, single, reference = pipeline_inputs
        result = run_pipeline(stations, wide, single, reference=reference)

        assert len(result.reference) == 4
        assert len(result.population.table) == 4 * 11
        assert result.stations.input_rows == 22
        assert result.stations.unparsable_dates == 1
        assert result.stations.outside_bbox == 0
        assert len(result.stations.table) == 19
        assert len(result.density) == 4 * 11

        density_2020 = result.density.loc[result.density["open_year"] == 2020].set_index("state")
        assert density_2020.loc["CA", "station_density"] == pytest.approx(0.05)
        assert density_2020.loc["NY", "station_density"] == pytest.approx(0.075)
        assert density_2020.loc["OH", "station_density"] == pytest.approx(0.02)
        assert density_2020.loc["TX", "station_density"] == pytest.approx(0.02)
        # NY last opened stations in 2016: (2000 + 40 * 6) people on 80 sq mi
        assert density_2020.loc["NY", "pop_density"] == pytest.approx(28.0)

        assert result.regression is not None
        assert result.regression_error is None
        assert result.regression.n_points == 4
        assert result.regression.year == 2020

    def test_pop_density_forward_filled(self, small_reference, wide_population,
                                        single_year_population, make_stations):
        """Population density is carried from the last station year and is 0 before it."""
        stations = make_stations([("CA", "ELEC", "2012-06-01", 3), ("TX", "ELEC", "2012-06-01", 1)])
        result = run_pipeline(
            stations, wide_population, single_year_population, reference=small_reference
        )
        ca = result.density.loc[result.density["state"] == "CA"].set_index("open_year")
        assert list(ca.loc[[2010, 2012, 2015, 2020], "pop_density"]) == [0.0, 6.0, 6.0, 6.0]
        tx = result.density.loc[result.density["state"] == "TX"].set_index("open_year")
        assert tx.loc[2011, "pop_density"] == 0.0
        assert tx.loc[2020, "pop_density"] == pytest.approx(11.0)

    def test_pop_density_from_table_opt_in(self, small_reference, wide_population,
                                           single_year_population, make_stations):
        stations = make_stations([("CA", "ELEC", "2012-06-01", 3)])
        config = PipelineConfig(population_from_table=True)
        result = run_pipeline(
            stations, wide_population, single_year_population, config, reference=small_reference
        )
        ca = result.density.loc[result.density["state"] == "CA"].set_index("open_year")
        assert ca.loc[[2010, 2012, 2015, 2020], "pop_density"].tolist() == pytest.approx(
            [5.0, 6.0, 7.5, 10.0]
        )

    def test_invalid_reference_rejected(self, small_reference, wide_population,
                                        single_year_population, make_stations):
        stations = make_stations([("CA", "ELEC", "2012-06-01", 1)])
        duplicated = pd.concat([small_reference, small_reference.iloc[:1]], ignore_index=True)
        with pytest.raises(ValueError, match="Duplicate state"):
            run_pipeline(stations, wide_population, single_year_population, reference=duplicated)
        with pytest.raises(ValueError, match="missing columns"):
            run_pipeline(
                stations,
                wide_population,
                single_year_population,
                reference=small_reference.drop(columns="land_area_sqmi"),
            )

    def test_join_losses_exposed(self, pipeline_inputs):
        stations, wide, single, reference = pipeline_inputs
        result = run_pipeline(stations, wide, single, reference=reference)
        pop_join, station_join = result.joins
        assert pop_join.dropped_left_keys == ("District of Columbia",)
        assert station_join.dropped_left == 2
        assert station_join.dropped_left_keys == (("DC", 2015),)

    def test_regression_failure_recorded(self, small_reference, wide_population,
                                         single_year_population, make_stations):
        """Two states cannot be fitted; the tables are still returned."""
        stations = make_stations([("CA", "ELEC", "2020-01-01", 5), ("TX", "ELEC", "2020-01-01", 2)])
        result = run_pipeline(
            stations, wide_population, single_year_population, reference=small_reference
        )
        assert result.regression is None
        assert "need at least 3 points" in result.regression_error
        assert len(result.density) == 2 * 11
        assert "regression" not in result.tables()

    def test_config_fuel_type(self, pipeline_inputs):
        stations, wide, single, reference = pipeline_inputs
        config = PipelineConfig(fuel_type="CNG")
        result = run_pipeline(stations, wide, single, config, reference=reference)
        totals = result.density.groupby("state")["tot_stations"].max()
        assert totals.to_dict() == {"CA": 0, "NY": 0, "OH": 0, "TX": 3}
        assert result.regression is None

    def test_inputs_not_modified(self, pipeline_inputs):
        stations, wide, single, reference = pipeline_inputs
        copies = [df.copy() for df in pipeline_inputs]
        run_pipeline(stations, wide, single, reference=reference)
        for before, after in zip(copies, pipeline_inputs):
            pd.testing.assert_frame_equal(before, after)

    def test_write_tables(self, pipeline_inputs, tmp_path):
        stations, wide, single, reference = pipeline_inputs
        result = run_pipeline(stations, wide, single, reference=reference)
        written = result.write_tables(tmp_path / "out")
        names = sorted(p.name for p in written)
        assert names == [
            "population_density.csv",
            "regression.csv",
            "state_reference.csv",
            "station_density.csv",
            "stations.csv",
        ]
        density = pd.read_csv(tmp_path / "out" / "station_density.csv")
        assert len(density) == 44

    def test_run_from_sources(self, pipeline_inputs, monkeypatch):
        stations, wide, single, reference = pipeline_inputs
        sources = RawSources(stations=stations, population_wide=wide, population_2020=single)
        # The default reference needs all 50 states, so swap in the four-state one
        monkeypatch.setattr(
            "stationdensity.pipeline.build_state_reference", lambda: reference
        )
        result = run_from_sources(sources)
        assert result.regression is not None
