"""
stationdensity command-line interface.

Wraps the pipeline: load (or download) the raw sources, run every stage,
write the output tables and print a report.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import click
import pandas as pd

from stationdensity.stations import FuelType

FUEL_CHOICES = [f.value for f in FuelType.known()]
FIT_COLUMNS = ("state", "open_year", "pop_density", "station_density")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug detail.")
def cli(verbose: bool) -> None:
    """Station density - alternative fuel stations vs population density."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory with the raw CSVs (default: STATIONDENSITY_DATA_DIR).",
)
@click.option("--fetch", is_flag=True, help="Download sources missing from the data directory.")
@click.option("--fuel-type", type=click.Choice(FUEL_CHOICES), default=None)
@click.option("--year", type=int, default=None, help="Regression year.")
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Write the output tables here as CSV.",
)
@click.option("--format", "fmt", type=click.Choice(["text", "json"]), default="text")
def run(
    data_dir: Optional[Path],
    fetch: bool,
    fuel_type: Optional[str],
    year: Optional[int],
    output_dir: Optional[Path],
    fmt: str,
) -> None:
    """Run the full pipeline and print a report."""
    from stationdensity.config import PipelineConfig
    from stationdensity.exceptions import StationDensityError
    from stationdensity.pipeline import run_from_sources
    from stationdensity.report import generate_json_report, generate_text_report
    from stationdensity.sources import load_sources

    config = PipelineConfig.from_env(data_dir=data_dir, fuel_type=fuel_type, regression_year=year)
    try:
        sources = load_sources(config, fetch=fetch)
        result = run_from_sources(sources, config)
    except (FileNotFoundError, StationDensityError) as e:
        raise click.ClickException(str(e)) from e

    if output_dir is not None:
        for path in result.write_tables(output_dir):
            click.echo(f"Wrote {path}", err=True)

    if fmt == "json":
        click.echo(generate_json_report(result))
    else:
        click.echo(generate_text_report(result))


@cli.command()
@click.argument("density_csv", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--year", type=int, default=2020, show_default=True)
@click.option("--confidence", type=float, default=0.95, show_default=True)
def fit(density_csv: Path, year: int, confidence: float) -> None:
    """Fit the log-log regression on a station density CSV.

    Parameters
    ----------
    density_csv : Path
        Output ``station_density.csv`` of a previous run.
    """
    from stationdensity.exceptions import InsufficientDataError
    from stationdensity.regression import fit_log_log

    density = pd.read_csv(density_csv)
    missing = [c for c in FIT_COLUMNS if c not in density.columns]
    if missing:
        raise click.ClickException(
            f"{density_csv} is not a station density table; missing columns {missing}"
        )
    try:
        result = fit_log_log(density, year=year, confidence=confidence)
    except InsufficientDataError as e:
        click.echo(f"Fit failed: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"Slope:      {result.slope:.4f}")
    click.echo(f"Intercept:  {result.intercept:.4f}")
    click.echo(f"R-squared:  {result.r_squared:.4f}")
    click.echo(f"p-value:    {result.p_value:.3g}")
    click.echo(f"{result.confidence:.0%} CI:    [{result.ci_low:.4f}, {result.ci_high:.4f}]")
    click.echo(result.interpretation())


if __name__ == "__main__":
    cli()
