"""
Report generation for pipeline runs.

Produces text and JSON summaries of a :class:`PipelineResult`: stage row
counts, the rows every join dropped, and the regression or its failure.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from stationdensity.pipeline import PipelineResult

logger = logging.getLogger(__name__)


def generate_text_report(result: PipelineResult) -> str:
    """Generate a plain-text pipeline report.

    Parameters
    ----------
    result : PipelineResult
        Output of :func:`stationdensity.pipeline.run_pipeline`.

    Returns
    -------
    str
        Formatted text report.
    """
    config = result.config
    stations = result.stations
    lines: list[str] = []
    lines.append("Station Density Report")
    lines.append("=" * 40)
    lines.append(f"Fuel type: {config.fuel_type.value}")
    lines.append(f"Years: {config.years[0]}-{config.years[1]}")
    lines.append("")

    lines.append("Stages:")
    lines.append(f"  States in reference: {len(result.reference)}")
    lines.append(f"  Population density records: {len(result.population.table)}")
    lines.append(f"  Station rows in: {stations.input_rows}")
    lines.append(f"    unparsable open dates: {stations.unparsable_dates}")
    lines.append(f"    outside bounding box: {stations.outside_bbox}")
    lines.append(f"  Station rows kept: {len(stations.table)}")
    lines.append(f"  Density grid rows: {len(result.density)}")
    lines.append("")

    lines.append("Joins:")
    for join in result.joins:
        status = "OK" if join.lossless else "LOSS"
        lines.append(f"  [{status}] {join.summary}")
        if join.dropped_left_keys:
            preview = ", ".join(str(k) for k in join.dropped_left_keys[:10])
            more = " ..." if len(join.dropped_left_keys) > 10 else ""
            lines.append(f"    dropped keys: {preview}{more}")

    recon = result.population.reconciliation
    if recon.overlapping_keys:
        lines.append(
            f"  Population source overlap: {recon.overlapping_keys} state-years "
            f"({recon.conflicting_keys} conflicting, kept {recon.preferred_source})"
        )
    lines.append("")

    lines.append(f"Log-log regression ({config.regression_year}):")
    reg = result.regression
    if reg is None:
        lines.append(f"  FAILED: {result.regression_error}")
    else:
        lines.append(f"  Slope: {reg.slope:.4f}")
        lines.append(f"  Intercept: {reg.intercept:.4f}")
        lines.append(f"  R-squared: {reg.r_squared:.4f}")
        lines.append(f"  p-value: {reg.p_value:.3g}")
        lines.append(f"  {reg.confidence:.0%} CI: [{reg.ci_low:.4f}, {reg.ci_high:.4f}]")
        lines.append(f"  Points: {reg.n_points}")
        if reg.excluded:
            lines.append(f"  Excluded (zero density): {', '.join(reg.excluded)}")
        lines.append(f"  {reg.interpretation()}")

    return "\n".join(lines)


def generate_json_report(result: PipelineResult) -> str:
    """Generate a JSON pipeline report.

    Parameters
    ----------
    result : PipelineResult

    Returns
    -------
    str
        JSON string.
    """
    stations = result.stations
    report: dict[str, Any] = {
        "fuel_type": result.config.fuel_type.value,
        "years": list(result.config.years),
        "rows": {
            "state_reference": len(result.reference),
            "population_density": len(result.population.table),
            "stations_in": stations.input_rows,
            "stations_kept": len(stations.table),
            "station_density": len(result.density),
        },
        "exclusions": {
            "unparsable_dates": stations.unparsable_dates,
            "outside_bbox": stations.outside_bbox,
        },
        "joins": [j.to_dict() for j in result.joins],
        "population_reconciliation": result.population.reconciliation.to_dict(),
        "regression": None,
        "regression_error": result.regression_error,
    }
    if result.regression is not None:
        report["regression"] = result.regression.to_dict()
        report["regression"]["interpretation"] = result.regression.interpretation()

    return json.dumps(report, indent=2)
