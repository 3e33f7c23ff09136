"""
stationdensity.regression - Log-log OLS of station density on population density.

For one year of the density grid the fitted model is::

    log10(station_density) = slope * log10(pop_density) + intercept

Interpretation
--------------
Both axes are log10-transformed, so the slope is an **elasticity**: a 1%
increase in population density corresponds to approximately ``slope``%
increase in station density.  It is *not* a per-unit slope and must not be
reported as "stations per person".

States with a zero (or negative) density cannot be log-transformed; they
are excluded from the fit and listed in :attr:`RegressionResult.excluded`
rather than turned into NaN.  Fewer than three usable states raise
:class:`~stationdensity.exceptions.InsufficientDataError`.

References
----------
Draper, N.R., and Smith, H., 1998, Applied Regression Analysis, 3rd ed.:
Wiley, ch. 1 (slope confidence interval from the t distribution).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from stationdensity.exceptions import InsufficientDataError

log = logging.getLogger(__name__)

MIN_POINTS = 3


@dataclass(frozen=True)
class RegressionResult:
    """
    Fitted log10-log10 regression for one year.

    Parameters
    ----------
    slope : float
        Elasticity of station density with respect to population density.
    intercept : float
        log10(station_density) at ``pop_density == 1``.
    r_squared : float
        Coefficient of determination of the log-space fit.
    p_value : float
        Two-sided p-value for the null hypothesis ``slope == 0``.
    ci_low, ci_high : float
        Confidence interval for the slope.
    slope_stderr : float
        Standard error of the slope.
    n_points : int
        States used in the fit.
    year : int
        Year slice that was fitted.
    confidence : float
        Confidence level of ``(ci_low, ci_high)``.
    excluded : tuple of str
        States left out because a density was <= 0.
    """

    slope: float
    intercept: float
    r_squared: float
    p_value: float
    ci_low: float
    ci_high: float
    slope_stderr: float = 0.0
    n_points: int = 0
    year: int = 0
    confidence: float = 0.95
    excluded: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def confidence_interval(self) -> Tuple[float, float]:
        return (self.ci_low, self.ci_high)

    def interpretation(self) -> str:
        """Plain-language reading of the slope as an elasticity."""
        return (
            f"A 1% increase in population density corresponds to approximately "
            f"{self.slope:.2f}% increase in station density ({self.year}; "
            f"{self.confidence:.0%} CI {self.ci_low:.2f} to {self.ci_high:.2f})."
        )

    def predict(self, pop_density) -> np.ndarray:
        """Back-transformed station density for the given population density."""
        x = np.log10(np.asarray(pop_density, dtype=float))
        return 10.0 ** (self.intercept + self.slope * x)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "slope": self.slope,
            "intercept": self.intercept,
            "r_squared": self.r_squared,
            "p_value": self.p_value,
            "ci_low": self.ci_low,
            "ci_high": self.ci_high,
            "slope_stderr": self.slope_stderr,
            "confidence": self.confidence,
            "n_points": self.n_points,
            "excluded": list(self.excluded),
        }


def log_log_points(
    density: pd.DataFrame, year: int
) -> Tuple[pd.DataFrame, Tuple[str, ...]]:
    """
    Rows of *density* for *year* that can be log-transformed.

    Returns
    -------
    (pd.DataFrame, tuple of str)
        Usable rows with ``log_pop_density`` and ``log_station_density``
        columns added, and the states excluded for non-positive densities.
    """
    rows = density.loc[density["open_year"] == year]
    positive = (rows["pop_density"] > 0) & (rows["station_density"] > 0)
    excluded = tuple(sorted(rows.loc[~positive, "state"].astype(str)))
    usable = rows.loc[positive].assign(
        log_pop_density=lambda d: np.log10(d["pop_density"].astype(float)),
        log_station_density=lambda d: np.log10(d["station_density"].astype(float)),
    )
    return usable, excluded


def fit_log_log(
    density: pd.DataFrame,
    *,
    year: int = 2020,
    confidence: float = 0.95,
) -> RegressionResult:
    """
    Fit ``log10(station_density) ~ log10(pop_density)`` for one year.

    Parameters
    ----------
    density : pd.DataFrame
        ``StationDensityRecord`` grid (``state``, ``open_year``,
        ``pop_density``, ``station_density``).
    year : int
        Year slice to fit.
    confidence : float
        Confidence level of the slope interval (two-sided).

    Returns
    -------
    RegressionResult

    Raises
    ------
    InsufficientDataError
        If fewer than three states have positive densities in *year*, or
        all their population densities are identical.
    """
    if not 0.0 < confidence < 1.0:
        raise ValueError(f"confidence must be in (0, 1), got {confidence}")

    usable, excluded = log_log_points(density, year)
    if excluded:
        log.warning(
            "Excluding %d state(s) with zero density from the %d fit: %s",
            len(excluded),
            year,
            ", ".join(excluded),
        )

    n = len(usable)
    if n < MIN_POINTS:
        raise InsufficientDataError(n, year)

    x = usable["log_pop_density"].to_numpy()
    y = usable["log_station_density"].to_numpy()
    if np.ptp(x) == 0.0:
        raise InsufficientDataError(n, year, reason="all population densities are identical")

    fit = stats.linregress(x, y)
    dof = n - 2
    t_crit = stats.t.ppf(1.0 - (1.0 - confidence) / 2.0, dof)
    half_width = t_crit * fit.stderr

    result = RegressionResult(
        slope=float(fit.slope),
        intercept=float(fit.intercept),
        r_squared=float(fit.rvalue**2),
        p_value=float(fit.pvalue),
        ci_low=float(fit.slope - half_width),
        ci_high=float(fit.slope + half_width),
        slope_stderr=float(fit.stderr),
        n_points=n,
        year=int(year),
        confidence=confidence,
        excluded=excluded,
    )
    log.info(
        "Log-log fit %d: slope=%.4f intercept=%.4f R2=%.4f (n=%d)",
        year,
        result.slope,
        result.intercept,
        result.r_squared,
        n,
    )
    return result


def fit_by_year(
    density: pd.DataFrame,
    years: Optional[Iterable[int]] = None,
    *,
    confidence: float = 0.95,
) -> pd.DataFrame:
    """
    Fit each year of the grid independently.

    Parameters
    ----------
    density : pd.DataFrame
        ``StationDensityRecord`` grid.
    years : iterable of int, optional
        Years to fit (default: every year in the grid).
    confidence : float
        Confidence level of the slope intervals.

    Returns
    -------
    pd.DataFrame
        One row per year with the :meth:`RegressionResult.to_dict` fields,
        plus an ``error`` column holding the failure reason for years that
        could not be fitted.
    """
    if years is None:
        years = sorted(density["open_year"].unique())

    rows = []
    for year in years:
        try:
            row = fit_log_log(density, year=int(year), confidence=confidence).to_dict()
            row["error"] = None
        except InsufficientDataError as e:
            row = {"year": int(year), "n_points": e.n_points, "error": e.reason}
        rows.append(row)
    return pd.DataFrame(rows)
