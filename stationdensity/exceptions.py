"""Exception hierarchy for stationdensity."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple


class StationDensityError(Exception):
    """Base exception for all stationdensity errors."""


class MissingReferenceError(StationDensityError, KeyError):
    """A state key has no entry in the state reference table.

    The reference table is static and assumed complete, so this signals a
    setup bug rather than a recoverable data condition.

    Parameters
    ----------
    keys : iterable of str
        State names or abbreviations that could not be resolved.
    context : str, optional
        Where the lookup happened (e.g. ``"density aggregation"``).
    """

    def __init__(self, keys: Iterable[str], context: str = "") -> None:
        self.keys: Tuple[str, ...] = tuple(sorted({str(k) for k in keys}))
        where = f" during {context}" if context else ""
        msg = (
            f"State(s) {list(self.keys)} not found in the state reference table{where}. "
            "Check the input state codes or pass a reference table that covers them."
        )
        super().__init__(msg)

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0])


class PopulationCoverageError(StationDensityError, ValueError):
    """Merged population data lacks a (state, year) pair it must contain.

    Parameters
    ----------
    missing : sequence of (state_name, year)
        Pairs absent after the merge.
    duplicated : sequence of (state_name, year), optional
        Pairs that appear more than once.
    """

    def __init__(
        self,
        missing: Sequence[Tuple[str, int]],
        duplicated: Optional[Sequence[Tuple[str, int]]] = None,
    ) -> None:
        self.missing = list(missing)
        self.duplicated = list(duplicated or [])
        parts = []
        if self.missing:
            preview = ", ".join(f"{s}/{y}" for s, y in self.missing[:10])
            more = f" (+{len(self.missing) - 10} more)" if len(self.missing) > 10 else ""
            parts.append(f"{len(self.missing)} missing state-years: {preview}{more}")
        if self.duplicated:
            preview = ", ".join(f"{s}/{y}" for s, y in self.duplicated[:10])
            parts.append(f"{len(self.duplicated)} duplicated state-years: {preview}")
        super().__init__("Population coverage check failed: " + "; ".join(parts))


class InsufficientDataError(StationDensityError, ValueError):
    """Too few usable points to fit the log-log regression.

    Parameters
    ----------
    n_points : int
        Number of rows left after excluding non-positive densities.
    year : int
        Year slice the fit was attempted on.
    reason : str, optional
        Extra detail (e.g. identical predictor values).
    """

    def __init__(self, n_points: int, year: int, reason: str = "") -> None:
        self.n_points = n_points
        self.year = year
        self.reason = reason or f"need at least 3 points with positive densities, got {n_points}"
        super().__init__(f"Cannot fit log-log regression for {year}: {self.reason}")
