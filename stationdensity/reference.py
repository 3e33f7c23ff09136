"""
stationdensity.reference - Static state name / abbreviation / land-area lookup.

:class:`StateInfo` describes one US state.  The 50 states ship as the
module-level tuple :data:`US_STATES`; :func:`build_state_reference` turns
them (or any subset) into the ``StateReference`` table every other stage
joins against.

Land areas are US Census Bureau 2010 land area in square miles (water
excluded), so densities are people or stations per square mile of land.

Columns of the reference table
------------------------------
================  =============================================
Column            Description
================  =============================================
state_name        Full state name, e.g. ``"California"``
state             Two-letter USPS abbreviation, e.g. ``"CA"``
land_area_sqmi    Land area (sq mi), strictly positive
================  =============================================
"""

from __future__ import annotations

import csv
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import pandas as pd

from stationdensity.exceptions import MissingReferenceError

log = logging.getLogger(__name__)

REFERENCE_COLUMNS: Tuple[str, ...] = ("state_name", "state", "land_area_sqmi")

_ABBR_RE = re.compile(r"^[A-Z]{2}$")


@dataclass(frozen=True)
class StateInfo:
    """
    One row of the state reference table.

    Instances are **hashable** and can be used as dictionary keys.

    Parameters
    ----------
    name : str
        Full state name, matched exactly against population sources.
    abbreviation : str
        Two-letter USPS code, matched against station records.
    land_area_sqmi : float
        Land area in square miles (> 0).
    """

    name: str
    abbreviation: str
    land_area_sqmi: float

    def __post_init__(self) -> None:
        if not _ABBR_RE.match(self.abbreviation):
            raise ValueError(
                f"State {self.name!r}: abbreviation must be two upper-case letters, "
                f"got {self.abbreviation!r}"
            )
        if not self.land_area_sqmi > 0:
            raise ValueError(
                f"State {self.name!r}: land area must be positive, got {self.land_area_sqmi}"
            )

    def to_dict(self) -> Dict[str, object]:
        return {
            "state_name": self.name,
            "state": self.abbreviation,
            "land_area_sqmi": float(self.land_area_sqmi),
        }

    def __str__(self) -> str:
        return f"{self.abbreviation} ({self.name}, {self.land_area_sqmi:,.0f} sq mi)"


US_STATES: Tuple[StateInfo, ...] = (
    StateInfo("Alabama", "AL", 50645.33),
    StateInfo("Alaska", "AK", 570640.95),
    StateInfo("Arizona", "AZ", 113594.08),
    StateInfo("Arkansas", "AR", 52035.48),
    StateInfo("California", "CA", 155779.22),
    StateInfo("Colorado", "CO", 103641.89),
    StateInfo("Connecticut", "CT", 4842.36),
    StateInfo("Delaware", "DE", 1948.54),
    StateInfo("Florida", "FL", 53624.76),
    StateInfo("Georgia", "GA", 57513.49),
    StateInfo("Hawaii", "HI", 6422.63),
    StateInfo("Idaho", "ID", 82643.12),
    StateInfo("Illinois", "IL", 55518.93),
    StateInfo("Indiana", "IN", 35826.11),
    StateInfo("Iowa", "IA", 55857.13),
    StateInfo("Kansas", "KS", 81758.72),
    StateInfo("Kentucky", "KY", 39486.34),
    StateInfo("Louisiana", "LA", 43203.90),
    StateInfo("Maine", "ME", 30842.92),
    StateInfo("Maryland", "MD", 9707.24),
    StateInfo("Massachusetts", "MA", 7800.06),
    StateInfo("Michigan", "MI", 56538.90),
    StateInfo("Minnesota", "MN", 79626.74),
    StateInfo("Mississippi", "MS", 46923.27),
    StateInfo("Missouri", "MO", 68741.52),
    StateInfo("Montana", "MT", 145545.80),
    StateInfo("Nebraska", "NE", 76824.17),
    StateInfo("Nevada", "NV", 109781.18),
    StateInfo("New Hampshire", "NH", 8952.65),
    StateInfo("New Jersey", "NJ", 7354.22),
    StateInfo("New Mexico", "NM", 121298.15),
    StateInfo("New York", "NY", 47126.40),
    StateInfo("North Carolina", "NC", 48617.91),
    StateInfo("North Dakota", "ND", 69000.80),
    StateInfo("Ohio", "OH", 40860.69),
    StateInfo("Oklahoma", "OK", 68594.92),
    StateInfo("Oregon", "OR", 95988.01),
    StateInfo("Pennsylvania", "PA", 44742.70),
    StateInfo("Rhode Island", "RI", 1033.81),
    StateInfo("South Carolina", "SC", 30060.70),
    StateInfo("South Dakota", "SD", 75811.00),
    StateInfo("Tennessee", "TN", 41234.90),
    StateInfo("Texas", "TX", 261231.71),
    StateInfo("Utah", "UT", 82169.62),
    StateInfo("Vermont", "VT", 9216.66),
    StateInfo("Virginia", "VA", 39490.09),
    StateInfo("Washington", "WA", 66455.52),
    StateInfo("West Virginia", "WV", 24038.21),
    StateInfo("Wisconsin", "WI", 54157.80),
    StateInfo("Wyoming", "WY", 97093.14),
)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class StateRegistry:
    """
    Lookup of :class:`StateInfo` by full name (primary key) and by
    abbreviation (secondary key used for station joins).

    Examples
    --------
    >>> registry = StateRegistry(US_STATES)
    >>> registry.by_abbreviation("CA").name
    'California'
    >>> "Texas" in registry
    True
    """

    def __init__(self, states: Iterable[StateInfo] = US_STATES) -> None:
        self._by_name: Dict[str, StateInfo] = {}
        self._by_abbr: Dict[str, StateInfo] = {}
        for state in states:
            self.register(state)

    def register(self, state: StateInfo) -> None:
        """Add *state*; a second state with the same name or code is an error."""
        if state.name in self._by_name:
            raise ValueError(f"Duplicate state name in reference: {state.name!r}")
        if state.abbreviation in self._by_abbr:
            raise ValueError(f"Duplicate state abbreviation in reference: {state.abbreviation!r}")
        self._by_name[state.name] = state
        self._by_abbr[state.abbreviation] = state

    def by_name(self, name: str) -> StateInfo:
        try:
            return self._by_name[name]
        except KeyError:
            raise MissingReferenceError([name], context="lookup by name") from None

    def by_abbreviation(self, abbreviation: str) -> StateInfo:
        try:
            return self._by_abbr[abbreviation]
        except KeyError:
            raise MissingReferenceError([abbreviation], context="lookup by abbreviation") from None

    def get(self, key: str) -> Optional[StateInfo]:
        """Return the state for a name or abbreviation, or None."""
        return self._by_name.get(key) or self._by_abbr.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self._by_name or key in self._by_abbr

    def __len__(self) -> int:
        return len(self._by_name)

    def __iter__(self):
        return iter(self._by_name.values())

    def to_frame(self) -> pd.DataFrame:
        """Return the ``StateReference`` table, sorted by state name."""
        rows = [s.to_dict() for s in sorted(self._by_name.values(), key=lambda s: s.name)]
        return pd.DataFrame(rows, columns=list(REFERENCE_COLUMNS))

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "StateRegistry":
        """Build a registry from a ``StateReference`` table."""
        missing = [c for c in REFERENCE_COLUMNS if c not in frame.columns]
        if missing:
            raise ValueError(f"Reference table missing columns: {missing}")
        return cls(
            StateInfo(str(row.state_name), str(row.state), float(row.land_area_sqmi))
            for row in frame.itertuples(index=False)
        )

    @classmethod
    def load_from_csv(cls, path: str | Path) -> "StateRegistry":
        """
        Build a registry from a CSV with ``state_name``, ``state`` and
        ``land_area_sqmi`` columns.

        Parameters
        ----------
        path : str or Path

        Returns
        -------
        StateRegistry
        """
        path = Path(path)
        registry = cls(())
        with path.open(newline="") as fh:
            for row in csv.DictReader(fh):
                registry.register(
                    StateInfo(
                        name=row["state_name"].strip(),
                        abbreviation=row["state"].strip().upper(),
                        land_area_sqmi=float(row["land_area_sqmi"]),
                    )
                )
        log.info("Loaded %d states from %s", len(registry), path)
        return registry


def build_state_reference(states: Optional[Iterable[StateInfo]] = None) -> pd.DataFrame:
    """
    Build the ``StateReference`` table.

    Parameters
    ----------
    states : iterable of StateInfo, optional
        States to include.  Defaults to all 50 entries of :data:`US_STATES`.

    Returns
    -------
    pd.DataFrame
        Columns ``state_name``, ``state``, ``land_area_sqmi``; one row per
        state, sorted by name.

    Raises
    ------
    ValueError
        If two entries share a name or an abbreviation.
    """
    registry = StateRegistry(US_STATES if states is None else states)
    return registry.to_frame()


def validate_reference(reference: pd.DataFrame) -> pd.DataFrame:
    """Check a reference table's shape and keys; return it unchanged."""
    StateRegistry.from_frame(reference)
    return reference
