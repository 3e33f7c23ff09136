"""
Inner joins that account for the rows they drop.

Every join in the pipeline is an inner join, so rows without a partner
(unmatched state names, out-of-range years) disappear silently.  The drop is
kept for parity with the reference analysis, but :func:`tracked_merge`
returns a :class:`JoinReport` with the counts so callers and tests can see
exactly what was lost.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple, Union

import pandas as pd

log = logging.getLogger(__name__)

Keys = Union[str, Sequence[str]]


@dataclass(frozen=True)
class JoinReport:
    """Row accounting for one inner join.

    Parameters
    ----------
    name : str
        Label of the join, e.g. ``"population x reference"``.
    left_rows : int
        Rows in the left input.
    right_rows : int
        Rows in the right input.
    matched_rows : int
        Rows in the joined output.
    dropped_left : int
        Left rows that had no partner on the right.
    dropped_right : int
        Right rows that had no partner on the left.
    dropped_left_keys : tuple
        Distinct key values of the dropped left rows, sorted.
    """

    name: str
    left_rows: int = 0
    right_rows: int = 0
    matched_rows: int = 0
    dropped_left: int = 0
    dropped_right: int = 0
    dropped_left_keys: Tuple[Any, ...] = field(default_factory=tuple)

    @property
    def lossless(self) -> bool:
        """True if no left row was dropped."""
        return self.dropped_left == 0

    @property
    def summary(self) -> str:
        return (
            f"{self.name}: {self.matched_rows} matched, "
            f"{self.dropped_left}/{self.left_rows} left dropped, "
            f"{self.dropped_right}/{self.right_rows} right unused"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "left_rows": self.left_rows,
            "right_rows": self.right_rows,
            "matched_rows": self.matched_rows,
            "dropped_left": self.dropped_left,
            "dropped_right": self.dropped_right,
            "dropped_left_keys": [_plain(k) for k in self.dropped_left_keys],
        }


def _plain(key: Any) -> Any:
    """Convert numpy scalars / tuples into JSON-friendly values."""
    if isinstance(key, tuple):
        return [_plain(k) for k in key]
    if hasattr(key, "item"):
        return key.item()
    return key


def _as_list(keys: Keys) -> List[str]:
    return [keys] if isinstance(keys, str) else list(keys)


def tracked_merge(
    left: pd.DataFrame,
    right: pd.DataFrame,
    *,
    name: str,
    on: Keys | None = None,
    left_on: Keys | None = None,
    right_on: Keys | None = None,
    validate: str | None = None,
) -> Tuple[pd.DataFrame, JoinReport]:
    """Inner-join *left* and *right* and report the rows lost on each side.

    Parameters
    ----------
    left, right : pd.DataFrame
        Inputs; neither is modified.
    name : str
        Label used in the report and log messages.
    on, left_on, right_on : str or list of str
        Join keys, as for :func:`pandas.merge`.
    validate : str, optional
        Passed to :func:`pandas.merge` (e.g. ``"many_to_one"``).

    Returns
    -------
    (pd.DataFrame, JoinReport)
        The inner-joined table (fresh index) and its row accounting.
    """
    if on is not None:
        lkeys = rkeys = _as_list(on)
    elif left_on is not None and right_on is not None:
        lkeys, rkeys = _as_list(left_on), _as_list(right_on)
    else:
        raise ValueError("tracked_merge needs either 'on' or both 'left_on' and 'right_on'")

    inner = pd.merge(
        left,
        right,
        how="inner",
        left_on=lkeys,
        right_on=rkeys,
        validate=validate,
    ).reset_index(drop=True)

    # Key-only merges for the accounting keep the inner join's dtypes intact
    left_keys = left[lkeys]
    right_keys = right[rkeys].drop_duplicates()
    left_side = pd.merge(
        left_keys, right_keys, how="left", left_on=lkeys, right_on=rkeys, indicator="_side"
    )["_side"]
    right_side = pd.merge(
        right[rkeys],
        left_keys.drop_duplicates(),
        how="left",
        left_on=rkeys,
        right_on=lkeys,
        indicator="_side",
    )["_side"]

    left_only = left_keys.loc[(left_side == "left_only").to_numpy()]
    dropped_keys = sorted(
        {tuple(r) if len(lkeys) > 1 else r[0] for r in left_only.itertuples(index=False)},
        key=str,
    )

    report = JoinReport(
        name=name,
        left_rows=len(left),
        right_rows=len(right),
        matched_rows=len(inner),
        dropped_left=int((left_side == "left_only").sum()),
        dropped_right=int((right_side == "left_only").sum()),
        dropped_left_keys=tuple(dropped_keys),
    )

    if report.dropped_left:
        preview = ", ".join(str(k) for k in report.dropped_left_keys[:8])
        log.warning(
            "Join '%s' dropped %d of %d left rows (keys: %s%s)",
            name,
            report.dropped_left,
            report.left_rows,
            preview,
            ", ..." if len(report.dropped_left_keys) > 8 else "",
        )
    else:
        log.debug("Join '%s' kept all %d left rows", name, report.left_rows)
    return inner, report
