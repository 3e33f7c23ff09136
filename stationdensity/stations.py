"""
stationdensity.stations - Station record cleaning and range filtering.

Turns raw alternative-fuel-station rows (as exported by the NREL
Alternative Fuels Data Center) into ``StationRecord`` rows:

1. Column names are mapped to the model names (``state``, ``city``,
   ``lat``, ``lon``, ``fuel_type``, ``open_date``).
2. ``fuel_type`` becomes a categorical over the closed :class:`FuelType`
   codes; unknown codes map to ``OTHER``.
3. The open date-time is parsed to a calendar date and ``open_year``;
   unparsable dates are excluded.
4. Locations outside the continental bounding box are excluded.  This
   deliberately drops Alaska, Hawaii and the territories.
5. The rows are inner-joined with the population density table on
   (state, open_year), which drops stations outside the analysis years and
   states missing from the reference.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Tuple

import numpy as np
import pandas as pd

from stationdensity.joins import JoinReport, tracked_merge

log = logging.getLogger(__name__)


class FuelType(Enum):
    """
    Alternative fuel codes used by the AFDC station locator.

    ``OTHER`` collects codes outside the known set so that a new code in the
    source never fails the pipeline.
    """

    BD = "BD"  # biodiesel (B20 and above)
    CNG = "CNG"  # compressed natural gas
    ELEC = "ELEC"  # electric
    E85 = "E85"  # ethanol
    HY = "HY"  # hydrogen
    LNG = "LNG"  # liquefied natural gas
    LPG = "LPG"  # propane
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value) -> "FuelType":
        """Return the member for *value* (member, code or name); unknown -> OTHER."""
        if isinstance(value, cls):
            return value
        if value is None or (isinstance(value, float) and np.isnan(value)):
            return cls.OTHER
        code = str(value).strip().upper()
        try:
            return cls(code)
        except ValueError:
            return cls.OTHER

    @classmethod
    def known(cls) -> Tuple["FuelType", ...]:
        """The seven real fuel codes (``OTHER`` excluded)."""
        return tuple(f for f in cls if f is not cls.OTHER)


FUEL_TYPE_CATEGORIES: Tuple[str, ...] = tuple(f.value for f in FuelType)


@dataclass(frozen=True)
class BoundingBox:
    """Open latitude/longitude rectangle used to filter station locations.

    Bounds are strict: a point on the edge is outside.

    Parameters
    ----------
    lat_min, lat_max : float
        Latitude bounds in decimal degrees.
    lon_min, lon_max : float
        Longitude bounds in decimal degrees (negative west).
    """

    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float

    def __post_init__(self) -> None:
        if not (self.lat_min < self.lat_max and self.lon_min < self.lon_max):
            raise ValueError(f"Degenerate bounding box: {self}")

    def contains(self, lat, lon) -> np.ndarray:
        """Vectorized membership test; non-numeric coordinates are outside."""
        lat = pd.to_numeric(pd.Series(lat), errors="coerce").to_numpy(dtype=float)
        lon = pd.to_numeric(pd.Series(lon), errors="coerce").to_numpy(dtype=float)
        return (
            (lat > self.lat_min)
            & (lat < self.lat_max)
            & (lon > self.lon_min)
            & (lon < self.lon_max)
        )


# Lower 48 plus DC
CONTINENTAL_US = BoundingBox(lat_min=24.0, lat_max=52.0, lon_min=-126.0, lon_max=-64.0)

# AFDC export header -> model column
RAW_STATION_COLUMNS: Dict[str, str] = {
    "State": "state",
    "City": "city",
    "Latitude": "lat",
    "Longitude": "lon",
    "Fuel Type Code": "fuel_type",
    "Open Date": "open_date",
}

STATION_COLUMNS: Tuple[str, ...] = ("state", "city", "lat", "lon", "fuel_type", "open_date")

# Time of day followed by "Z", "UTC" or a +HH:MM / -HHMM offset
_UTC_OFFSET_RE = r"(\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?)\s*(?:Z|UTC|[+-]\d{2}:?\d{2})$"


@dataclass(frozen=True)
class StationNormalizationResult:
    """Output of :func:`normalize_stations`.

    Parameters
    ----------
    table : pd.DataFrame
        ``StationRecord`` rows with the joined ``state_name``,
        ``land_area_sqmi``, ``population`` and ``pop_density`` columns.
    input_rows : int
        Rows in the raw input.
    unparsable_dates : int
        Rows excluded because the open date could not be parsed.
    outside_bbox : int
        Rows excluded by the geographic filter (including non-numeric
        coordinates).
    joins : tuple of JoinReport
        Accounting for the (state, year) join.
    """

    table: pd.DataFrame
    input_rows: int = 0
    unparsable_dates: int = 0
    outside_bbox: int = 0
    joins: Tuple[JoinReport, ...] = field(default_factory=tuple)

    @property
    def dropped_by_join(self) -> int:
        return sum(j.dropped_left for j in self.joins)


def _rename_raw_columns(raw: pd.DataFrame) -> pd.DataFrame:
    renamed = raw.rename(columns={k: v for k, v in RAW_STATION_COLUMNS.items() if k in raw.columns})
    missing = [c for c in STATION_COLUMNS if c not in renamed.columns]
    if missing:
        raise ValueError(
            f"Station table missing columns {missing}; expected AFDC headers "
            f"{list(RAW_STATION_COLUMNS)} or model names {list(STATION_COLUMNS)}"
        )
    return renamed.loc[:, list(STATION_COLUMNS)].copy()


def cast_fuel_types(codes: pd.Series) -> pd.Series:
    """Map raw fuel codes onto the closed :class:`FuelType` categorical."""
    values = codes.map(lambda c: FuelType.parse(c).value)
    return pd.Series(
        pd.Categorical(values, categories=list(FUEL_TYPE_CATEGORIES)),
        index=codes.index,
        name=codes.name,
    )


def parse_open_dates(values: pd.Series) -> pd.Series:
    """
    Parse open date-times (mixed formats) to naive timestamps; bad values -> NaT.

    A trailing UTC offset is dropped rather than applied, so the result keeps
    the local wall-clock date written in the source
    (``2019-12-31T20:00:00-08:00`` stays in 2019).
    """
    if pd.api.types.is_datetime64_any_dtype(values):
        if getattr(values.dt, "tz", None) is not None:
            return values.dt.tz_localize(None)
        return values
    text = values.astype("string").str.strip()
    local = text.str.replace(_UTC_OFFSET_RE, r"\1", regex=True)
    return pd.to_datetime(local, errors="coerce", format="mixed")


def clean_stations(
    raw: pd.DataFrame, bbox: BoundingBox = CONTINENTAL_US
) -> Tuple[pd.DataFrame, int, int]:
    """
    Type, date-parse and geo-filter raw station rows (steps 1-4).

    Returns
    -------
    (pd.DataFrame, int, int)
        Cleaned rows, number of unparsable dates, number outside *bbox*.
    """
    df = _rename_raw_columns(raw)
    df["state"] = df["state"].map(lambda s: str(s).strip().upper() if pd.notna(s) else None)
    df["city"] = df["city"].map(lambda s: str(s).strip() if pd.notna(s) else None)
    df["fuel_type"] = cast_fuel_types(df["fuel_type"])
    df["lat"] = pd.to_numeric(df["lat"], errors="coerce")
    df["lon"] = pd.to_numeric(df["lon"], errors="coerce")

    opened = parse_open_dates(df["open_date"])
    valid_date = opened.notna()
    unparsable = int((~valid_date).sum())
    if unparsable:
        log.info("Excluding %d station rows with unparsable open dates", unparsable)
    df = df.loc[valid_date].copy()
    opened = opened.loc[valid_date]
    df["open_date"] = opened.dt.date
    df["open_year"] = opened.dt.year.astype("int64")

    inside = bbox.contains(df["lat"], df["lon"])
    outside = int((~inside).sum())
    if outside:
        log.info("Excluding %d station rows outside %s", outside, bbox)
    df = df.loc[inside].reset_index(drop=True)
    return df, unparsable, outside


def normalize_stations(
    raw: pd.DataFrame,
    population_density: pd.DataFrame,
    *,
    bbox: BoundingBox = CONTINENTAL_US,
) -> StationNormalizationResult:
    """
    Clean raw station rows and restrict them to the supported years.

    Parameters
    ----------
    raw : pd.DataFrame
        Raw station rows with AFDC headers (``State``, ``City``,
        ``Latitude``, ``Longitude``, ``Fuel Type Code``, ``Open Date``) or
        the model column names.  Not modified.
    population_density : pd.DataFrame
        ``PopulationDensityRecord`` table from
        :func:`stationdensity.population.resolve_population_density`.
    bbox : BoundingBox
        Geographic filter, continental US by default.

    Returns
    -------
    StationNormalizationResult

    Raises
    ------
    ValueError
        If a required station column is missing.
    """
    cleaned, unparsable, outside = clean_stations(raw, bbox)

    density = population_density.loc[
        :, ["state", "year", "state_name", "land_area_sqmi", "population", "pop_density"]
    ]
    joined, report = tracked_merge(
        cleaned,
        density,
        name="stations x population density",
        left_on=["state", "open_year"],
        right_on=["state", "year"],
        validate="many_to_one",
    )
    table = joined.drop(columns="year")
    log.info(
        "Normalized %d of %d station rows (%d bad dates, %d outside bbox, %d unmatched state-years)",
        len(table),
        len(raw),
        unparsable,
        outside,
        report.dropped_left,
    )
    return StationNormalizationResult(
        table=table,
        input_rows=len(raw),
        unparsable_dates=unparsable,
        outside_bbox=outside,
        joins=(report,),
    )
