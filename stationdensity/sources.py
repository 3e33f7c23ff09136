"""
stationdensity.sources - Raw source retrieval

Reads the three raw CSV sources from a data directory and, on request,
downloads the missing ones (NREL alternative fuel stations API, Census
Bureau population files) and caches them there.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import StringIO
from pathlib import Path
from typing import Dict, Optional

import pandas as pd
import requests

from stationdensity.config import PipelineConfig

logger = logging.getLogger(__name__)

STATIONS_FILE = "alt_fuel_stations.csv"
POPULATION_WIDE_FILE = "nst-est2019-alldata.csv"
POPULATION_2020_FILE = "apportionment.csv"


@dataclass(frozen=True)
class RawSources:
    """The three raw tables, parsed but otherwise untouched."""

    stations: pd.DataFrame
    population_wide: pd.DataFrame
    population_2020: pd.DataFrame


def fetch_csv(
    url: str, params: Optional[Dict[str, str]] = None, timeout: int = 60
) -> pd.DataFrame:
    """
    Download a CSV and parse it with pandas.

    Parameters
    ----------
    url : str
        Source URL.
    params : dict, optional
        Query parameters.
    timeout : int
        HTTP request timeout in seconds.

    Returns
    -------
    pd.DataFrame

    Raises
    ------
    requests.HTTPError
        If the service returns a non-2xx status code.
    ValueError
        If the response body is empty.
    """
    response = requests.get(url, params=params, timeout=timeout)
    response.raise_for_status()
    text = response.text
    if not text.strip():
        raise ValueError(f"Empty response from {url}")
    df = pd.read_csv(StringIO(text), low_memory=False)
    logger.info("Fetched %d rows from %s", len(df), url)
    return df


def _read_or_fetch(
    path: Optional[Path],
    url: str,
    params: Optional[Dict[str, str]],
    fetch: bool,
    timeout: int,
) -> pd.DataFrame:
    if path is not None and path.exists():
        logger.debug("Reading %s", path)
        return pd.read_csv(path, low_memory=False)
    if not fetch:
        where = str(path) if path is not None else "no data directory configured"
        raise FileNotFoundError(
            f"Source not available locally ({where}). Place it in the data directory "
            "(STATIONDENSITY_DATA_DIR) or enable fetching."
        )
    df = fetch_csv(url, params=params, timeout=timeout)
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(path, index=False)
        logger.info("Cached %s", path)
    return df


def load_sources(config: PipelineConfig, fetch: bool = False) -> RawSources:
    """
    Load the raw station, wide population and 2020 population tables.

    Parameters
    ----------
    config : PipelineConfig
        Supplies the data directory, source URLs, API key and timeout.
    fetch : bool
        If True, download sources missing from the data directory (and
        cache them there when a data directory is set).

    Returns
    -------
    RawSources

    Raises
    ------
    FileNotFoundError
        If a source is missing locally and *fetch* is False.
    requests.HTTPError
        If a download fails.
    """
    data_dir = config.data_dir

    def local(name: str) -> Optional[Path]:
        return data_dir / name if data_dir is not None else None

    # The AFDC endpoint defaults to open stations only; all statuses keep
    # historical openings in the record
    station_params = {"api_key": config.nrel_api_key, "status": "all", "country": "US"}
    stations = _read_or_fetch(
        local(STATIONS_FILE), config.stations_url, station_params, fetch, config.timeout_seconds
    )
    wide = _read_or_fetch(
        local(POPULATION_WIDE_FILE), config.population_wide_url, None, fetch, config.timeout_seconds
    )
    single = _read_or_fetch(
        local(POPULATION_2020_FILE), config.population_2020_url, None, fetch, config.timeout_seconds
    )
    return RawSources(stations=stations, population_wide=wide, population_2020=single)
