"""
Pytest configuration and shared fixtures for all tests.

The station fixtures imitate a mid-latitude continental record
(1980-01 to 2011-10) with the classic column names. Wind and sunshine are
missing for the first four years, as in many real station records.
"""

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest  # type: ignore

from speikit.dataset import climate_table_from_frame

STATION_LATITUDE = 37.6475
STATION_ELEVATION = 402.6
RECORD_START = '1980-01-01'
RECORD_END = '2011-10-01'
MONTHS_WITHOUT_WIND = 48


def make_station_frame(seed: int = 42) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    time = pd.date_range(RECORD_START, RECORD_END, freq='MS')
    n = len(time)
    season = np.cos(2.0 * np.pi * (time.month.values - 7) / 12.0)

    tmean = 13.5 + 12.5 * season + rng.normal(0.0, 1.5, n)
    tmax = tmean + 6.5 + rng.normal(0.0, 0.8, n)
    tmin = tmean - 6.5 + rng.normal(0.0, 0.8, n)
    precip = rng.gamma(2.0, 30.0 * (1.0 + 0.6 * season))
    wind = np.clip(4.5 + rng.normal(0.0, 0.8, n), 0.5, None)
    tsun = np.clip(8.5 + 2.5 * season + rng.normal(0.0, 1.0, n), 0.5, 13.5)
    cloud = np.clip(50.0 - 15.0 * season + rng.normal(0.0, 8.0, n), 0.0, 100.0)

    wind[:MONTHS_WITHOUT_WIND] = np.nan
    tsun[:MONTHS_WITHOUT_WIND] = np.nan

    return pd.DataFrame({
        'YEAR': time.year,
        'MONTH': time.month,
        'PRCP': precip.round(1),
        'TMAX': tmax.round(1),
        'TMIN': tmin.round(1),
        'TMED': tmean.round(1),
        'AWND': wind.round(2),
        'TSUN': tsun.round(1),
        'ACSC': cloud.round(0),
    })


@pytest.fixture
def station_frame():
    """Synthetic monthly station record as a DataFrame."""
    return make_station_frame()


@pytest.fixture
def station_table(station_frame):
    """Synthetic monthly station record as a climate table."""
    return climate_table_from_frame(station_frame)


@pytest.fixture
def station_csv(station_frame, tmp_path):
    """Synthetic monthly station record written to CSV."""
    path = tmp_path / 'station.csv'
    station_frame.to_csv(path, index=False)
    return path


@pytest.fixture
def balance_series():
    """40 years of seasonal water balance (mm) starting in January 1970."""
    rng = np.random.default_rng(7)
    months = np.tile(np.arange(1, 13), 40)
    seasonal_mean = -40.0 * np.cos(2.0 * np.pi * (months - 7) / 12.0)
    return seasonal_mean + rng.normal(0.0, 35.0, len(months))


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: end-to-end runs over a full synthetic record"
    )
