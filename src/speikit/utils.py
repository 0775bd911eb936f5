"""
Utility functions for monthly climate series.

Includes calendar bookkeeping for series that may start in any month,
input validation, FAO-56 solar geometry used by the evapotranspiration
estimators, and small xarray helpers.

References:
    Allen, R.G., Pereira, L.S., Raes, D., Smith, M. (1998). Crop
    evapotranspiration - Guidelines for computing crop water requirements.
    FAO Irrigation and drainage paper 56.
"""

import calendar
import math
from typing import Optional, Tuple, Union

import numpy as np
import pandas as pd
import xarray as xr

from .config import MONTHS_PER_YEAR, get_logger

# Module logger
_logger = get_logger(__name__)


# =============================================================================
# CALENDAR HELPERS
# =============================================================================

# Day of year of the 15th of each month, non-leap and leap
_MID_MONTH_DOY_NONLEAP = np.array([15, 46, 74, 105, 135, 166, 196, 227, 258, 288, 319, 349])
_MID_MONTH_DOY_LEAP = np.array([15, 46, 75, 106, 136, 167, 197, 228, 259, 289, 320, 350])


def month_calendar(
    length: int,
    data_start_year: int,
    data_start_month: int = 1
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Year and month (1-12) of every step of a monthly series.

    :param length: number of monthly values
    :param data_start_year: year of the first value
    :param data_start_month: month of the first value (1-12)
    :return: tuple of (years, months) integer arrays
    """
    if not 1 <= data_start_month <= 12:
        raise ValueError(f"Start month must be 1-12, got: {data_start_month}")

    offsets = np.arange(length) + (data_start_month - 1)
    years = data_start_year + offsets // MONTHS_PER_YEAR
    months = offsets % MONTHS_PER_YEAR + 1
    return years, months


def days_in_months(years: np.ndarray, months: np.ndarray) -> np.ndarray:
    """Number of days of each (year, month) pair."""
    return np.array(
        [calendar.monthrange(int(y), int(m))[1] for y, m in zip(years, months)],
        dtype=float,
    )


def mid_month_day_of_year(years: np.ndarray, months: np.ndarray) -> np.ndarray:
    """Day of year of the 15th of each (year, month) pair."""
    leap = np.array([calendar.isleap(int(y)) for y in years])
    idx = np.asarray(months, dtype=int) - 1
    return np.where(leap, _MID_MONTH_DOY_LEAP[idx], _MID_MONTH_DOY_NONLEAP[idx])


def series_position(
    year: int,
    month: int,
    data_start_year: int,
    data_start_month: int = 1
) -> int:
    """Zero-based position of (year, month) in a series starting at the given month."""
    return (year - data_start_year) * MONTHS_PER_YEAR + (month - data_start_month)


def parse_year_month(value: Union[str, Tuple[int, int], None]) -> Optional[Tuple[int, int]]:
    """
    Parse 'YYYY-MM' strings (or pass through (year, month) tuples).

    :raises ValueError: if the value cannot be interpreted
    """
    if value is None:
        return None
    if isinstance(value, str):
        parts = value.replace('/', '-').split('-')
        if len(parts) != 2:
            raise ValueError(f"Expected 'YYYY-MM', got: '{value}'")
        year, month = int(parts[0]), int(parts[1])
    else:
        year, month = (int(v) for v in value)
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be 1-12, got: {month}")
    return year, month


# =============================================================================
# ARRAY VALIDATION
# =============================================================================

def as_1d_array(values: Union[np.ndarray, xr.DataArray, pd.Series, list], name: str = 'values') -> np.ndarray:
    """
    Return input as a 1-D float array.

    :raises ValueError: if input is not one-dimensional
    """
    if isinstance(values, (xr.DataArray, pd.Series)):
        values = values.values
    arr = np.asarray(values, dtype=float)
    if arr.ndim != 1:
        raise ValueError(
            f"{name} must be a 1-D monthly series, got shape {arr.shape}"
        )
    return arr


def check_missing(values: np.ndarray, name: str, na_rm: bool) -> None:
    """
    Reject NaN values unless missing values are allowed.

    :raises ValueError: if values contain NaN and na_rm is False
    """
    n_missing = int(np.isnan(values).sum())
    if n_missing and not na_rm:
        raise ValueError(
            f"{name} contains {n_missing} missing value(s). "
            f"Pass na_rm=True to allow missing values."
        )


def check_same_length(**arrays: Optional[np.ndarray]) -> int:
    """
    Check that all given (non-None) arrays share the same length.

    :return: the common length
    :raises ValueError: if lengths differ
    """
    lengths = {k: len(v) for k, v in arrays.items() if v is not None}
    if len(set(lengths.values())) > 1:
        raise ValueError(f"Input series must have the same length: {lengths}")
    return next(iter(lengths.values()))


# =============================================================================
# SOLAR GEOMETRY (FAO-56)
# =============================================================================

# Solar constant, MJ m-2 min-1
SOLAR_CONSTANT = 0.0820


def solar_declination(day_of_year: Union[int, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Solar declination angle for a given day of year.

    Based on FAO equation 24 in Allen et al. (1998).

    :param day_of_year: day of year (1-366)
    :return: solar declination in radians
    """
    doy = np.asarray(day_of_year)
    if np.any((doy < 1) | (doy > 366)):
        raise ValueError(f"Day of year must be 1-366, got: {day_of_year}")
    return 0.409 * np.sin((2.0 * math.pi / 365.0) * doy - 1.39)


def sunset_hour_angle(
    latitude_rad: float,
    solar_dec_rad: Union[float, np.ndarray]
) -> Union[float, np.ndarray]:
    """
    Sunset hour angle from latitude and solar declination.

    Based on FAO equation 25 in Allen et al. (1998).

    :param latitude_rad: latitude in radians
    :param solar_dec_rad: solar declination in radians
    :return: sunset hour angle in radians
    """
    if not -math.pi / 2 <= latitude_rad <= math.pi / 2:
        raise ValueError(
            f"Latitude must be between -pi/2 and pi/2 radians, got: {latitude_rad:.4f}"
        )

    # Clamp to valid range for acos [-1, 1] (polar day / night)
    cos_sha = np.clip(-math.tan(latitude_rad) * np.tan(solar_dec_rad), -1.0, 1.0)
    return np.arccos(cos_sha)


def daylight_hours(sunset_hour_angle_rad: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Daylight hours from sunset hour angle (FAO equation 34).
    """
    return (24.0 / math.pi) * sunset_hour_angle_rad


def extraterrestrial_radiation(
    latitude_degrees: float,
    day_of_year: Union[int, np.ndarray]
) -> Union[float, np.ndarray]:
    """
    Daily extraterrestrial radiation Ra (FAO equation 21).

    :param latitude_degrees: latitude in degrees north
    :param day_of_year: day of year (1-366)
    :return: Ra in MJ m-2 day-1
    """
    lat = math.radians(float(latitude_degrees))
    doy = np.asarray(day_of_year)
    dec = solar_declination(doy)
    ws = sunset_hour_angle(lat, dec)
    dr = 1.0 + 0.033 * np.cos(2.0 * math.pi / 365.0 * doy)

    ra = (24.0 * 60.0 / math.pi) * SOLAR_CONSTANT * dr * (
        ws * math.sin(lat) * np.sin(dec) + math.cos(lat) * np.cos(dec) * np.sin(ws)
    )
    return np.maximum(ra, 0.0)


def monthly_radiation_and_daylight(
    latitude_degrees: float,
    years: np.ndarray,
    months: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Ra and maximum daylight hours N for each month, evaluated mid-month.

    :return: tuple of (Ra in MJ m-2 day-1, N in hours)
    """
    if not -90.0 <= float(latitude_degrees) <= 90.0:
        raise ValueError(f"Latitude must be between -90 and 90, got: {latitude_degrees}")

    doy = mid_month_day_of_year(years, months)
    ra = extraterrestrial_radiation(latitude_degrees, doy)
    ws = sunset_hour_angle(math.radians(float(latitude_degrees)), solar_declination(doy))
    return ra, daylight_hours(ws)


def monthly_mean_daylight_hours(
    latitude_degrees: float,
    leap: bool = False
) -> np.ndarray:
    """
    Mean daylight hours of each calendar month, averaged over its days.

    :param latitude_degrees: latitude in degrees north
    :param leap: whether to calculate for a leap year
    :return: array of 12 monthly mean daylight hours
    """
    year = 2000 if leap else 2001
    lat = math.radians(float(latitude_degrees))
    monthly_dlh = np.zeros(MONTHS_PER_YEAR)

    day_of_year = 1
    for month_idx in range(MONTHS_PER_YEAR):
        n_days = calendar.monthrange(year, month_idx + 1)[1]
        doy = np.arange(day_of_year, day_of_year + n_days)
        monthly_dlh[month_idx] = np.mean(daylight_hours(sunset_hour_angle(lat, solar_declination(doy))))
        day_of_year += n_days

    return monthly_dlh


# =============================================================================
# XARRAY UTILITIES
# =============================================================================

def get_series_start(da: Union[xr.DataArray, xr.Dataset]) -> Tuple[int, int]:
    """
    Year and month of the first time step.

    :param da: DataArray or Dataset with a datetime 'time' coordinate
    :return: tuple of (start_year, start_month)
    :raises ValueError: if the time coordinate is missing or not datetime64
    """
    if 'time' not in da.coords:
        raise ValueError("Input has no 'time' coordinate")
    if not np.issubdtype(da['time'].dtype, np.datetime64):
        raise ValueError(
            f"Expected a datetime 'time' coordinate, got dtype {da['time'].dtype}"
        )

    first = pd.Timestamp(da['time'].values[0])
    return first.year, first.month


def monthly_time_index(
    length: int,
    data_start_year: int,
    data_start_month: int = 1
) -> pd.DatetimeIndex:
    """Month-start DatetimeIndex for a series of the given length."""
    return pd.date_range(
        start=pd.Timestamp(year=data_start_year, month=data_start_month, day=1),
        periods=length,
        freq='MS',
    )


def summarize_data_completeness(ds: xr.Dataset) -> pd.DataFrame:
    """
    Count valid and missing values for every variable of a climate table.

    :param ds: climate table
    :return: DataFrame indexed by variable with n_valid, n_missing, pct_missing
    """
    rows = []
    for name, da in ds.data_vars.items():
        if 'time' not in da.dims:
            continue
        n_total = da.sizes['time']
        n_missing = int(da.isnull().sum())
        rows.append({
            'variable': name,
            'n_valid': n_total - n_missing,
            'n_missing': n_missing,
            'pct_missing': round(100.0 * n_missing / n_total, 2) if n_total else 0.0,
        })
    return pd.DataFrame(rows).set_index('variable')
