"""
Potential and reference evapotranspiration estimators for monthly data.

Three estimators with increasing data requirements:

1. Thornthwaite (1948) - mean temperature and latitude. Underestimates PET
   in arid regions and overestimates it in humid tropics.
2. Hargreaves-Samani (1985) - daily min/max temperature and latitude, with
   the modified form of Droogers & Allen (2002) when precipitation is known.
3. FAO-56 Penman-Monteith - temperature, wind, radiation (or sunshine /
   cloud cover) and humidity. The most physically complete estimate.

All functions take 1-D monthly series, return mm/month of the same length,
and need the calendar position of the first value to resolve day counts and
solar geometry.

References:
    - Thornthwaite, C.W. (1948). An approach toward a rational classification
      of climate. Geographical Review, 38, 55-94.
    - Hargreaves, G.H., Samani, Z.A. (1985). Reference crop
      evapotranspiration from temperature. Applied Eng. in Agric., 1, 96-99.
    - Droogers, P., Allen, R.G. (2002). Estimating reference
      evapotranspiration under inaccurate data conditions. Irrigation and
      Drainage Systems, 16, 33-45.
    - Allen, R.G., Pereira, L.S., Raes, D., Smith, M. (1998). FAO Irrigation
      and drainage paper 56.
"""

import calendar
import math
from typing import Optional, Union

import numpy as np
import pandas as pd
import xarray as xr

from .config import PETMethod, get_logger, pet_variable_name
from .utils import (
    as_1d_array,
    check_missing,
    check_same_length,
    days_in_months,
    get_series_start,
    month_calendar,
    monthly_mean_daylight_hours,
    monthly_radiation_and_daylight,
)

# Module logger
_logger = get_logger(__name__)

ArrayLike = Union[np.ndarray, xr.DataArray, pd.Series, list]

# Stefan-Boltzmann constant, MJ K-4 m-2 day-1
STEFAN_BOLTZMANN = 4.903e-9

# Reference surface coefficients (numerator constant, denominator constant)
CROP_COEFFICIENTS = {
    'short': (900.0, 0.34),   # clipped grass, 0.12 m
    'tall': (1600.0, 0.38),   # alfalfa, 0.50 m
}


# =============================================================================
# THORNTHWAITE
# =============================================================================

def thornthwaite(
    tmean: ArrayLike,
    latitude: float,
    data_start_year: int,
    data_start_month: int = 1,
    na_rm: bool = False
) -> np.ndarray:
    """
    Calculate monthly potential evapotranspiration (PET) using Thornthwaite method.

    Thornthwaite equation:
        PET = 16 * (L/12) * (N/30) * (10*Ta / I)^a

    where:
        - Ta: mean air temperature (°C, clipped to >= 0)
        - N: number of days in month
        - L: mean day length of the month (hours)
        - I: annual heat index from the monthly climatology of the record
        - a: cubic function of the heat index

    :param tmean: monthly mean temperatures in °C
    :param latitude: latitude in degrees north (-90 to 90)
    :param data_start_year: year of the first value
    :param data_start_month: month of the first value (1-12)
    :param na_rm: allow missing values (they propagate to the output)
    :return: monthly PET values in mm/month
    """
    temps = as_1d_array(tmean, 'tmean')
    check_missing(temps, 'tmean', na_rm)
    years, months = month_calendar(len(temps), data_start_year, data_start_month)

    # No evaporation below freezing
    temps = np.where(temps < 0, 0.0, temps)

    climatology = np.full(12, np.nan)
    for m in range(1, 13):
        month_values = temps[months == m]
        if np.any(~np.isnan(month_values)):
            climatology[m - 1] = np.nanmean(month_values)

    heat_index = np.nansum(np.power(climatology / 5.0, 1.514))

    if heat_index == 0:
        _logger.warning("Heat index is zero, returning zero PET")
        return np.where(np.isnan(temps), np.nan, 0.0)

    a = (
        6.75e-07 * heat_index**3 -
        7.71e-05 * heat_index**2 +
        1.792e-02 * heat_index +
        0.49239
    )

    dlh_nonleap = monthly_mean_daylight_hours(latitude, leap=False)
    dlh_leap = monthly_mean_daylight_hours(latitude, leap=True)
    leap = np.array([calendar.isleap(int(y)) for y in years])
    day_length = np.where(leap, dlh_leap[months - 1], dlh_nonleap[months - 1])
    n_days = days_in_months(years, months)

    return (
        16.0 *
        (day_length / 12.0) *
        (n_days / 30.0) *
        np.power(10.0 * temps / heat_index, a)
    )


# =============================================================================
# HARGREAVES
# =============================================================================

def hargreaves(
    tmin: ArrayLike,
    tmax: ArrayLike,
    latitude: float,
    data_start_year: int,
    data_start_month: int = 1,
    precip: Optional[ArrayLike] = None,
    ra: Optional[ArrayLike] = None,
    na_rm: bool = False
) -> np.ndarray:
    """
    Calculate monthly reference evapotranspiration (ET0) using Hargreaves-Samani.

    Hargreaves equation:
        ET0 = 0.0023 * 0.408 * Ra * (Tmean + 17.8) * (Tmax - Tmin)^0.5 * ndays

    When precipitation is given the modified form is used:
        ET0 = 0.0013 * 0.408 * Ra * (Tmean + 17) * (Tr - 0.0123 * P)^0.76 * ndays

    :param tmin: monthly mean of daily minimum temperature (°C)
    :param tmax: monthly mean of daily maximum temperature (°C)
    :param latitude: latitude in degrees north (ignored if ra is given)
    :param data_start_year: year of the first value
    :param data_start_month: month of the first value (1-12)
    :param precip: optional monthly precipitation (mm) for the modified form
    :param ra: optional extraterrestrial radiation (MJ m-2 day-1)
    :param na_rm: allow missing values (they propagate to the output)
    :return: monthly ET0 values in mm/month
    """
    tmin = as_1d_array(tmin, 'tmin')
    tmax = as_1d_array(tmax, 'tmax')
    precip = as_1d_array(precip, 'precip') if precip is not None else None
    ra = as_1d_array(ra, 'ra') if ra is not None else None
    n = check_same_length(tmin=tmin, tmax=tmax, precip=precip, ra=ra)

    check_missing(tmin, 'tmin', na_rm)
    check_missing(tmax, 'tmax', na_rm)
    if precip is not None:
        check_missing(precip, 'precip', na_rm)

    years, months = month_calendar(n, data_start_year, data_start_month)
    if ra is None:
        ra, _ = monthly_radiation_and_daylight(latitude, years, months)
    n_days = days_in_months(years, months)

    tmean = (tmax + tmin) / 2.0
    temp_range = np.where(tmax - tmin < 0, 0.0, tmax - tmin)

    if precip is None:
        et0 = 0.0023 * 0.408 * ra * (tmean + 17.8) * np.sqrt(temp_range) * n_days
    else:
        base = temp_range - 0.0123 * precip
        base = np.where(base < 0, 0.0, base)
        et0 = 0.0013 * 0.408 * ra * (tmean + 17.0) * np.power(base, 0.76) * n_days

    return np.where(et0 < 0, 0.0, et0)


# =============================================================================
# PENMAN-MONTEITH
# =============================================================================

def saturation_vapour_pressure(temperature: np.ndarray) -> np.ndarray:
    """Saturation vapour pressure e0(T) in kPa (FAO equation 11)."""
    return 0.6108 * np.exp(17.27 * temperature / (temperature + 237.3))


def atmospheric_pressure(elevation: float) -> float:
    """Atmospheric pressure in kPa from elevation in m (FAO equation 7)."""
    return 101.3 * ((293.0 - 0.0065 * elevation) / 293.0) ** 5.26


def wind_at_2m(wind: np.ndarray, height: float) -> np.ndarray:
    """Reduce wind speed measured at `height` m to 2 m (FAO equation 47)."""
    if height <= 0:
        raise ValueError(f"Wind measurement height must be positive, got: {height}")
    return wind * 4.87 / math.log(67.8 * height - 5.42)


def soil_heat_flux(tmean: np.ndarray) -> np.ndarray:
    """
    Monthly soil heat flux G in MJ m-2 day-1 (FAO equations 43-44).

    Uses the previous and next month when both are known, the previous month
    alone at the end of the record, and the next month alone at its start.
    """
    prev = np.concatenate([[np.nan], tmean[:-1]])
    nxt = np.concatenate([tmean[1:], [np.nan]])

    g = 0.07 * (nxt - prev)
    only_prev = np.isnan(nxt) & ~np.isnan(prev)
    only_next = np.isnan(prev) & ~np.isnan(nxt)
    neither = np.isnan(prev) & np.isnan(nxt)

    g[only_prev] = 0.14 * (tmean[only_prev] - prev[only_prev])
    g[only_next] = 0.14 * (nxt[only_next] - tmean[only_next])
    g[neither] = 0.0
    return g


def penman(
    tmin: ArrayLike,
    tmax: ArrayLike,
    wind: ArrayLike,
    latitude: float,
    elevation: float,
    data_start_year: int,
    data_start_month: int = 1,
    tsun: Optional[ArrayLike] = None,
    cloud: Optional[ArrayLike] = None,
    rs: Optional[ArrayLike] = None,
    ea: Optional[ArrayLike] = None,
    tdew: Optional[ArrayLike] = None,
    rh: Optional[ArrayLike] = None,
    pressure: Optional[float] = None,
    crop: str = 'short',
    wind_height: float = 2.0,
    na_rm: bool = False
) -> np.ndarray:
    """
    Calculate monthly reference evapotranspiration (ET0) with FAO-56 Penman-Monteith.

        ET0 = [0.408 D (Rn - G) + g Cn/(T + 273) u2 (es - ea)] / [D + g (1 + Cd u2)]

    Solar radiation is taken from `rs`, else estimated from sunshine hours
    (`tsun`), else from cloud cover, else from the temperature range.
    Actual vapour pressure is taken from `ea`, else dew point, else relative
    humidity, else assumed equal to e0(Tmin).

    :param tmin: monthly mean of daily minimum temperature (°C)
    :param tmax: monthly mean of daily maximum temperature (°C)
    :param wind: mean wind speed (m/s) measured at `wind_height`
    :param latitude: latitude in degrees north
    :param elevation: station elevation in m
    :param data_start_year: year of the first value
    :param data_start_month: month of the first value (1-12)
    :param tsun: mean daily sunshine hours
    :param cloud: mean cloud cover in percent
    :param rs: incoming solar radiation (MJ m-2 day-1)
    :param ea: actual vapour pressure (kPa)
    :param tdew: mean dew point temperature (°C)
    :param rh: mean relative humidity (%)
    :param pressure: atmospheric pressure (kPa); derived from elevation if None
    :param crop: reference surface, 'short' (grass) or 'tall' (alfalfa)
    :param wind_height: height of the wind measurement in m
    :param na_rm: allow missing values (they propagate to the output)
    :return: monthly ET0 values in mm/month
    """
    if crop not in CROP_COEFFICIENTS:
        raise ValueError(
            f"Invalid crop: '{crop}'. Must be one of: {list(CROP_COEFFICIENTS)}"
        )
    cn, cd = CROP_COEFFICIENTS[crop]

    tmin = as_1d_array(tmin, 'tmin')
    tmax = as_1d_array(tmax, 'tmax')
    wind = as_1d_array(wind, 'wind')
    optional = {
        'tsun': tsun, 'cloud': cloud, 'rs': rs, 'ea': ea, 'tdew': tdew, 'rh': rh,
    }
    optional = {k: as_1d_array(v, k) for k, v in optional.items() if v is not None}
    n = check_same_length(tmin=tmin, tmax=tmax, wind=wind, **optional)

    for name, values in [('tmin', tmin), ('tmax', tmax), ('wind', wind), *optional.items()]:
        check_missing(values, name, na_rm)

    years, months = month_calendar(n, data_start_year, data_start_month)
    n_days = days_in_months(years, months)
    ra, max_sun = monthly_radiation_and_daylight(latitude, years, months)

    tmean = (tmax + tmin) / 2.0

    if pressure is None:
        pressure = atmospheric_pressure(elevation)
    psychrometric = 0.665e-3 * pressure

    delta = 4098.0 * saturation_vapour_pressure(tmean) / (tmean + 237.3) ** 2

    # Vapour pressure
    es = (saturation_vapour_pressure(tmax) + saturation_vapour_pressure(tmin)) / 2.0
    if 'ea' in optional:
        actual_vp = optional['ea']
    elif 'tdew' in optional:
        actual_vp = saturation_vapour_pressure(optional['tdew'])
    elif 'rh' in optional:
        actual_vp = optional['rh'] / 100.0 * es
    else:
        actual_vp = saturation_vapour_pressure(tmin)

    # Radiation
    temp_range = np.where(tmax - tmin < 0, 0.0, tmax - tmin)
    if 'rs' in optional:
        solar = optional['rs']
    elif 'tsun' in optional:
        solar = (0.25 + 0.5 * optional['tsun'] / max_sun) * ra
    elif 'cloud' in optional:
        sun_hours = max_sun * (1.0 - optional['cloud'] / 100.0)
        solar = (0.25 + 0.5 * sun_hours / max_sun) * ra
    else:
        _logger.debug("No radiation, sunshine or cloud data: using temperature range")
        solar = 0.16 * np.sqrt(temp_range) * ra

    clear_sky = (0.75 + 2e-5 * elevation) * ra
    with np.errstate(divide='ignore', invalid='ignore'):
        relative_sw = np.where(clear_sky > 0, solar / clear_sky, 0.0)
    relative_sw = np.minimum(relative_sw, 1.0)

    net_shortwave = (1.0 - 0.23) * solar
    net_longwave = (
        STEFAN_BOLTZMANN *
        ((tmax + 273.16) ** 4 + (tmin + 273.16) ** 4) / 2.0 *
        (0.34 - 0.14 * np.sqrt(actual_vp)) *
        (1.35 * relative_sw - 0.35)
    )
    net_radiation = net_shortwave - net_longwave
    g = soil_heat_flux(tmean)

    u2 = wind if wind_height == 2.0 else wind_at_2m(wind, wind_height)

    et0_daily = (
        0.408 * delta * (net_radiation - g) +
        psychrometric * cn / (tmean + 273.0) * u2 * (es - actual_vp)
    ) / (delta + psychrometric * (1.0 + cd * u2))

    et0 = et0_daily * n_days
    return np.where(et0 < 0, 0.0, et0)


# =============================================================================
# DATASET DISPATCHER
# =============================================================================

_PET_ATTRS = {
    PETMethod.thornthwaite: {
        'long_name': 'Potential evapotranspiration (Thornthwaite)',
        'method': 'Thornthwaite (1948)',
    },
    PETMethod.hargreaves: {
        'long_name': 'Reference evapotranspiration (Hargreaves)',
        'method': 'Hargreaves-Samani (1985)',
    },
    PETMethod.penman: {
        'long_name': 'Reference evapotranspiration (Penman-Monteith)',
        'method': 'FAO-56 Penman-Monteith (Allen et al. 1998)',
    },
}

_REQUIRED_INPUTS = {
    PETMethod.thornthwaite: ('tmean',),
    PETMethod.hargreaves: ('tmin', 'tmax'),
    PETMethod.penman: ('tmin', 'tmax', 'wind'),
}


def required_inputs(method: Union[str, PETMethod]) -> tuple:
    """Climate variables an estimator cannot run without."""
    if isinstance(method, str):
        method = PETMethod.from_string(method)
    return _REQUIRED_INPUTS[method]


def calculate_pet(
    ds: xr.Dataset,
    method: Union[str, PETMethod],
    latitude: float,
    elevation: Optional[float] = None,
    na_rm: bool = False,
    **kwargs
) -> xr.DataArray:
    """
    Calculate evapotranspiration from a climate table.

    Wrapper around the estimators that reads inputs from the Dataset and
    returns a DataArray aligned with its time coordinate.

    :param ds: climate table with 'time' coordinate
    :param method: 'thornthwaite', 'hargreaves' or 'penman'
    :param latitude: latitude in degrees north
    :param elevation: station elevation in m (required for penman)
    :param na_rm: allow missing values
    :param kwargs: passed to the estimator (e.g. crop='tall')
    :return: evapotranspiration DataArray in mm/month
    :raises ValueError: if required inputs are missing
    """
    if isinstance(method, str):
        method = PETMethod.from_string(method)

    missing = [v for v in _REQUIRED_INPUTS[method] if v not in ds]
    if missing:
        raise ValueError(
            f"{method.display_name} requires variables {missing}, "
            f"available: {list(ds.data_vars)}"
        )

    start_year, start_month = get_series_start(ds)
    _logger.info(f"Calculating {method.display_name} evapotranspiration")

    if method == PETMethod.thornthwaite:
        values = thornthwaite(
            ds['tmean'], latitude, start_year, start_month, na_rm=na_rm
        )
    elif method == PETMethod.hargreaves:
        values = hargreaves(
            ds['tmin'], ds['tmax'], latitude, start_year, start_month,
            na_rm=na_rm, **kwargs
        )
    else:
        if elevation is None:
            raise ValueError("elevation required for Penman-Monteith")
        for optional in ('tsun', 'cloud'):
            if optional in ds and optional not in kwargs:
                kwargs[optional] = ds[optional]
        # Sunshine hours take precedence over cloud cover
        if 'tsun' in kwargs and 'cloud' in kwargs:
            kwargs.pop('cloud')
        values = penman(
            ds['tmin'], ds['tmax'], ds['wind'], latitude, elevation,
            start_year, start_month, na_rm=na_rm, **kwargs
        )

    n_missing = int(np.isnan(values).sum())
    if n_missing:
        _logger.info(f"{method.display_name}: {n_missing} month(s) without a value")

    return xr.DataArray(
        data=values,
        dims=('time',),
        coords={'time': ds['time']},
        name=pet_variable_name(method),
        attrs={**_PET_ATTRS[method], 'units': 'mm/month'},
    )
