"""
SPI and SPEI climate indices calculation module.

High-level API for computing Standardized Precipitation-Evapotranspiration
Index (SPEI) and Standardized Precipitation Index (SPI) from labelled
monthly series, with support for saving/loading fitting parameters.

References:
    - McKee, T.B., Doesken, N.J., Kleist, J. (1993). The relationship of drought
      frequency and duration to time scales. 8th Conference on Applied Climatology.
    - Vicente-Serrano, S.M., Beguería, S., López-Moreno, J.I. (2010). A Multiscalar
      Drought Index Sensitive to Global Warming: The Standardized Precipitation
      Evapotranspiration Index. Journal of Climate, 23(7), 1696-1718.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Optional, Tuple, Union

import numpy as np
import pandas as pd
import xarray as xr

from . import __version__
from .compute import compute_spei_1d, compute_spi_1d, reference_mask
from .config import (
    DISTRIBUTION_PARAM_NAMES,
    MONTHS_PER_YEAR,
    NC_FILL_VALUE,
    Distribution,
    FitMethod,
    Kernel,
    get_logger,
    get_variable_attributes,
    get_variable_name,
)
from .utils import get_series_start, monthly_time_index, parse_year_month

# Module logger
_logger = get_logger(__name__)

YearMonth = Tuple[int, int]
SeriesLike = Union[np.ndarray, xr.DataArray, pd.Series]


# =============================================================================
# RESULT CONTAINER
# =============================================================================

@dataclass
class SPEIResult:
    """
    Standardized index series together with the fit that produced it.

    `fitted` is the index along `time`; `coefficients` holds the
    distribution parameters of every calendar month with dims
    (parameter, month).
    """
    fitted: xr.DataArray
    coefficients: xr.DataArray
    index: str
    scale: int
    kernel: Kernel
    shift: int
    distribution: Distribution
    fit_method: FitMethod
    ref_start: Optional[YearMonth]
    ref_end: Optional[YearMonth]
    na_rm: bool

    @property
    def name(self) -> str:
        return self.fitted.name

    def to_dataset(self) -> xr.Dataset:
        """Index and coefficients in one Dataset."""
        return xr.Dataset({
            self.name: self.fitted,
            f"{self.name}_coefficients": self.coefficients,
        })

    def coefficients_frame(self) -> pd.DataFrame:
        """Coefficients as a DataFrame indexed by calendar month."""
        return self.coefficients.to_pandas().T

    def summary(self) -> pd.Series:
        """Descriptive statistics of the fitted index."""
        values = self.fitted.to_series()
        stats = values.describe()
        stats['n_missing'] = int(values.isna().sum())
        stats['n_dry'] = int((values <= -1.0).sum())
        stats['n_wet'] = int((values >= 1.0).sum())
        stats.name = self.name
        return stats

    def __str__(self) -> str:
        ref = (
            f"{_format_year_month(self.ref_start)}..{_format_year_month(self.ref_end)}"
            if self.ref_start is not None else "custom parameters"
        )
        return (
            f"{self.index.upper()}-{self.scale} ({self.distribution.value}, "
            f"{self.fit_method.value}, {self.kernel.value} kernel, reference {ref})"
        )


def _format_year_month(value: Optional[YearMonth]) -> str:
    return "" if value is None else f"{value[0]:04d}-{value[1]:02d}"


# =============================================================================
# FITTING PARAMETERS I/O
# =============================================================================

def _coefficients_to_dataarray(
    params: np.ndarray,
    index: str,
    scale: int,
    distribution: Distribution,
    fit_method: FitMethod,
    kernel: Kernel,
    shift: int,
    ref_start: Optional[YearMonth],
    ref_end: Optional[YearMonth]
) -> xr.DataArray:
    return xr.DataArray(
        data=params,
        dims=('parameter', 'month'),
        coords={
            'parameter': list(DISTRIBUTION_PARAM_NAMES[distribution]),
            'month': np.arange(1, MONTHS_PER_YEAR + 1),
        },
        name=f"{get_variable_name(index, scale)}_coefficients",
        attrs={
            'index': index,
            'scale': scale,
            'distribution': distribution.value,
            'fit_method': fit_method.value,
            'kernel': kernel.value,
            'shift': shift,
            'ref_start': _format_year_month(ref_start),
            'ref_end': _format_year_month(ref_end),
        },
    )


def save_fitting_params(
    result: Union[SPEIResult, xr.DataArray],
    filepath: str
) -> str:
    """
    Save fitting parameters to a NetCDF file for later reuse.

    Each parameter is stored as its own variable along `month`, e.g.
    `xi_12_month`, `alpha_12_month`, `kappa_12_month`.

    :param result: SPEIResult or its coefficients DataArray
    :param filepath: output NetCDF path
    :return: the path written

    Example:
        >>> spei_12 = spei(balance, scale=12)
        >>> save_fitting_params(spei_12, 'spei_12_params.nc')
        >>> spei_new = spei(new_balance, scale=12,
        ...                 params=load_fitting_params('spei_12_params.nc'))
    """
    coefficients = result.coefficients if isinstance(result, SPEIResult) else result
    scale = int(coefficients.attrs['scale'])

    ds = xr.Dataset(attrs={
        **coefficients.attrs,
        'title': 'SPEI/SPI distribution fitting parameters',
        'source': f'speikit {__version__}',
        'history': f"Created {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
    })
    for param in coefficients['parameter'].values:
        var_name = f"{param}_{scale}_month"
        ds[var_name] = xr.DataArray(
            coefficients.sel(parameter=param).values,
            dims=('month',),
            coords={'month': coefficients['month'].values},
            attrs={'long_name': f"{coefficients.attrs['distribution']} {param} parameter"},
        )

    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)

    encoding = {v: {'_FillValue': NC_FILL_VALUE} for v in ds.data_vars}
    ds.to_netcdf(filepath, encoding=encoding)
    _logger.info(f"Saved fitting parameters to {filepath}")
    return filepath


def load_fitting_params(filepath: str) -> xr.DataArray:
    """
    Load fitting parameters saved with save_fitting_params().

    :param filepath: NetCDF path
    :return: coefficients DataArray with dims (parameter, month)
    :raises FileNotFoundError: if the file does not exist
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Fitting parameter file not found: {filepath}")

    with xr.open_dataset(filepath) as ds:
        attrs = dict(ds.attrs)
        distribution = Distribution(attrs['distribution'])
        scale = int(attrs['scale'])
        names = DISTRIBUTION_PARAM_NAMES[distribution]
        params = np.vstack([ds[f"{n}_{scale}_month"].values for n in names])

    _logger.info(f"Loaded {distribution.value} parameters for scale {scale} from {filepath}")
    return _coefficients_to_dataarray(
        params,
        attrs.get('index', 'spei'),
        scale,
        distribution,
        FitMethod(attrs['fit_method']),
        Kernel(attrs['kernel']),
        int(attrs.get('shift', 0)),
        parse_year_month(attrs['ref_start']) if attrs.get('ref_start') else None,
        parse_year_month(attrs['ref_end']) if attrs.get('ref_end') else None,
    )


# =============================================================================
# INDEX CALCULATION
# =============================================================================

def _standardized_index(
    index: str,
    values: SeriesLike,
    scale: int,
    data_start_year: Optional[int],
    data_start_month: Optional[int],
    ref_start: Union[str, YearMonth, None],
    ref_end: Union[str, YearMonth, None],
    kernel: Union[str, Kernel],
    shift: int,
    distribution: Union[str, Distribution],
    fit_method: Union[str, FitMethod],
    na_rm: bool,
    params: Union[np.ndarray, xr.DataArray, SPEIResult, None]
) -> SPEIResult:
    kernel = Kernel.from_string(kernel) if isinstance(kernel, str) else kernel
    distribution = (
        Distribution.from_string(distribution) if isinstance(distribution, str) else distribution
    )
    fit_method = FitMethod.from_string(fit_method) if isinstance(fit_method, str) else fit_method
    ref_start = parse_year_month(ref_start)
    ref_end = parse_year_month(ref_end)

    _logger.info(f"Computing {index.upper()}-{scale} (distribution={distribution.value})")

    # Resolve time axis
    if isinstance(values, pd.Series):
        values = xr.DataArray(values.values, dims=('time',), coords={'time': values.index})
    if isinstance(values, xr.DataArray):
        if values.ndim != 1 or 'time' not in values.dims:
            raise ValueError(
                f"Expected a 1-D DataArray along 'time', got dims {values.dims}"
            )
        data_start_year, data_start_month = get_series_start(values)
        time = values['time']
        array = values.values
    else:
        if data_start_year is None:
            raise ValueError("data_start_year required for numpy array input")
        data_start_month = data_start_month or 1
        array = np.asarray(values, dtype=float)
        time = monthly_time_index(len(array), data_start_year, data_start_month)

    # Resolve pre-computed parameters
    param_array = None
    if isinstance(params, SPEIResult):
        params = params.coefficients
    if isinstance(params, xr.DataArray):
        if params.attrs.get('distribution') and Distribution(params.attrs['distribution']) != distribution:
            raise ValueError(
                f"Parameters were fitted with {params.attrs['distribution']}, "
                f"not {distribution.value}"
            )
        param_array = params.transpose('parameter', 'month').values
        ref_start = parse_year_month(params.attrs.get('ref_start') or None)
        ref_end = parse_year_month(params.attrs.get('ref_end') or None)
    elif params is not None:
        param_array = np.asarray(params, dtype=float)
        ref_start = ref_end = None
    else:
        mask = reference_mask(len(array), data_start_year, data_start_month, ref_start, ref_end)
        ref_times = pd.DatetimeIndex(np.asarray(time))[mask]
        ref_start = (ref_times[0].year, ref_times[0].month)
        ref_end = (ref_times[-1].year, ref_times[-1].month)

    compute_func = compute_spei_1d if index == 'spei' else compute_spi_1d
    result, fitted_params = compute_func(
        array,
        scale,
        data_start_year,
        data_start_month,
        ref_start=ref_start,
        ref_end=ref_end,
        kernel=kernel,
        shift=shift,
        distribution=distribution,
        fit_method=fit_method,
        na_rm=na_rm,
        params=param_array,
    )

    attrs = get_variable_attributes(index, scale, distribution, fit_method, kernel)
    attrs.update({
        'ref_start': _format_year_month(ref_start),
        'ref_end': _format_year_month(ref_end),
    })
    fitted = xr.DataArray(
        data=result,
        dims=('time',),
        coords={'time': time},
        name=get_variable_name(index, scale),
        attrs=attrs,
    )
    coefficients = _coefficients_to_dataarray(
        fitted_params, index, scale, distribution, fit_method, kernel, shift, ref_start, ref_end
    )

    n_valid = int(np.isfinite(result).sum())
    _logger.info(f"{index.upper()}-{scale} complete: {n_valid}/{len(result)} valid values")

    return SPEIResult(
        fitted=fitted,
        coefficients=coefficients,
        index=index,
        scale=scale,
        kernel=kernel,
        shift=shift,
        distribution=distribution,
        fit_method=fit_method,
        ref_start=ref_start,
        ref_end=ref_end,
        na_rm=na_rm,
    )


def spei(
    balance: SeriesLike,
    scale: int = 1,
    data_start_year: Optional[int] = None,
    data_start_month: Optional[int] = None,
    ref_start: Union[str, YearMonth, None] = None,
    ref_end: Union[str, YearMonth, None] = None,
    kernel: Union[str, Kernel] = Kernel.rectangular,
    shift: int = 0,
    distribution: Union[str, Distribution] = Distribution.log_logistic,
    fit_method: Union[str, FitMethod] = FitMethod.ub_pwm,
    na_rm: bool = False,
    params: Union[np.ndarray, xr.DataArray, SPEIResult, None] = None
) -> SPEIResult:
    """
    Calculate Standardized Precipitation-Evapotranspiration Index (SPEI).

    The climatic water balance (P - PET) is accumulated over `scale` months
    with the chosen kernel, a distribution is fitted per calendar month on
    the reference period, and values are mapped to a standard normal.

    :param balance: monthly water balance in mm; DataArray/Series with a
        time index, or numpy array with data_start_year
    :param scale: accumulation period in months
    :param data_start_year: first year of data (numpy input only)
    :param data_start_month: first month of data (numpy input only, default 1)
    :param ref_start: start of the reference period, (year, month) or 'YYYY-MM'.
        Default: start of the record
    :param ref_end: end of the reference period. Default: end of the record
    :param kernel: 'rectangular' (default), 'triangular', 'circular', 'gaussian'
    :param shift: kernel peak offset in months
    :param distribution: 'log-logistic' (default), 'gamma' or 'pearson3'
    :param fit_method: 'ub-pwm' (default), 'pp-pwm' or 'max-lik'
    :param na_rm: allow missing values in the input
    :param params: pre-computed coefficients (skips fitting)
    :return: SPEIResult

    Example:
        >>> spei_1 = spei(ds['balance_thornthwaite'], scale=1)
        >>> spei_12 = spei(ds['balance_penman'], scale=12,
        ...                ref_start=(1984, 1), ref_end=(2008, 12), na_rm=True)
    """
    return _standardized_index(
        'spei', balance, scale, data_start_year, data_start_month, ref_start, ref_end,
        kernel, shift, distribution, fit_method, na_rm, params
    )


def spi(
    precip: SeriesLike,
    scale: int = 1,
    data_start_year: Optional[int] = None,
    data_start_month: Optional[int] = None,
    ref_start: Union[str, YearMonth, None] = None,
    ref_end: Union[str, YearMonth, None] = None,
    kernel: Union[str, Kernel] = Kernel.rectangular,
    shift: int = 0,
    distribution: Union[str, Distribution] = Distribution.gamma,
    fit_method: Union[str, FitMethod] = FitMethod.ub_pwm,
    na_rm: bool = False,
    params: Union[np.ndarray, xr.DataArray, SPEIResult, None] = None
) -> SPEIResult:
    """
    Calculate Standardized Precipitation Index (SPI).

    Same procedure as spei() applied to precipitation, with the Gamma
    distribution (and its probability of zero) by default.

    :return: SPEIResult with index='spi'
    """
    return _standardized_index(
        'spi', precip, scale, data_start_year, data_start_month, ref_start, ref_end,
        kernel, shift, distribution, fit_method, na_rm, params
    )


def spei_multi_scale(
    balance: SeriesLike,
    scales: Iterable[int] = (1, 12),
    **kwargs
) -> Dict[int, SPEIResult]:
    """
    Calculate SPEI for several time scales.

    :param balance: monthly water balance
    :param scales: accumulation periods in months
    :param kwargs: passed to spei()
    :return: dictionary of SPEIResult keyed by scale
    """
    results = {}
    for scale in scales:
        results[scale] = spei(balance, scale=scale, **kwargs)
    return results


# =============================================================================
# CLASSIFICATION
# =============================================================================

def classify_drought(
    index_values: Union[np.ndarray, xr.DataArray]
) -> Union[np.ndarray, xr.DataArray]:
    """
    Classify SPI/SPEI values into drought categories.

    :param index_values: SPI or SPEI values
    :return: array of drought categories (integers, NaN where missing)

    McKee et al. (1993) classification:
        >= 2.0:  Extremely wet (4)
        1.5 to 2.0: Very wet (3)
        1.0 to 1.5: Moderately wet (2)
        -1.0 to 1.0: Near normal (1)
        -1.5 to -1.0: Moderately dry (0)
        -2.0 to -1.5: Severely dry (-1)
        <= -2.0: Extremely dry (-2)
    """
    values = index_values.values if isinstance(index_values, xr.DataArray) else np.asarray(index_values)

    categories = np.full(values.shape, np.nan)

    # Order matters - most extreme last
    categories = np.where(values >= 2.0, 4, categories)
    categories = np.where((values >= 1.5) & (values < 2.0), 3, categories)
    categories = np.where((values >= 1.0) & (values < 1.5), 2, categories)
    categories = np.where((values > -1.0) & (values < 1.0), 1, categories)
    categories = np.where((values <= -1.0) & (values > -1.5), 0, categories)
    categories = np.where((values <= -1.5) & (values > -2.0), -1, categories)
    categories = np.where(values <= -2.0, -2, categories)

    if isinstance(index_values, xr.DataArray):
        return xr.DataArray(
            data=categories,
            dims=index_values.dims,
            coords=index_values.coords,
            name='drought_category',
            attrs={
                'long_name': 'Drought classification (McKee et al., 1993)',
                'flag_values': [-2, -1, 0, 1, 2, 3, 4],
                'flag_meanings': 'extremely_dry severely_dry moderately_dry '
                                 'near_normal moderately_wet very_wet extremely_wet'
            }
        )
    return categories
