"""
Core computation functions for SPI/SPEI calculation.

Includes kernel-weighted accumulation over a time scale, per-calendar-month
distribution fitting on a reference period, and the transformation of
accumulated values into standardized index values. The rolling
accumulation is JIT compiled with Numba.

References:
    - Vicente-Serrano, S.M., Beguería, S., López-Moreno, J.I. (2010).
      A Multiscalar Drought Index Sensitive to Global Warming: SPEI.
      Journal of Climate, 23(7), 1696-1718.
    - Beguería, S., Vicente-Serrano, S.M., Reig, F., Latorre, B. (2014).
      Standardized precipitation evapotranspiration index (SPEI) revisited.
      International Journal of Climatology, 34, 3001-3023.
"""

from typing import Optional, Tuple, Union

import numpy as np
from numba import jit

from .config import (
    DISTRIBUTION_PARAM_NAMES,
    MONTHS_PER_YEAR,
    Distribution,
    FitMethod,
    Kernel,
    get_logger,
)
from .distributions import (
    DistributionParams,
    cdf_to_standard_normal,
    compute_cdf,
    fit_distribution,
)
from .utils import as_1d_array, check_missing, month_calendar, series_position

# Module logger
_logger = get_logger(__name__)

YearMonth = Tuple[int, int]


# =============================================================================
# KERNELS AND SCALING
# =============================================================================

def kernel_weights(
    scale: int,
    kernel: Union[str, Kernel] = Kernel.rectangular,
    shift: int = 0
) -> np.ndarray:
    """
    Weights applied to the months of an accumulation window.

    Index 0 is the current month, index scale-1 the oldest one. Weights
    decrease with the distance d = |i - shift| from the kernel peak:

        rectangular: 1
        triangular:  scale - d
        circular:    sqrt(scale^2 - d^2)
        gaussian:    exp(-0.5 * (3d / scale)^2)

    Weights are normalized to sum to `scale`, so the rectangular kernel
    reproduces a plain rolling sum.

    :param scale: number of months in the window
    :param kernel: kernel type
    :param shift: months between the current month and the kernel peak
    :return: array of `scale` weights
    :raises ValueError: if scale < 1 or shift is outside [0, scale)
    """
    if isinstance(kernel, str):
        kernel = Kernel.from_string(kernel)
    if scale < 1:
        raise ValueError(f"Scale must be >= 1, got: {scale}")
    if not 0 <= shift < scale:
        raise ValueError(f"Kernel shift must be in [0, {scale}), got: {shift}")

    distance = np.abs(np.arange(scale) - shift).astype(float)

    if kernel == Kernel.rectangular:
        weights = np.ones(scale)
    elif kernel == Kernel.triangular:
        weights = scale - distance
    elif kernel == Kernel.circular:
        weights = np.sqrt(scale ** 2 - distance ** 2)
    else:
        weights = np.exp(-0.5 * (3.0 * distance / scale) ** 2)

    return weights * scale / weights.sum()


@jit(nopython=True, cache=True)
def _weighted_sum_1d(values: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """
    Numba-optimized weighted rolling sum for 1-D array.

    :param values: 1-D array of values
    :param weights: window weights, index 0 = current step
    :return: array of rolling sums (first len(weights)-1 values are NaN)
    """
    n = len(values)
    scale = len(weights)
    result = np.full(n, np.nan)

    for i in range(scale - 1, n):
        total = 0.0
        complete = True

        for j in range(scale):
            val = values[i - j]
            if np.isnan(val):
                complete = False
                break
            total += val * weights[j]

        # Only compute sum if all values in window are valid
        if complete:
            result[i] = total

    return result


def sum_to_scale(
    values: np.ndarray,
    scale: int,
    kernel: Union[str, Kernel] = Kernel.rectangular,
    shift: int = 0
) -> np.ndarray:
    """
    Compute kernel-weighted rolling accumulation over specified time scale.

    For SPI/SPEI, this accumulates precipitation (or P-PET) over the
    specified number of months (e.g., 1, 3, 12).

    :param values: 1-D numpy array of values (precipitation or P-PET)
    :param scale: number of months to accumulate
    :param kernel: weighting of the months in the window
    :param shift: kernel peak offset in months
    :return: array of accumulated values, same length as input.
        First (scale-1) values, and windows containing NaN, are NaN
    """
    weights = kernel_weights(scale, kernel, shift)
    values = np.ascontiguousarray(values, dtype=np.float64)

    if scale == 1:
        return values.copy()

    return _weighted_sum_1d(values, weights)


# =============================================================================
# REFERENCE PERIOD
# =============================================================================

def reference_mask(
    length: int,
    data_start_year: int,
    data_start_month: int = 1,
    ref_start: Optional[YearMonth] = None,
    ref_end: Optional[YearMonth] = None
) -> np.ndarray:
    """
    Boolean mask selecting the reference (calibration) period.

    Defaults to the whole record. Bounds outside the record are clamped
    to it.

    :param length: series length
    :param data_start_year: year of the first value
    :param data_start_month: month of the first value
    :param ref_start: (year, month) of the first reference month
    :param ref_end: (year, month) of the last reference month
    :return: boolean array
    :raises ValueError: if the period is empty or does not overlap the data
    """
    first = 0
    last = length - 1
    if ref_start is not None:
        first = series_position(ref_start[0], ref_start[1], data_start_year, data_start_month)
    if ref_end is not None:
        last = series_position(ref_end[0], ref_end[1], data_start_year, data_start_month)

    if first > last:
        raise ValueError(f"Reference period start {ref_start} is after its end {ref_end}")
    if last < 0 or first > length - 1:
        raise ValueError(
            f"Reference period {ref_start}..{ref_end} does not overlap the data"
        )

    if first < 0 or last > length - 1:
        _logger.debug("Reference period clamped to the data span")

    mask = np.zeros(length, dtype=bool)
    mask[max(first, 0):min(last, length - 1) + 1] = True
    return mask


# =============================================================================
# FITTING AND TRANSFORMATION
# =============================================================================

def fit_monthly_params(
    accumulated: np.ndarray,
    months: np.ndarray,
    ref_mask: np.ndarray,
    distribution: Distribution = Distribution.log_logistic,
    fit_method: FitMethod = FitMethod.ub_pwm
) -> np.ndarray:
    """
    Fit one distribution per calendar month on reference-period values.

    :param accumulated: accumulated values
    :param months: calendar month (1-12) of each value
    :param ref_mask: boolean mask of the reference period
    :param distribution: distribution type
    :param fit_method: parameter estimation method
    :return: parameters with shape (n_params, 12); NaN columns for failed fits
    """
    names = DISTRIBUTION_PARAM_NAMES[distribution]
    params = np.full((len(names), MONTHS_PER_YEAR), np.nan)
    failed = []

    for month in range(1, MONTHS_PER_YEAR + 1):
        sample = accumulated[(months == month) & ref_mask]
        fitted = fit_distribution(sample, distribution, fit_method)
        params[:, month - 1] = fitted.as_array()
        if not fitted.is_valid():
            failed.append(month)

    if failed:
        _logger.warning(
            f"{distribution.value} fit failed for month(s) {failed}; "
            f"index values for these months are NaN"
        )

    return params


def transform_to_index(
    accumulated: np.ndarray,
    months: np.ndarray,
    params: np.ndarray,
    distribution: Distribution = Distribution.log_logistic
) -> np.ndarray:
    """
    Transform accumulated values to standardized index values.

    Each value goes through the CDF of its calendar month's distribution and
    then through the inverse standard normal.

    :param accumulated: accumulated values
    :param months: calendar month (1-12) of each value
    :param params: parameters with shape (n_params, 12)
    :param distribution: distribution type
    :return: index values (NaN where input or parameters are missing)
    """
    result = np.full(accumulated.shape, np.nan)

    for month in range(1, MONTHS_PER_YEAR + 1):
        idx = months == month
        if not np.any(idx):
            continue
        month_params = DistributionParams.from_array(params[:, month - 1], distribution)
        cdf = compute_cdf(accumulated[idx], month_params)
        result[idx] = np.where(np.isnan(cdf), np.nan, cdf_to_standard_normal(cdf))

    return result


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def _compute_index_1d(
    values: np.ndarray,
    name: str,
    scale: int,
    data_start_year: int,
    data_start_month: int,
    ref_start: Optional[YearMonth],
    ref_end: Optional[YearMonth],
    kernel: Union[str, Kernel],
    shift: int,
    distribution: Union[str, Distribution],
    fit_method: Union[str, FitMethod],
    na_rm: bool,
    params: Optional[np.ndarray]
) -> Tuple[np.ndarray, np.ndarray]:
    if isinstance(distribution, str):
        distribution = Distribution.from_string(distribution)
    if isinstance(fit_method, str):
        fit_method = FitMethod.from_string(fit_method)

    values = as_1d_array(values, name)
    check_missing(values, name, na_rm)

    accumulated = sum_to_scale(values, scale, kernel, shift)
    _, months = month_calendar(len(values), data_start_year, data_start_month)

    if params is None:
        ref_mask = reference_mask(
            len(values), data_start_year, data_start_month, ref_start, ref_end
        )
        params = fit_monthly_params(accumulated, months, ref_mask, distribution, fit_method)
    else:
        params = np.asarray(params, dtype=float)
        expected = (len(DISTRIBUTION_PARAM_NAMES[distribution]), MONTHS_PER_YEAR)
        if params.shape != expected:
            raise ValueError(
                f"Fitting parameters must have shape {expected} for "
                f"{distribution.value}, got: {params.shape}"
            )
        _logger.info("Using pre-computed fitting parameters")

    result = transform_to_index(accumulated, months, params, distribution)
    return result, params


def compute_spei_1d(
    balance: np.ndarray,
    scale: int,
    data_start_year: int,
    data_start_month: int = 1,
    ref_start: Optional[YearMonth] = None,
    ref_end: Optional[YearMonth] = None,
    kernel: Union[str, Kernel] = Kernel.rectangular,
    shift: int = 0,
    distribution: Union[str, Distribution] = Distribution.log_logistic,
    fit_method: Union[str, FitMethod] = FitMethod.ub_pwm,
    na_rm: bool = False,
    params: Optional[np.ndarray] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Compute SPEI for a single climatic water balance series.

    :param balance: 1-D array of monthly P - PET values (mm)
    :param scale: accumulation scale in months
    :param data_start_year: year of the first value
    :param data_start_month: month of the first value (1-12)
    :param ref_start: (year, month) start of the reference period
    :param ref_end: (year, month) end of the reference period
    :param kernel: accumulation kernel
    :param shift: kernel peak offset in months
    :param distribution: distribution fitted to the accumulated balance
    :param fit_method: parameter estimation method
    :param na_rm: allow missing values
    :param params: optional pre-computed parameters, shape (n_params, 12)
    :return: tuple of (SPEI values, parameters array)
    """
    return _compute_index_1d(
        balance, 'balance', scale, data_start_year, data_start_month,
        ref_start, ref_end, kernel, shift, distribution, fit_method, na_rm, params
    )


def compute_spi_1d(
    precip: np.ndarray,
    scale: int,
    data_start_year: int,
    data_start_month: int = 1,
    ref_start: Optional[YearMonth] = None,
    ref_end: Optional[YearMonth] = None,
    kernel: Union[str, Kernel] = Kernel.rectangular,
    shift: int = 0,
    distribution: Union[str, Distribution] = Distribution.gamma,
    fit_method: Union[str, FitMethod] = FitMethod.ub_pwm,
    na_rm: bool = False,
    params: Optional[np.ndarray] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Compute SPI for a single precipitation series.

    Same algorithm as SPEI, applied to precipitation with the Gamma
    distribution by default.

    :return: tuple of (SPI values, parameters array)
    """
    return _compute_index_1d(
        precip, 'precip', scale, data_start_year, data_start_month,
        ref_start, ref_end, kernel, shift, distribution, fit_method, na_rm, params
    )
