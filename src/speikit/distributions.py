"""
Probability distribution fitting for SPI and SPEI calculation.

This module provides the distributions used to standardize accumulated
precipitation or climatic water balance:

1. Log-Logistic - Standard for SPEI (Vicente-Serrano et al. 2010). Fitted
   in Hosking's three-parameter (generalized logistic) form so that negative
   water balance values need no offset.
2. Gamma - Standard for SPI (McKee et al. 1993), mixed with the probability
   of zero precipitation.
3. Pearson Type III - Alternative for SPEI.

Each distribution supports:
- Unbiased probability weighted moments (ub-pwm, default)
- Plotting-position probability weighted moments (pp-pwm)
- Maximum likelihood (max-lik), started from the ub-pwm estimate

References:
    - Hosking, J.R.M. (1990). L-moments: Analysis and estimation of
      distributions using linear combinations of order statistics.
    - Vicente-Serrano, S.M., Beguería, S., López-Moreno, J.I. (2010).
      A Multiscalar Drought Index Sensitive to Global Warming: SPEI.
    - Beguería, S., Vicente-Serrano, S.M., Reig, F., Latorre, B. (2014).
      Standardized precipitation evapotranspiration index (SPEI) revisited.
      International Journal of Climatology, 34, 3001-3023.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional, Tuple, Union

import numpy as np
from scipy import optimize, stats
from scipy.special import comb, gammaln

from .config import (
    DISTRIBUTION_PARAM_NAMES,
    FITTED_INDEX_VALID_MAX,
    FITTED_INDEX_VALID_MIN,
    MIN_VALUES_FOR_FIT,
    Distribution,
    FitMethod,
    get_logger,
)

# Module logger
_logger = get_logger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# Small value to avoid division by zero
EPSILON = 1e-10

# Plotting position constant for pp-pwm, p_i = (i + A) / n
PP_PWM_A = -0.35

# CDF bounds before the probit transform
CDF_CLIP = 1e-10


@dataclass
class DistributionParams:
    """Container for fitted distribution parameters."""
    distribution: Distribution
    params: Dict[str, float]
    n_samples: int
    fit_method: FitMethod

    def is_valid(self) -> bool:
        """Check if parameters are valid for computation."""
        return all(np.isfinite(v) for v in self.params.values())

    def as_array(self) -> np.ndarray:
        """Parameters in storage order (see DISTRIBUTION_PARAM_NAMES)."""
        names = DISTRIBUTION_PARAM_NAMES[self.distribution]
        return np.array([self.params[n] for n in names], dtype=float)

    @classmethod
    def from_array(
        cls,
        values: np.ndarray,
        distribution: Distribution,
        fit_method: FitMethod = FitMethod.ub_pwm,
        n_samples: int = 0
    ) -> 'DistributionParams':
        names = DISTRIBUTION_PARAM_NAMES[distribution]
        return cls(
            distribution=distribution,
            params={n: float(v) for n, v in zip(names, values)},
            n_samples=n_samples,
            fit_method=fit_method,
        )


class GoodnessOfFit(NamedTuple):
    """Goodness-of-fit test results."""
    ks_statistic: float
    ks_pvalue: float
    n_samples: int


# =============================================================================
# PROBABILITY WEIGHTED MOMENTS AND L-MOMENTS
# =============================================================================

def compute_pwm(
    values: np.ndarray,
    method: FitMethod = FitMethod.ub_pwm,
    nmom: int = 3
) -> np.ndarray:
    """
    Compute probability weighted moments b_0 .. b_{nmom-1} of a sample.

    ub-pwm (unbiased):
        b_r = 1/n * sum_i [C(i-1, r) / C(n-1, r)] * x_(i)
    pp-pwm (plotting position p_i = (i - 0.35) / n):
        b_r = 1/n * sum_i p_i^r * x_(i)

    :param values: 1-D array of sample values (NaN removed)
    :param method: FitMethod.ub_pwm or FitMethod.pp_pwm
    :param nmom: number of moments
    :return: array of PWMs
    """
    x = np.sort(np.asarray(values, dtype=float))
    n = len(x)
    if n < nmom:
        return np.full(nmom, np.nan)

    ranks = np.arange(1, n + 1)
    b = np.zeros(nmom)

    if method == FitMethod.pp_pwm:
        p = (ranks + PP_PWM_A) / n
        for r in range(nmom):
            b[r] = np.mean(p ** r * x)
    else:
        for r in range(nmom):
            weights = comb(ranks - 1, r) / comb(n - 1, r)
            b[r] = np.mean(weights * x)

    return b


def pwm_to_lmoments(b: np.ndarray) -> np.ndarray:
    """
    Convert PWMs [b0, b1, b2] to L-moments [l1, l2, l3].
    """
    return np.array([
        b[0],
        2 * b[1] - b[0],
        6 * b[2] - 6 * b[1] + b[0],
    ])


def compute_lmoments(
    values: np.ndarray,
    method: FitMethod = FitMethod.ub_pwm
) -> np.ndarray:
    """
    Compute the first three sample L-moments.

    :param values: 1-D array of sample values
    :param method: PWM estimator used
    :return: array [l1, l2, l3]
    """
    return pwm_to_lmoments(compute_pwm(values, method, nmom=3))


# =============================================================================
# LOG-LOGISTIC DISTRIBUTION
# =============================================================================

def _log_logistic_lmoments(l1: float, l2: float, l3: float) -> Tuple[float, float, float]:
    """
    Log-Logistic (generalized logistic) parameters from L-moments.

    Reference: Hosking (1990)
        kappa = -t3
        alpha = l2 * sin(kappa*pi) / (kappa*pi)
        xi    = l1 - alpha * (1/kappa - pi/sin(kappa*pi))
    """
    if not np.all(np.isfinite([l1, l2, l3])) or l2 <= EPSILON:
        return np.nan, np.nan, np.nan

    kappa = -l3 / l2
    if abs(kappa) >= 1:
        return np.nan, np.nan, np.nan

    if abs(kappa) < 1e-6:
        # Standard logistic
        return l1, l2, 0.0

    kk = kappa * np.pi
    alpha = l2 * np.sin(kk) / kk
    xi = l1 - alpha * (1.0 / kappa - np.pi / np.sin(kk))
    return xi, alpha, kappa


def _log_logistic_reduced(
    values: np.ndarray,
    xi: float,
    alpha: float,
    kappa: float
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Reduced variate y of the Log-Logistic distribution.

    :return: tuple of (y, inside_support mask); y is NaN outside the support
    """
    z = (values - xi) / alpha
    if abs(kappa) < 1e-6:
        return z, np.isfinite(z)

    arg = 1.0 - kappa * z
    inside = arg > 0
    y = np.full(values.shape, np.nan)
    y[inside] = -np.log(arg[inside]) / kappa
    return y, inside


def _log_logistic_neg_loglik(theta: np.ndarray, values: np.ndarray) -> float:
    xi, log_alpha, kappa = theta
    if abs(kappa) >= 1:
        return np.inf
    alpha = np.exp(log_alpha)
    y, inside = _log_logistic_reduced(values, xi, alpha, kappa)
    if not np.all(inside):
        return np.inf
    log_pdf = -log_alpha - (1.0 - kappa) * y - 2.0 * np.logaddexp(0.0, -y)
    return -float(np.sum(log_pdf))


def fit_log_logistic(
    values: np.ndarray,
    method: FitMethod = FitMethod.ub_pwm
) -> DistributionParams:
    """
    Fit the three-parameter Log-Logistic distribution.

    Handles negative values directly, which is required for the climatic
    water balance.

    :param values: array of values (NaN ignored)
    :param method: parameter estimation method
    :return: DistributionParams with xi (location), alpha (scale), kappa (shape)
    """
    valid_values = values[np.isfinite(values)]
    n_total = len(valid_values)

    if n_total < MIN_VALUES_FOR_FIT:
        return _invalid_params(Distribution.log_logistic, method, n_total)

    pwm_method = FitMethod.pp_pwm if method == FitMethod.pp_pwm else FitMethod.ub_pwm
    xi, alpha, kappa = _log_logistic_lmoments(*compute_lmoments(valid_values, pwm_method))

    if method == FitMethod.max_lik and np.isfinite(alpha):
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                result = optimize.minimize(
                    _log_logistic_neg_loglik,
                    x0=np.array([xi, np.log(alpha), kappa]),
                    args=(valid_values,),
                    method='Nelder-Mead',
                    options={'maxiter': 2000, 'xatol': 1e-8, 'fatol': 1e-8},
                )
            if result.success and np.isfinite(result.fun):
                xi, alpha, kappa = result.x[0], float(np.exp(result.x[1])), result.x[2]
            else:
                _logger.debug(f"Log-Logistic ML fit did not converge: {result.message}")
        except (ValueError, FloatingPointError) as e:
            _logger.debug(f"Log-Logistic ML fit failed, keeping PWM estimate: {e}")

    return DistributionParams(
        distribution=Distribution.log_logistic,
        params={'xi': xi, 'alpha': alpha, 'kappa': kappa},
        n_samples=n_total,
        fit_method=method,
    )


def log_logistic_cdf(
    values: np.ndarray,
    params: DistributionParams
) -> np.ndarray:
    """
    Compute CDF using the Log-Logistic distribution.

        F(x) = 1 / (1 + exp(-y)),  y = -log(1 - kappa*(x - xi)/alpha) / kappa

    Values beyond the support bound get 0 (below) or 1 (above).

    :param values: array of values to transform
    :param params: fitted distribution parameters
    :return: array of CDF values in [0, 1]
    """
    result = np.full(values.shape, np.nan)
    if not params.is_valid():
        return result

    xi = params.params['xi']
    alpha = params.params['alpha']
    kappa = params.params['kappa']

    valid_mask = np.isfinite(values)
    x = values[valid_mask]
    y, inside = _log_logistic_reduced(x, xi, alpha, kappa)

    cdf = np.empty(x.shape)
    cdf[inside] = 1.0 / (1.0 + np.exp(-y[inside]))
    cdf[~inside] = 1.0 if kappa > 0 else 0.0
    result[valid_mask] = cdf
    return result


def log_logistic_density(
    x: np.ndarray,
    alpha: float = 1.0,
    beta: float = 1.0
) -> np.ndarray:
    """
    Two-parameter log-logistic density with scale alpha and shape beta.

        f(x) = (beta/alpha) (x/alpha)^(beta-1) / (1 + (x/alpha)^beta)^2

    :param x: positive values
    :return: probability densities
    """
    x = np.asarray(x, dtype=float)
    ratio = x / alpha
    return (beta / alpha) * ratio ** (beta - 1) / (1.0 + ratio ** beta) ** 2


# =============================================================================
# GAMMA DISTRIBUTION
# =============================================================================

def _gamma_lmoments(l1: float, l2: float) -> Tuple[float, float]:
    """
    Gamma parameters from L-moments.

    Reference: Hosking (1990), rational approximation of the shape from L-CV.
    """
    if not np.isfinite(l1) or not np.isfinite(l2) or l1 <= EPSILON or l2 <= EPSILON:
        return np.nan, np.nan

    cv = l2 / l1
    if cv >= 1:
        return np.nan, np.nan

    if cv < 0.5:
        t = np.pi * cv ** 2
        alpha = (1.0 - 0.3080 * t) / (t - 0.05812 * t ** 2 + 0.01765 * t ** 3)
    else:
        t = 1.0 - cv
        alpha = t * (0.7213 - 0.5947 * t) / (1.0 - 2.1817 * t + 1.2113 * t ** 2)

    return alpha, l1 / alpha


def fit_gamma(
    values: np.ndarray,
    method: FitMethod = FitMethod.ub_pwm
) -> DistributionParams:
    """
    Fit Gamma distribution with a point mass at zero.

    The Gamma distribution is the standard choice for SPI calculation
    as precipitation is bounded at zero and positively skewed.

    :param values: array of values (values <= 0 count as zeros)
    :param method: parameter estimation method
    :return: DistributionParams with alpha (shape), beta (scale), prob_zero
    """
    valid_values = values[np.isfinite(values)]
    n_total = len(valid_values)

    if n_total == 0:
        return _invalid_params(Distribution.gamma, method)

    prob_zero = float(np.sum(valid_values <= 0)) / n_total
    positive_values = valid_values[valid_values > 0]

    if len(positive_values) < MIN_VALUES_FOR_FIT:
        invalid = _invalid_params(Distribution.gamma, method, n_total)
        invalid.params['prob_zero'] = prob_zero
        return invalid

    pwm_method = FitMethod.pp_pwm if method == FitMethod.pp_pwm else FitMethod.ub_pwm
    lmom = compute_lmoments(positive_values, pwm_method)
    alpha, beta = _gamma_lmoments(lmom[0], lmom[1])

    if method == FitMethod.max_lik and np.isfinite(alpha):
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                ml_alpha, _, ml_beta = stats.gamma.fit(positive_values, alpha, floc=0, scale=beta)
            if np.isfinite(ml_alpha) and np.isfinite(ml_beta):
                alpha, beta = ml_alpha, ml_beta
        except (ValueError, RuntimeError) as e:
            _logger.debug(f"Gamma ML fit failed, keeping PWM estimate: {e}")

    return DistributionParams(
        distribution=Distribution.gamma,
        params={'alpha': alpha, 'beta': beta, 'prob_zero': prob_zero},
        n_samples=n_total,
        fit_method=method,
    )


def gamma_cdf(
    values: np.ndarray,
    params: DistributionParams
) -> np.ndarray:
    """
    Compute CDF using Gamma distribution with zero-inflation.

        H(x) = q + (1 - q) * G(x)

    :param values: array of values to transform
    :param params: fitted distribution parameters
    :return: array of CDF values in [0, 1]
    """
    result = np.full(values.shape, np.nan)
    if not params.is_valid():
        return result

    alpha = params.params['alpha']
    beta = params.params['beta']
    prob_zero = params.params['prob_zero']

    valid_mask = np.isfinite(values)
    x = np.where(values[valid_mask] > 0, values[valid_mask], 0.0)
    result[valid_mask] = prob_zero + (1.0 - prob_zero) * stats.gamma.cdf(x, alpha, scale=beta)
    return result


# =============================================================================
# PEARSON TYPE III DISTRIBUTION
# =============================================================================

def _pearson3_lmoments(l1: float, l2: float, l3: float) -> Tuple[float, float, float]:
    """
    Pearson III parameters (mean, std, skew) from L-moments.

    Reference: Hosking (1990), Appendix
    """
    if not np.all(np.isfinite([l1, l2, l3])) or l2 <= EPSILON:
        return np.nan, np.nan, np.nan

    t3 = l3 / l2
    if abs(t3) >= 1:
        return np.nan, np.nan, np.nan

    if abs(t3) <= 1e-6:
        # Normal
        return l1, l2 * np.sqrt(np.pi), 0.0

    abs_t3 = abs(t3)
    if abs_t3 < 1.0 / 3.0:
        z = 3.0 * np.pi * abs_t3 ** 2
        shape = (1.0 + 0.2906 * z) / (z + 0.1882 * z ** 2 + 0.0442 * z ** 3)
    else:
        z = 1.0 - abs_t3
        shape = (0.36067 * z - 0.59567 * z ** 2 + 0.25361 * z ** 3) / (
            1.0 - 2.78861 * z + 2.56096 * z ** 2 - 0.77045 * z ** 3
        )

    root_shape = np.sqrt(shape)
    scale = np.sqrt(np.pi) * l2 * np.exp(gammaln(shape) - gammaln(shape + 0.5))
    return l1, scale * root_shape, 2.0 / root_shape * np.sign(t3)


def fit_pearson3(
    values: np.ndarray,
    method: FitMethod = FitMethod.ub_pwm
) -> DistributionParams:
    """
    Fit Pearson Type III distribution to data.

    Pearson III (3-parameter Gamma) can handle negative values (water
    deficit) and asymmetric distributions.

    :param values: array of values (NaN ignored)
    :param method: parameter estimation method
    :return: DistributionParams with mu (mean), sigma (std), gamma (skew)
    """
    valid_values = values[np.isfinite(values)]
    n_total = len(valid_values)

    if n_total < MIN_VALUES_FOR_FIT:
        return _invalid_params(Distribution.pearson3, method, n_total)

    pwm_method = FitMethod.pp_pwm if method == FitMethod.pp_pwm else FitMethod.ub_pwm
    mu, sigma, skew = _pearson3_lmoments(*compute_lmoments(valid_values, pwm_method))

    if method == FitMethod.max_lik and np.isfinite(sigma):
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                ml_skew, ml_mu, ml_sigma = stats.pearson3.fit(valid_values, skew, loc=mu, scale=sigma)
            if np.all(np.isfinite([ml_skew, ml_mu, ml_sigma])):
                mu, sigma, skew = ml_mu, ml_sigma, ml_skew
        except (ValueError, RuntimeError) as e:
            _logger.debug(f"Pearson III ML fit failed, keeping PWM estimate: {e}")

    return DistributionParams(
        distribution=Distribution.pearson3,
        params={'mu': mu, 'sigma': sigma, 'gamma': skew},
        n_samples=n_total,
        fit_method=method,
    )


def pearson3_cdf(
    values: np.ndarray,
    params: DistributionParams
) -> np.ndarray:
    """
    Compute CDF using Pearson Type III distribution.

    :param values: array of values to transform
    :param params: fitted distribution parameters
    :return: array of CDF values in [0, 1]
    """
    result = np.full(values.shape, np.nan)
    if not params.is_valid() or params.params['sigma'] <= 0:
        return result

    valid_mask = np.isfinite(values)
    result[valid_mask] = stats.pearson3.cdf(
        values[valid_mask],
        params.params['gamma'],
        loc=params.params['mu'],
        scale=params.params['sigma'],
    )
    return result


# =============================================================================
# UNIFIED INTERFACE
# =============================================================================

# Mapping of distribution types to fitting and CDF functions
_DISTRIBUTION_FUNCTIONS = {
    Distribution.log_logistic: (fit_log_logistic, log_logistic_cdf),
    Distribution.gamma: (fit_gamma, gamma_cdf),
    Distribution.pearson3: (fit_pearson3, pearson3_cdf),
}


def fit_distribution(
    values: np.ndarray,
    distribution: Union[str, Distribution] = Distribution.log_logistic,
    method: Union[str, FitMethod] = FitMethod.ub_pwm
) -> DistributionParams:
    """
    Unified interface for distribution fitting.

    :param values: 1-D array of values
    :param distribution: distribution type (string or Distribution)
    :param method: fitting method (string or FitMethod)
    :return: DistributionParams object

    Example:
        >>> params = fit_distribution(balance, 'log-logistic', 'ub-pwm')
        >>> cdf_values = compute_cdf(balance, params)
    """
    if isinstance(distribution, str):
        distribution = Distribution.from_string(distribution)
    if isinstance(method, str):
        method = FitMethod.from_string(method)

    fit_func, _ = _DISTRIBUTION_FUNCTIONS[distribution]
    return fit_func(np.asarray(values, dtype=float), method)


def compute_cdf(
    values: np.ndarray,
    params: DistributionParams
) -> np.ndarray:
    """
    Compute CDF using fitted distribution parameters.

    :param values: array of values to transform
    :param params: DistributionParams from fit_distribution()
    :return: array of CDF values in [0, 1]
    """
    _, cdf_func = _DISTRIBUTION_FUNCTIONS[params.distribution]
    return cdf_func(np.asarray(values, dtype=float), params)


def cdf_to_standard_normal(cdf_values: np.ndarray) -> np.ndarray:
    """
    Transform CDF values to standard normal distribution (SPI/SPEI values).

    Uses inverse standard normal (probit) transformation.

    :param cdf_values: array of CDF values in [0, 1]
    :return: array of standard normal values (SPI/SPEI)
    """
    # Clip to avoid infinite values at extremes
    cdf_clipped = np.clip(cdf_values, CDF_CLIP, 1 - CDF_CLIP)

    result = stats.norm.ppf(cdf_clipped)

    return np.clip(result, FITTED_INDEX_VALID_MIN, FITTED_INDEX_VALID_MAX)


# =============================================================================
# GOODNESS OF FIT
# =============================================================================

def goodness_of_fit(
    values: np.ndarray,
    params: DistributionParams
) -> GoodnessOfFit:
    """
    Kolmogorov-Smirnov test of the probability integral transform.

    If the distribution fits, CDF values of the sample are uniform on [0, 1].

    :param values: original data values
    :param params: fitted distribution parameters
    :return: GoodnessOfFit named tuple
    """
    valid_values = values[np.isfinite(values)]
    n = len(valid_values)

    if n < MIN_VALUES_FOR_FIT or not params.is_valid():
        return GoodnessOfFit(np.nan, np.nan, n)

    cdf_values = compute_cdf(valid_values, params)
    ks_stat, ks_pvalue = stats.kstest(cdf_values[np.isfinite(cdf_values)], 'uniform')
    return GoodnessOfFit(float(ks_stat), float(ks_pvalue), n)


def compare_distributions(
    values: np.ndarray,
    distributions: Optional[List[Distribution]] = None,
    method: FitMethod = FitMethod.ub_pwm
) -> Dict[str, Dict]:
    """
    Compare candidate distributions on the same sample.

    :param values: 1-D array of values
    :param distributions: distributions to compare (default: all)
    :param method: fitting method
    :return: dictionary with fit results for each distribution

    Example:
        >>> results = compare_distributions(balance_july)
        >>> best = max(results.items(), key=lambda x: x[1]['ks_pvalue'])
    """
    if distributions is None:
        distributions = list(Distribution)

    results = {}
    for dist in distributions:
        params = fit_distribution(values, dist, method)
        gof = goodness_of_fit(values, params)
        results[dist.value] = {
            'params': params.params,
            'ks_statistic': gof.ks_statistic,
            'ks_pvalue': gof.ks_pvalue,
            'valid': params.is_valid(),
        }
    return results


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _invalid_params(
    distribution: Distribution,
    method: FitMethod,
    n_samples: int = 0
) -> DistributionParams:
    """Create invalid parameters object for failed fits."""
    return DistributionParams(
        distribution=distribution,
        params={name: np.nan for name in DISTRIBUTION_PARAM_NAMES[distribution]},
        n_samples=n_samples,
        fit_method=method,
    )


# =============================================================================
# PUBLIC API
# =============================================================================

__all__ = [
    'DistributionParams',
    'GoodnessOfFit',
    'fit_distribution',
    'compute_cdf',
    'cdf_to_standard_normal',
    'fit_log_logistic',
    'fit_gamma',
    'fit_pearson3',
    'log_logistic_cdf',
    'log_logistic_density',
    'gamma_cdf',
    'pearson3_cdf',
    'compute_pwm',
    'pwm_to_lmoments',
    'compute_lmoments',
    'goodness_of_fit',
    'compare_distributions',
]
