"""
Configuration module for evapotranspiration, water balance and SPEI.

Contains enums, constants, variable naming helpers and logging setup.
"""

import logging
from enum import Enum


# =============================================================================
# ENUMS
# =============================================================================

class PETMethod(Enum):
    """
    Evapotranspiration estimators.

    'thornthwaite': mean temperature and latitude only
    'hargreaves': min/max temperature and latitude
    'penman': FAO-56 Penman-Monteith (temperature, wind, radiation, humidity)
    """

    thornthwaite = "thornthwaite"
    hargreaves = "hargreaves"
    penman = "penman"

    def __str__(self):
        return self.name

    @staticmethod
    def from_string(s: str) -> 'PETMethod':
        """
        Convert string to PETMethod enum.

        :param s: method name, case-insensitive
        :return: PETMethod enum value
        :raises ValueError: if string doesn't match any method
        """
        try:
            return PETMethod[s.lower().replace('-', '_')]
        except KeyError:
            raise ValueError(
                f"Invalid PET method: '{s}'. "
                f"Must be one of: {[m.name for m in PETMethod]}"
            )

    @property
    def display_name(self) -> str:
        return PET_DISPLAY_NAMES[self]


class Kernel(Enum):
    """Weighting schemes for accumulating months into a window."""

    rectangular = "rectangular"
    triangular = "triangular"
    circular = "circular"
    gaussian = "gaussian"

    @staticmethod
    def from_string(s: str) -> 'Kernel':
        try:
            return Kernel[s.lower()]
        except KeyError:
            raise ValueError(
                f"Invalid kernel: '{s}'. "
                f"Must be one of: {[k.name for k in Kernel]}"
            )


class Distribution(Enum):
    """Distributions used to standardize accumulated values."""

    log_logistic = "log-logistic"
    gamma = "gamma"
    pearson3 = "pearson3"

    @staticmethod
    def from_string(s: str) -> 'Distribution':
        key = s.lower().replace('-', '_').replace(' ', '_')
        if key in ('pearsoniii', 'pearson_iii', 'pe3'):
            key = 'pearson3'
        if key in ('loglogistic', 'glo'):
            key = 'log_logistic'
        try:
            return Distribution[key]
        except KeyError:
            raise ValueError(
                f"Invalid distribution: '{s}'. "
                f"Must be one of: {[d.value for d in Distribution]}"
            )


class FitMethod(Enum):
    """Parameter estimation methods."""

    ub_pwm = "ub-pwm"    # unbiased probability weighted moments
    pp_pwm = "pp-pwm"    # plotting-position probability weighted moments
    max_lik = "max-lik"  # maximum likelihood, started from ub-pwm

    @staticmethod
    def from_string(s: str) -> 'FitMethod':
        try:
            return FitMethod(s.lower().replace('_', '-'))
        except ValueError:
            raise ValueError(
                f"Invalid fit method: '{s}'. "
                f"Must be one of: {[f.value for f in FitMethod]}"
            )


# =============================================================================
# CONSTANTS
# =============================================================================

MONTHS_PER_YEAR = 12

# Valid range for fitted SPI/SPEI values
# Values outside this range are clipped
FITTED_INDEX_VALID_MIN = -3.09
FITTED_INDEX_VALID_MAX = 3.09

# Fill value for missing data in NetCDF files
NC_FILL_VALUE = -9999.0

# Minimum number of finite values per calendar month required for fitting
MIN_VALUES_FOR_FIT = 4

# Default station: Wichita, Kansas (USA)
DEFAULT_LATITUDE = 37.6475
DEFAULT_ELEVATION = 402.6

# Default time scales (months)
DEFAULT_SCALES = (1, 12)

# Parameter names per distribution, in storage order
DISTRIBUTION_PARAM_NAMES = {
    Distribution.log_logistic: ('xi', 'alpha', 'kappa'),
    Distribution.gamma: ('alpha', 'beta', 'prob_zero'),
    Distribution.pearson3: ('mu', 'sigma', 'gamma'),
}

DISTRIBUTION_DISPLAY_NAMES = {
    Distribution.log_logistic: 'log-Logistic',
    Distribution.gamma: 'Gamma',
    Distribution.pearson3: 'Pearson III',
}

PET_DISPLAY_NAMES = {
    PETMethod.thornthwaite: 'Thornthwaite',
    PETMethod.hargreaves: 'Hargreaves',
    PETMethod.penman: 'Penman-Monteith',
}

# Canonical variable names of a climate table
CLIMATE_VARIABLES = ('precip', 'tmax', 'tmin', 'tmean', 'wind', 'tsun', 'cloud')

# Column aliases recognized when loading a station record (case-insensitive)
COLUMN_ALIASES = {
    'precip': 'precip',
    'prcp': 'precip',
    'pre': 'precip',
    'precipitation': 'precip',
    'ppt': 'precip',
    'tmax': 'tmax',
    'tmin': 'tmin',
    'tmed': 'tmean',
    'tavg': 'tmean',
    'tmean': 'tmean',
    'awnd': 'wind',
    'wind': 'wind',
    'u2': 'wind',
    'tsun': 'tsun',
    'acsh': 'tsun',
    'acsc': 'cloud',
    'cc': 'cloud',
    'cloud': 'cloud',
}

VARIABLE_ATTRS = {
    'precip': {'long_name': 'Monthly precipitation', 'units': 'mm'},
    'tmax': {'long_name': 'Mean daily maximum temperature', 'units': 'degC'},
    'tmin': {'long_name': 'Mean daily minimum temperature', 'units': 'degC'},
    'tmean': {'long_name': 'Mean temperature', 'units': 'degC'},
    'wind': {'long_name': 'Mean wind speed at 2 m', 'units': 'm s-1'},
    'tsun': {'long_name': 'Mean daily sunshine duration', 'units': 'h'},
    'cloud': {'long_name': 'Mean cloud cover', 'units': '%'},
}

KMH_TO_MS = 1.0 / 3.6


# =============================================================================
# LOGGING
# =============================================================================

def get_logger(
    name: str,
    level: int = logging.INFO
) -> logging.Logger:
    """
    Set up and return a logger with consistent formatting.

    :param name: logger name (typically __name__ of calling module)
    :param level: logging level (default: logging.INFO)
    :return: configured logger instance
    """
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def pet_variable_name(method: PETMethod) -> str:
    """Name of the evapotranspiration variable, e.g. 'pet_penman'."""
    return f"pet_{method.name}"


def balance_variable_name(method: PETMethod) -> str:
    """Name of the water balance variable, e.g. 'balance_penman'."""
    return f"balance_{method.name}"


def get_variable_name(index: str, scale: int) -> str:
    """
    Generate standardized variable name for SPI/SPEI output.

    :param index: index type ('spi' or 'spei')
    :param scale: time scale in months
    :return: formatted variable name (e.g., 'spei_12_month')
    """
    return f"{index.lower()}_{scale}_month"


def get_long_name(index: str, scale: int, distribution: Distribution) -> str:
    """
    Generate long descriptive name for NetCDF attributes.

    :param index: index type ('spi' or 'spei')
    :param scale: time scale in months
    :param distribution: Distribution enum value
    :return: formatted long name
    """
    index_names = {
        'spi': 'Standardized Precipitation Index',
        'spei': 'Standardized Precipitation-Evapotranspiration Index',
    }
    index_full = index_names.get(index.lower(), index.upper())
    return f"{index_full} ({DISTRIBUTION_DISPLAY_NAMES[distribution]}), {scale}-month"


def get_variable_attributes(
    index: str,
    scale: int,
    distribution: Distribution,
    fit_method: FitMethod,
    kernel: Kernel
) -> dict:
    """
    Generate standard NetCDF variable attributes for SPI/SPEI.

    :return: dictionary of attributes
    """
    return {
        'long_name': get_long_name(index, scale, distribution),
        'units': '1',
        'valid_min': FITTED_INDEX_VALID_MIN,
        'valid_max': FITTED_INDEX_VALID_MAX,
        'distribution': distribution.value,
        'fit_method': fit_method.value,
        'kernel': kernel.value,
        'scale': scale,
    }
