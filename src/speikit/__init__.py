"""
speikit - Evapotranspiration and SPEI for station climate records

Estimate monthly potential/reference evapotranspiration (Thornthwaite,
Hargreaves, FAO-56 Penman-Monteith), derive the climatic water balance
(P - PET) and compute the Standardized Precipitation-Evapotranspiration
Index (SPEI) at any time scale with a log-logistic fit per calendar month.

Negative index values indicate dry conditions, positive values wet ones.

References:
    Vicente-Serrano, S.M., Beguería, S., López-Moreno, J.I. (2010). A Multiscalar
    Drought Index Sensitive to Global Warming: The Standardized Precipitation
    Evapotranspiration Index. Journal of Climate, 23(7), 1696-1718.

    Allen, R.G., Pereira, L.S., Raes, D., Smith, M. (1998). Crop evapotranspiration.
    FAO Irrigation and Drainage Paper 56.

Example:
    >>> from speikit import load_climate_table, add_evapotranspiration, add_water_balance, spei
    >>>
    >>> ds = load_climate_table('wichita.csv')
    >>> add_evapotranspiration(ds, latitude=37.6475, elevation=402.6)
    >>> add_water_balance(ds)
    >>>
    >>> spei_12 = spei(ds['balance_thornthwaite'], scale=12)
    >>> print(spei_12.summary())
"""

__version__ = "2026.1"

# Core index functions
from .indices import (
    SPEIResult,
    spei,
    spi,
    spei_multi_scale,
    classify_drought,
)

# Parameter I/O
from .indices import (
    save_fitting_params,
    load_fitting_params,
)

# Evapotranspiration
from .evapotranspiration import (
    thornthwaite,
    hargreaves,
    penman,
    calculate_pet,
)

# Climate tables
from .dataset import (
    load_climate_table,
    climate_table_from_frame,
    add_evapotranspiration,
    add_water_balance,
    balance_series,
)

# Configuration
from .config import (
    PETMethod,
    Kernel,
    Distribution,
    FitMethod,
    FITTED_INDEX_VALID_MIN,
    FITTED_INDEX_VALID_MAX,
)

# Station pipeline
from .analysis import (
    StationConfig,
    AnalysisResult,
    run_analysis,
)

# Visualization functions
from .visualization import (
    plot_climate_variables,
    plot_pet_comparison,
    plot_balance_comparison,
    plot_spei,
    plot_spei_pair,
    plot_kernels,
    plot_log_logistic_densities,
)

# Low-level compute functions (for advanced users)
from .compute import (
    kernel_weights,
    sum_to_scale,
    compute_spei_1d,
    compute_spi_1d,
)

__all__ = [
    # Version
    "__version__",
    # Core functions
    "SPEIResult",
    "spei",
    "spi",
    "spei_multi_scale",
    "classify_drought",
    # Parameter I/O
    "save_fitting_params",
    "load_fitting_params",
    # Evapotranspiration
    "thornthwaite",
    "hargreaves",
    "penman",
    "calculate_pet",
    # Climate tables
    "load_climate_table",
    "climate_table_from_frame",
    "add_evapotranspiration",
    "add_water_balance",
    "balance_series",
    # Configuration
    "PETMethod",
    "Kernel",
    "Distribution",
    "FitMethod",
    "FITTED_INDEX_VALID_MIN",
    "FITTED_INDEX_VALID_MAX",
    # Station pipeline
    "StationConfig",
    "AnalysisResult",
    "run_analysis",
    # Visualization
    "plot_climate_variables",
    "plot_pet_comparison",
    "plot_balance_comparison",
    "plot_spei",
    "plot_spei_pair",
    "plot_kernels",
    "plot_log_logistic_densities",
    # Low-level compute
    "kernel_weights",
    "sum_to_scale",
    "compute_spei_1d",
    "compute_spi_1d",
]
