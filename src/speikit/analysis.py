"""
End-to-end drought analysis of one station record.

Runs the full sequence on a climate table:

    load -> evapotranspiration (Thornthwaite, Hargreaves, Penman-Monteith)
         -> climatic water balance -> SPEI at each scale -> plots

Example:
    >>> from speikit import load_climate_table, StationConfig, run_analysis
    >>> ds = load_climate_table('wichita.csv')
    >>> analysis = run_analysis(ds, StationConfig(name='Wichita'))
    >>> print(analysis.summary_table())
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import matplotlib.pyplot as plt
import pandas as pd
import xarray as xr

from .config import (
    DEFAULT_ELEVATION,
    DEFAULT_LATITUDE,
    DEFAULT_SCALES,
    PETMethod,
    balance_variable_name,
    get_logger,
)
from .dataset import add_evapotranspiration, add_water_balance, balance_series
from .indices import SPEIResult, spei
from .visualization import (
    plot_balance_comparison,
    plot_climate_variables,
    plot_kernels,
    plot_log_logistic_densities,
    plot_pet_comparison,
    plot_spei,
    plot_spei_pair,
    save_figure,
)

# Module logger
_logger = get_logger(__name__)

YearMonth = Tuple[int, int]
ReferencePeriod = Tuple[Optional[YearMonth], Optional[YearMonth]]


def _default_reference_periods() -> Dict[str, ReferencePeriod]:
    # Penman-Monteith inputs are incomplete outside this window
    return {PETMethod.penman.name: ((1984, 1), (2008, 12))}


@dataclass
class StationConfig:
    """Settings of one station analysis."""
    name: str = 'Wichita'
    latitude: float = DEFAULT_LATITUDE
    elevation: float = DEFAULT_ELEVATION
    scales: Tuple[int, ...] = DEFAULT_SCALES
    methods: Tuple[PETMethod, ...] = tuple(PETMethod)
    reference_periods: Dict[str, ReferencePeriod] = field(default_factory=_default_reference_periods)
    kernel: str = 'rectangular'
    shift: int = 0
    distribution: str = 'log-logistic'
    fit_method: str = 'ub-pwm'
    na_rm: bool = False
    fill_missing: bool = True
    output_dir: str = 'output/plots'

    def reference_period(self, method: PETMethod) -> ReferencePeriod:
        """Reference period of a method; (None, None) means the full record."""
        return self.reference_periods.get(method.name, (None, None))

    def allows_missing(self, method: PETMethod) -> bool:
        # Penman-Monteith inputs (wind, sunshine) have gaps in station records
        return True if method == PETMethod.penman else self.na_rm

    @property
    def slug(self) -> str:
        return re.sub(r'[^a-z0-9]+', '_', self.name.lower()).strip('_') or 'station'


@dataclass
class AnalysisResult:
    """Outputs of run_analysis()."""
    dataset: xr.Dataset
    results: Dict[Tuple[str, int], SPEIResult]
    figure_paths: Dict[str, str]

    def get(self, method: str, scale: int) -> SPEIResult:
        return self.results[(PETMethod.from_string(method).name, scale)]

    def summary_table(self) -> pd.DataFrame:
        """One row of descriptive statistics per (method, scale)."""
        rows = []
        for (method, scale), result in self.results.items():
            stats = result.summary()
            rows.append({
                'method': PETMethod[method].display_name,
                'scale': scale,
                'mean': round(stats['mean'], 3),
                'std': round(stats['std'], 3),
                'min': round(stats['min'], 3),
                'max': round(stats['max'], 3),
                'n_valid': int(stats['count']),
                'n_dry': int(stats['n_dry']),
                'n_wet': int(stats['n_wet']),
                'reference': f"{result.fitted.attrs['ref_start']}..{result.fitted.attrs['ref_end']}",
            })
        return pd.DataFrame(rows)


def run_analysis(
    ds: xr.Dataset,
    config: Optional[StationConfig] = None,
    make_plots: bool = True
) -> AnalysisResult:
    """
    Run evapotranspiration, water balance, SPEI and plots for one station.

    :param ds: climate table (augmented in place with pet_* and balance_*)
    :param config: station settings (default: Wichita)
    :param make_plots: render and save figures to config.output_dir
    :return: AnalysisResult
    """
    config = config or StationConfig()
    _logger.info(f"Running analysis for {config.name}")

    add_evapotranspiration(
        ds,
        latitude=config.latitude,
        elevation=config.elevation,
        methods=config.methods,
        na_rm={m.name: config.allows_missing(m) for m in config.methods},
    )
    add_water_balance(ds)

    results = {}
    for method in config.methods:
        if balance_variable_name(method) not in ds:
            continue
        ref_start, ref_end = config.reference_period(method)
        balance = balance_series(ds, method)
        for scale in config.scales:
            results[(method.name, scale)] = spei(
                balance,
                scale=scale,
                ref_start=ref_start,
                ref_end=ref_end,
                kernel=config.kernel,
                shift=config.shift,
                distribution=config.distribution,
                fit_method=config.fit_method,
                na_rm=config.allows_missing(method),
            )

    figure_paths = _render_plots(ds, results, config) if make_plots else {}

    _logger.info(f"Analysis complete: {len(results)} index series, {len(figure_paths)} figures")
    return AnalysisResult(dataset=ds, results=results, figure_paths=figure_paths)


def _render_plots(
    ds: xr.Dataset,
    results: Dict[Tuple[str, int], SPEIResult],
    config: StationConfig
) -> Dict[str, str]:
    out = config.output_dir
    prefix = config.slug
    paths = {}

    def _keep(key: str, fig: plt.Figure) -> None:
        paths[key] = save_figure(fig, f"{out}/{prefix}_{key}.png")
        plt.close(fig)

    _keep('climate', plot_climate_variables(ds, title=f'{config.name} climate variables'))
    _keep('pet', plot_pet_comparison(ds).figure)
    _keep('balance', plot_balance_comparison(ds).figure)

    for method in config.methods:
        method_results = [results[(method.name, s)] for s in config.scales if (method.name, s) in results]
        if not method_results:
            continue
        title_prefix = f'{config.name}, {method.display_name}'
        if len(method_results) == 2:
            fig = plot_spei_pair(*method_results, title_prefix=title_prefix,
                                 fill_missing=config.fill_missing)
            _keep(f'spei_{method.name}', fig)
        else:
            for result in method_results:
                ax = plot_spei(result, title=f'{title_prefix} SPEI-{result.scale}',
                               fill_missing=config.fill_missing)
                _keep(f'spei_{method.name}_{result.scale}', ax.figure)

    _keep('kernels', plot_kernels(scale=max(config.scales)))
    _keep('log_logistic', plot_log_logistic_densities().figure)

    return paths
