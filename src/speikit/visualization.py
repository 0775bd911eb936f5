"""
Visualization functions for climate tables, evapotranspiration estimates
and standardized indices.

Provides comparison plots of the evapotranspiration methods and their
water balances, SPEI/SPI bar charts with the reference period marked, and
illustrations of the accumulation kernels and the log-logistic density.
"""

import os
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import xarray as xr
import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
from matplotlib.dates import DateFormatter

from .compute import kernel_weights
from .config import (
    Kernel,
    PETMethod,
    balance_variable_name,
    get_logger,
    pet_variable_name,
    VARIABLE_ATTRS,
)
from .dataset import input_variables
from .distributions import log_logistic_density
from .indices import SPEIResult

# Module logger
_logger = get_logger(__name__)

# Line colours of the three methods (red, green, blue)
METHOD_COLORS = {
    PETMethod.penman: '#df536b',
    PETMethod.hargreaves: '#61d04f',
    PETMethod.thornthwaite: '#2297e6',
}

# Bar colours of the index
WET_COLOR = '#2166ac'
DRY_COLOR = '#d6604d'

# Legend order of the comparison charts
_COMPARISON_ORDER = (PETMethod.penman, PETMethod.hargreaves, PETMethod.thornthwaite)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def save_figure(fig: plt.Figure, output_path: str, dpi: int = 150) -> str:
    """
    Save a figure, creating the output directory if needed.

    :param fig: matplotlib Figure
    :param output_path: destination file path
    :param dpi: resolution
    :return: the path written
    """
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    fig.savefig(output_path, dpi=dpi, bbox_inches='tight')
    _logger.info(f"Saved figure: {output_path}")
    return output_path


def _time_index(da: xr.DataArray) -> pd.DatetimeIndex:
    return pd.DatetimeIndex(da['time'].values)


# =============================================================================
# CLIMATE TABLE PLOTS
# =============================================================================

def plot_climate_variables(
    ds: xr.Dataset,
    variables: Optional[Sequence[str]] = None,
    title: str = 'Climate variables',
    figsize: Optional[Tuple[float, float]] = None,
    output_path: Optional[str] = None
) -> plt.Figure:
    """
    Plot each climate variable in its own stacked panel.

    :param ds: climate table
    :param variables: variables to plot (default: all loaded inputs)
    :param title: figure title
    :param figsize: figure size (width, height) in inches
    :param output_path: save the figure here if given
    :return: matplotlib Figure
    """
    variables = list(variables) if variables is not None else input_variables(ds)
    if not variables:
        raise ValueError("No climate variables to plot")

    if figsize is None:
        figsize = (10, 1.6 * len(variables) + 1)

    fig, axes = plt.subplots(len(variables), 1, figsize=figsize, sharex=True, squeeze=False)
    time = _time_index(ds)

    for ax, name in zip(axes[:, 0], variables):
        ax.plot(time, ds[name].values, color='black', linewidth=0.8)
        units = VARIABLE_ATTRS.get(name, {}).get('units', ds[name].attrs.get('units', ''))
        ax.set_ylabel(f"{name}\n({units})" if units else name, fontsize=9)
        ax.grid(True, alpha=0.3)

    axes[-1, 0].set_xlabel('Time')
    axes[-1, 0].xaxis.set_major_formatter(DateFormatter('%Y'))
    fig.suptitle(title, fontsize=13, fontweight='bold')
    fig.tight_layout()

    if output_path:
        save_figure(fig, output_path)
    return fig


def _plot_method_comparison(
    ds: xr.Dataset,
    name_func,
    ylabel: str,
    ylim: Optional[Tuple[float, float]],
    title: Optional[str],
    figsize: Tuple[float, float],
    ax: Optional[plt.Axes],
    output_path: Optional[str]
) -> plt.Axes:
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    time = _time_index(ds)
    plotted = 0
    for method in _COMPARISON_ORDER:
        name = name_func(method)
        if name not in ds:
            continue
        ax.plot(time, ds[name].values, color=METHOD_COLORS[method],
                linewidth=1.0, label=method.display_name)
        plotted += 1

    if plotted == 0:
        raise ValueError("No evapotranspiration methods found in the climate table")

    ax.set_ylabel(ylabel, fontsize=11)
    ax.set_xlabel('Time', fontsize=11)
    if ylim is not None:
        ax.set_ylim(*ylim)
    ax.grid(True, alpha=0.3)
    ax.xaxis.set_major_formatter(DateFormatter('%Y'))
    ax.legend(loc='lower center', bbox_to_anchor=(0.5, 1.0), ncol=plotted,
              frameon=False, fontsize=10)
    if title:
        ax.set_title(title, fontsize=13, fontweight='bold', pad=28)

    fig.tight_layout()
    if output_path:
        save_figure(fig, output_path)
    return ax


def plot_pet_comparison(
    ds: xr.Dataset,
    ylim: Optional[Tuple[float, float]] = (0, 260),
    title: Optional[str] = None,
    figsize: Tuple[float, float] = (10, 4),
    ax: Optional[plt.Axes] = None,
    output_path: Optional[str] = None
) -> plt.Axes:
    """
    Compare the evapotranspiration estimates of all methods in the table.

    :param ds: climate table with pet_* variables
    :param ylim: y-axis limits in mm
    :param title: plot title (optional)
    :param figsize: figure size (width, height) in inches
    :param ax: existing axes to plot on (optional)
    :param output_path: save the figure here if given
    :return: matplotlib Axes object
    """
    return _plot_method_comparison(
        ds, pet_variable_name, 'Reference evapotranspiration (mm)',
        ylim, title, figsize, ax, output_path
    )


def plot_balance_comparison(
    ds: xr.Dataset,
    ylim: Optional[Tuple[float, float]] = (-250, 250),
    title: Optional[str] = None,
    figsize: Tuple[float, float] = (10, 4),
    ax: Optional[plt.Axes] = None,
    output_path: Optional[str] = None
) -> plt.Axes:
    """
    Compare the climatic water balance (P - PET) of all methods in the table.

    :return: matplotlib Axes object
    """
    return _plot_method_comparison(
        ds, balance_variable_name, 'Climatic Water Balance (mm)',
        ylim, title, figsize, ax, output_path
    )


# =============================================================================
# INDEX PLOTS
# =============================================================================

def plot_spei(
    result: Union[SPEIResult, xr.DataArray],
    title: Optional[str] = None,
    fill_missing: bool = False,
    show_reference: bool = True,
    figsize: Tuple[float, float] = (10, 3.5),
    ax: Optional[plt.Axes] = None,
    output_path: Optional[str] = None
) -> plt.Axes:
    """
    Bar chart of an SPEI/SPI series, wet months blue and dry months red.

    The reference period used for fitting is hatched.

    :param result: SPEIResult (or a fitted DataArray along time)
    :param title: plot title (optional)
    :param fill_missing: draw missing values as 0 instead of leaving gaps
    :param show_reference: hatch the reference period
    :param figsize: figure size (width, height) in inches
    :param ax: existing axes to plot on (optional)
    :param output_path: save the figure here if given
    :return: matplotlib Axes object

    Example:
        >>> ax = plot_spei(spei_12, title='Wichita, Thornthwaite SPEI-12 months')
        >>> plt.show()
    """
    if isinstance(result, SPEIResult):
        fitted = result.fitted
        ref_start, ref_end = result.ref_start, result.ref_end
        label = result.index.upper()
    else:
        fitted = result
        ref_start = ref_end = None
        label = 'Index'

    time = _time_index(fitted)
    values = fitted.values.astype(float)
    if fill_missing:
        values = np.where(np.isnan(values), 0.0, values)

    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    colors = np.where(values >= 0, WET_COLOR, DRY_COLOR)
    valid = ~np.isnan(values)
    ax.bar(time[valid], values[valid], width=25.0, color=colors[valid], edgecolor='none')
    ax.axhline(y=0, color='black', linewidth=0.6)

    handles = [
        mpatches.Patch(color=WET_COLOR, label='Wet (> 0)'),
        mpatches.Patch(color=DRY_COLOR, label='Dry (< 0)'),
    ]

    if show_reference and ref_start is not None and ref_end is not None:
        span_start = pd.Timestamp(year=ref_start[0], month=ref_start[1], day=1)
        span_end = pd.Timestamp(year=ref_end[0], month=ref_end[1], day=1) + pd.offsets.MonthEnd(1)
        ax.axvspan(span_start, span_end, facecolor='none', edgecolor='grey',
                   hatch='//', linewidth=0, alpha=0.35)
        handles.append(mpatches.Patch(facecolor='none', edgecolor='grey', hatch='//',
                                      label='Reference period'))

    finite = values[valid]
    limit = max(3.0, float(np.ceil(np.abs(finite).max()))) if finite.size else 3.0
    ax.set_ylim(-limit, limit)
    ax.set_ylabel(label, fontsize=11)
    ax.grid(True, alpha=0.3, axis='y')
    ax.xaxis.set_major_formatter(DateFormatter('%Y'))
    ax.legend(handles=handles, loc='upper left', fontsize=8, framealpha=0.9)

    if title:
        ax.set_title(title, fontsize=12, fontweight='bold')

    fig.tight_layout()
    if output_path:
        save_figure(fig, output_path)
    return ax


def plot_spei_pair(
    short: SPEIResult,
    long: SPEIResult,
    title_prefix: str = '',
    fill_missing: bool = False,
    figsize: Tuple[float, float] = (10, 7),
    output_path: Optional[str] = None
) -> plt.Figure:
    """
    Two stacked panels, typically SPEI-1 above SPEI-12.

    :param short: result shown in the upper panel
    :param long: result shown in the lower panel
    :param title_prefix: e.g. 'Wichita, Thornthwaite'
    :param fill_missing: draw missing values as 0
    :return: matplotlib Figure
    """
    fig, axes = plt.subplots(2, 1, figsize=figsize, sharex=True)
    for ax, result in zip(axes, (short, long)):
        unit = 'month' if result.scale == 1 else 'months'
        title = f"{title_prefix} {result.index.upper()}-{result.scale} {unit}".strip()
        plot_spei(result, title=title, fill_missing=fill_missing, ax=ax)

    fig.tight_layout()
    if output_path:
        save_figure(fig, output_path)
    return fig


# =============================================================================
# METHOD ILLUSTRATIONS
# =============================================================================

def plot_kernels(
    scale: int = 12,
    shift: int = 0,
    figsize: Tuple[float, float] = (10, 6),
    output_path: Optional[str] = None
) -> plt.Figure:
    """
    Weights of the four accumulation kernels for a given scale.

    Month 1 is the current month, month 2 the preceding one, etc.

    :param scale: window length in months
    :param shift: kernel peak offset in months
    :return: matplotlib Figure
    """
    kernels = list(Kernel)
    fig, axes = plt.subplots(2, 2, figsize=figsize, sharex=True, sharey=True)
    lags = np.arange(1, scale + 1)

    for ax, kernel in zip(axes.flat, kernels):
        weights = kernel_weights(scale, kernel, shift) / scale
        ax.bar(lags, weights, color='#555555', width=0.8)
        ax.set_title(kernel.value.capitalize(), fontsize=11)
        ax.grid(True, alpha=0.3, axis='y')

    for ax in axes[-1, :]:
        ax.set_xlabel('Month')
    for ax in axes[:, 0]:
        ax.set_ylabel('Weight')

    fig.suptitle(f'Kernels for a {scale}-month window', fontsize=13, fontweight='bold')
    fig.tight_layout()
    if output_path:
        save_figure(fig, output_path)
    return fig


def plot_log_logistic_densities(
    alpha: float = 1.0,
    betas: Sequence[float] = (0.5, 1.0, 2.0, 4.0, 8.0),
    x_max: float = 3.0,
    figsize: Tuple[float, float] = (8, 4.5),
    ax: Optional[plt.Axes] = None,
    output_path: Optional[str] = None
) -> plt.Axes:
    """
    Log-logistic probability densities for a fixed scale and several shapes.

    :param alpha: scale parameter
    :param betas: shape parameters, one curve each
    :param x_max: upper limit of the x-axis
    :return: matplotlib Axes object
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    x = np.linspace(1e-3, x_max, 500)
    cmap = plt.get_cmap('viridis')
    for i, beta in enumerate(betas):
        ax.plot(x, log_logistic_density(x, alpha, beta),
                color=cmap(i / max(len(betas) - 1, 1)), label=f'β = {beta:g}')

    ax.set_xlabel('x')
    ax.set_ylabel('Probability density')
    ax.set_ylim(bottom=0)
    ax.set_title(f'Log-logistic densities (α = {alpha:g})', fontsize=12, fontweight='bold')
    ax.legend(fontsize=9)
    ax.grid(True, alpha=0.3)

    fig.tight_layout()
    if output_path:
        save_figure(fig, output_path)
    return ax
