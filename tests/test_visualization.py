"""
Tests for plotting functions (Agg backend, no display).
"""

import matplotlib.pyplot as plt
import numpy as np
import pytest  # type: ignore

from speikit.dataset import add_evapotranspiration, add_water_balance
from speikit.indices import spei
from speikit.visualization import (
    METHOD_COLORS,
    plot_balance_comparison,
    plot_climate_variables,
    plot_kernels,
    plot_log_logistic_densities,
    plot_pet_comparison,
    plot_spei,
    plot_spei_pair,
)
from speikit.config import PETMethod

from conftest import STATION_ELEVATION, STATION_LATITUDE


@pytest.fixture
def derived_table(station_table):
    add_evapotranspiration(station_table, STATION_LATITUDE, STATION_ELEVATION,
                           na_rm={'penman': True})
    return add_water_balance(station_table)


@pytest.fixture(autouse=True)
def close_all():
    yield
    plt.close('all')


class TestComparisonPlots:

    def test_climate_variables(self, station_table, tmp_path):
        path = tmp_path / 'climate.png'
        fig = plot_climate_variables(station_table, output_path=str(path))
        assert len(fig.axes) == 7
        assert path.exists()

    def test_pet_comparison(self, derived_table):
        ax = plot_pet_comparison(derived_table)
        labels = [line.get_label() for line in ax.get_lines()]
        assert labels == ['Penman-Monteith', 'Hargreaves', 'Thornthwaite']
        colors = [line.get_color() for line in ax.get_lines()]
        assert colors[0] == METHOD_COLORS[PETMethod.penman]
        assert ax.get_ylim() == (0, 260)

    def test_balance_comparison(self, derived_table):
        ax = plot_balance_comparison(derived_table, ylim=(-200, 200))
        assert len(ax.get_lines()) == 3
        assert ax.get_ylim() == (-200, 200)

    def test_no_methods(self, station_table):
        with pytest.raises(ValueError, match="No evapotranspiration"):
            plot_pet_comparison(station_table)


class TestIndexPlots:

    @pytest.fixture
    def penman_results(self, derived_table):
        balance = derived_table['balance_penman']
        kwargs = dict(ref_start=(1984, 1), ref_end=(2008, 12), na_rm=True)
        return spei(balance, scale=1, **kwargs), spei(balance, scale=12, **kwargs)

    def test_bars_and_reference(self, penman_results):
        short, _ = penman_results
        ax = plot_spei(short, title='SPEI-1')
        n_valid = int(np.isfinite(short.fitted.values).sum())
        assert len(ax.patches) >= n_valid
        labels = [t.get_text() for t in ax.get_legend().get_texts()]
        assert 'Reference period' in labels
        assert ax.get_title() == 'SPEI-1'

    def test_fill_missing(self, penman_results):
        _, long = penman_results
        gaps = plot_spei(long, show_reference=False)
        filled = plot_spei(long, fill_missing=True, show_reference=False)
        assert len(filled.patches) == long.fitted.sizes['time']
        assert len(gaps.patches) < len(filled.patches)

    def test_pair(self, penman_results, tmp_path):
        path = tmp_path / 'pair.png'
        fig = plot_spei_pair(*penman_results, title_prefix='Wichita, Penman',
                             output_path=str(path))
        titles = [ax.get_title() for ax in fig.axes]
        assert titles == ['Wichita, Penman SPEI-1 month', 'Wichita, Penman SPEI-12 months']
        assert path.exists()


class TestIllustrations:

    def test_kernels(self):
        fig = plot_kernels(scale=12)
        assert len(fig.axes) == 4
        assert all(len(ax.patches) == 12 for ax in fig.axes)

    def test_log_logistic_densities(self):
        ax = plot_log_logistic_densities(betas=(1.0, 2.0, 4.0))
        assert len(ax.get_lines()) == 3
