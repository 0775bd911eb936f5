"""
Tests for the labelled SPEI/SPI interface and fitting parameter I/O.
"""

import numpy as np
import pandas as pd
import pytest  # type: ignore
import xarray as xr

from speikit.config import Distribution, FitMethod, Kernel
from speikit.indices import (
    SPEIResult,
    classify_drought,
    load_fitting_params,
    save_fitting_params,
    spei,
    spei_multi_scale,
    spi,
)


@pytest.fixture
def balance_da(balance_series):
    time = pd.date_range('1970-01-01', periods=len(balance_series), freq='MS')
    return xr.DataArray(balance_series, dims=('time',), coords={'time': time}, name='balance')


class TestSpei:

    def test_result_metadata(self, balance_da):
        result = spei(balance_da, scale=12)
        assert isinstance(result, SPEIResult)
        assert result.name == 'spei_12_month'
        assert result.kernel == Kernel.rectangular
        assert result.distribution == Distribution.log_logistic
        assert result.fit_method == FitMethod.ub_pwm
        assert result.fitted.attrs['ref_start'] == '1970-01'
        assert result.fitted.attrs['ref_end'] == '2009-12'
        assert result.ref_start == (1970, 1)
        np.testing.assert_array_equal(result.fitted['time'].values, balance_da['time'].values)
        assert result.fitted.isnull()[:11].all()

    def test_reference_period_is_clamped(self, balance_da):
        result = spei(balance_da, scale=1, ref_start='1900-01', ref_end=(1999, 12))
        assert result.ref_start == (1970, 1)
        assert result.ref_end == (1999, 12)

    def test_numpy_input_needs_start(self, balance_series):
        with pytest.raises(ValueError, match="data_start_year"):
            spei(balance_series, scale=3)
        result = spei(balance_series, scale=3, data_start_year=1970)
        assert pd.Timestamp(result.fitted['time'].values[0]) == pd.Timestamp('1970-01-01')

    def test_series_input(self, balance_da):
        from_series = spei(balance_da.to_series(), scale=3)
        from_array = spei(balance_da, scale=3)
        np.testing.assert_allclose(from_series.fitted.values, from_array.fitted.values)

    def test_series_without_dates(self, balance_series):
        with pytest.raises(ValueError, match="datetime"):
            spei(pd.Series(balance_series), scale=1)

    def test_rejects_gridded_input(self, balance_da):
        gridded = balance_da.expand_dims(lat=[0.0])
        with pytest.raises(ValueError, match="1-D"):
            spei(gridded, scale=1)

    def test_options_are_recorded(self, balance_da):
        result = spei(balance_da, scale=6, kernel='gaussian', distribution='pearson3',
                      fit_method='pp-pwm')
        assert result.fitted.attrs['kernel'] == 'gaussian'
        assert result.coefficients.attrs['distribution'] == 'pearson3'
        assert list(result.coefficients['parameter'].values) == ['mu', 'sigma', 'gamma']
        assert 'Pearson III' in str(result.fitted.attrs['long_name'])

    def test_summary_and_frames(self, balance_da):
        result = spei(balance_da, scale=1)
        summary = result.summary()
        assert isinstance(summary, pd.Series)
        assert summary.name == 'spei_1_month'
        assert summary['count'] == len(balance_da)
        assert summary['n_dry'] > 0 and summary['n_wet'] > 0

        frame = result.coefficients_frame()
        assert frame.shape == (12, 3)
        assert list(frame.columns) == ['xi', 'alpha', 'kappa']

        ds = result.to_dataset()
        assert 'spei_1_month' in ds and 'spei_1_month_coefficients' in ds
        assert 'SPEI-1' in str(result)

    def test_multi_scale(self, balance_da):
        results = spei_multi_scale(balance_da, scales=(1, 3, 12))
        assert sorted(results) == [1, 3, 12]
        assert results[12].scale == 12


class TestFittingParams:

    def test_save_and_reuse(self, balance_da, tmp_path):
        result = spei(balance_da, scale=12, ref_start=(1975, 1), ref_end=(2004, 12))
        path = save_fitting_params(result, str(tmp_path / 'params' / 'spei_12.nc'))

        with xr.open_dataset(path) as ds:
            assert 'xi_12_month' in ds
            assert ds.attrs['distribution'] == 'log-logistic'

        loaded = load_fitting_params(path)
        np.testing.assert_allclose(loaded.values, result.coefficients.values)
        assert loaded.attrs['ref_start'] == '1975-01'

        reused = spei(balance_da, scale=12, params=loaded)
        np.testing.assert_allclose(reused.fitted.values, result.fitted.values)
        assert reused.ref_start == (1975, 1)

    def test_reuse_from_result(self, balance_da):
        result = spei(balance_da, scale=1)
        reused = spei(balance_da, scale=1, params=result)
        np.testing.assert_allclose(reused.fitted.values, result.fitted.values)

    def test_distribution_mismatch(self, balance_da):
        result = spei(balance_da, scale=1, distribution='pearson3')
        with pytest.raises(ValueError, match="fitted with"):
            spei(balance_da, scale=1, params=result)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_fitting_params(str(tmp_path / 'missing.nc'))


class TestSpi:

    def test_spi_on_precipitation(self, station_table):
        result = spi(station_table['precip'], scale=3)
        assert result.index == 'spi'
        assert result.name == 'spi_3_month'
        assert result.distribution == Distribution.gamma
        assert list(result.coefficients['parameter'].values) == ['alpha', 'beta', 'prob_zero']


class TestClassifyDrought:

    def test_categories(self):
        values = np.array([-2.5, -1.7, -1.2, 0.0, 1.2, 1.7, 2.5, np.nan])
        categories = classify_drought(values)
        np.testing.assert_array_equal(categories[:7], [-2, -1, 0, 1, 2, 3, 4])
        assert np.isnan(categories[7])

    def test_dataarray(self, balance_da):
        categories = classify_drought(spei(balance_da, scale=1).fitted)
        assert categories.name == 'drought_category'
        assert set(np.unique(categories.values[np.isfinite(categories.values)])) <= {-2, -1, 0, 1, 2, 3, 4}
