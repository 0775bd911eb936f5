"""
Tests for calendar helpers and validation utilities.
"""

import numpy as np
import pandas as pd
import pytest  # type: ignore
import xarray as xr

from speikit.utils import (
    check_missing,
    days_in_months,
    get_series_start,
    mid_month_day_of_year,
    month_calendar,
    monthly_mean_daylight_hours,
    parse_year_month,
    series_position,
    summarize_data_completeness,
)


class TestCalendar:

    def test_month_calendar_wraps_years(self):
        years, months = month_calendar(5, 2000, 11)
        np.testing.assert_array_equal(years, [2000, 2000, 2001, 2001, 2001])
        np.testing.assert_array_equal(months, [11, 12, 1, 2, 3])

    def test_invalid_start_month(self):
        with pytest.raises(ValueError):
            month_calendar(12, 2000, 13)

    def test_days_in_months(self):
        days = days_in_months(np.array([2000, 2001, 2001]), np.array([2, 2, 4]))
        np.testing.assert_array_equal(days, [29, 28, 30])

    def test_mid_month_day_of_year(self):
        doy = mid_month_day_of_year(np.array([2001, 2004]), np.array([4, 4]))
        np.testing.assert_array_equal(doy, [105, 106])

    def test_series_position(self):
        assert series_position(1984, 1, 1980, 1) == 48
        assert series_position(1980, 1, 1980, 7) == -6

    @pytest.mark.parametrize('value, expected', [
        ('1984-01', (1984, 1)),
        ('2008/12', (2008, 12)),
        ((1999, 6), (1999, 6)),
        (None, None),
    ])
    def test_parse_year_month(self, value, expected):
        assert parse_year_month(value) == expected

    @pytest.mark.parametrize('value', ['1984', '1984-13', (2000, 0)])
    def test_parse_year_month_invalid(self, value):
        with pytest.raises(ValueError):
            parse_year_month(value)

    def test_series_start(self):
        time = pd.date_range('1984-03-01', periods=4, freq='MS')
        da = xr.DataArray(np.zeros(4), dims=('time',), coords={'time': time})
        assert get_series_start(da) == (1984, 3)

    def test_series_start_needs_dates(self):
        da = xr.DataArray(np.zeros(4), dims=('time',), coords={'time': np.arange(4)})
        with pytest.raises(ValueError, match="datetime"):
            get_series_start(da)

    def test_equator_daylight(self):
        np.testing.assert_allclose(monthly_mean_daylight_hours(0.0), 12.0, atol=0.01)


class TestValidation:

    def test_check_missing(self):
        values = np.array([1.0, np.nan])
        with pytest.raises(ValueError, match="na_rm"):
            check_missing(values, 'tmean', na_rm=False)
        check_missing(values, 'tmean', na_rm=True)

    def test_completeness(self, station_table):
        summary = summarize_data_completeness(station_table)
        assert summary.loc['wind', 'n_missing'] == 48
        assert summary.loc['precip', 'n_missing'] == 0
