"""
Tests for loading climate tables and deriving evapotranspiration and balance.
"""

import logging

import numpy as np
import pandas as pd
import pytest  # type: ignore

from speikit.dataset import (
    add_evapotranspiration,
    add_water_balance,
    balance_series,
    climate_table_from_frame,
    input_variables,
    load_climate_table,
    to_frame,
)

from conftest import MONTHS_WITHOUT_WIND, STATION_ELEVATION, STATION_LATITUDE


class TestClimateTableFromFrame:

    def test_canonical_names(self, station_table):
        assert input_variables(station_table) == [
            'precip', 'tmax', 'tmin', 'tmean', 'wind', 'tsun', 'cloud'
        ]
        assert station_table['precip'].attrs['units'] == 'mm'
        assert pd.Timestamp(station_table['time'].values[0]) == pd.Timestamp('1980-01-01')
        assert pd.Timestamp(station_table['time'].values[-1]) == pd.Timestamp('2011-10-01')

    def test_missing_months_inserted(self, station_frame):
        ds = climate_table_from_frame(station_frame.drop(index=[10, 11]))
        assert ds.sizes['time'] == len(station_frame)
        assert np.isnan(ds['precip'].values[10])
        assert np.isnan(ds['tmax'].values[11])

    def test_anchored_by_end(self, station_frame):
        values = station_frame.drop(columns=['YEAR', 'MONTH'])
        ds = climate_table_from_frame(values, end=(2011, 10))
        assert pd.Timestamp(ds['time'].values[0]) == pd.Timestamp('1980-01-01')

    def test_anchored_by_start(self, station_frame):
        values = station_frame.drop(columns=['YEAR', 'MONTH'])
        ds = climate_table_from_frame(values, start='1980-01')
        assert pd.Timestamp(ds['time'].values[-1]) == pd.Timestamp('2011-10-01')

    def test_wind_in_kmh(self, station_frame):
        ds = climate_table_from_frame(station_frame, wind_units='km/h')
        expected = station_frame['AWND'].values[-1] / 3.6
        assert ds['wind'].values[-1] == pytest.approx(expected)

    def test_unrecognized_columns_dropped(self, station_frame):
        station_frame['STATION'] = 'USW00003928'
        ds = climate_table_from_frame(station_frame)
        assert 'STATION' not in ds

    def test_no_time_information(self, station_frame):
        with pytest.raises(ValueError, match="YEAR/MONTH"):
            climate_table_from_frame(station_frame.drop(columns=['YEAR', 'MONTH']))

    def test_no_precipitation(self, station_frame):
        with pytest.raises(ValueError, match="precipitation"):
            climate_table_from_frame(station_frame.drop(columns=['PRCP']))

    def test_duplicate_months(self, station_frame):
        doubled = pd.concat([station_frame, station_frame.iloc[[5]]])
        with pytest.raises(ValueError, match="duplicate"):
            climate_table_from_frame(doubled)

    def test_invalid_wind_units(self, station_frame):
        with pytest.raises(ValueError, match="wind_units"):
            climate_table_from_frame(station_frame, wind_units='knots')


class TestLoadClimateTable:

    def test_csv(self, station_csv):
        ds = load_climate_table(station_csv)
        assert ds.sizes['time'] == 382
        assert 'tsun' in ds

    def test_netcdf(self, station_table, tmp_path):
        path = tmp_path / 'station.nc'
        station_table.to_netcdf(path)
        ds = load_climate_table(path)
        np.testing.assert_allclose(ds['precip'].values, station_table['precip'].values)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_climate_table(tmp_path / 'nothing.csv')

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / 'station.xlsx'
        path.write_text('')
        with pytest.raises(ValueError, match="Unsupported"):
            load_climate_table(path)


class TestDerivedVariables:

    def test_all_methods(self, station_table):
        add_evapotranspiration(
            station_table, STATION_LATITUDE, STATION_ELEVATION,
            na_rm={'penman': True},
        )
        for method in ('thornthwaite', 'hargreaves', 'penman'):
            assert f'pet_{method}' in station_table

        pet = station_table['pet_penman'].values
        assert np.all(np.isnan(pet[:MONTHS_WITHOUT_WIND]))
        assert np.all(np.isfinite(pet[MONTHS_WITHOUT_WIND:]))

    def test_missing_wind_raises_without_na_rm(self, station_table):
        with pytest.raises(ValueError, match="missing"):
            add_evapotranspiration(station_table, STATION_LATITUDE, STATION_ELEVATION,
                                   methods=['penman'])

    def test_method_without_inputs_is_skipped(self, station_table, caplog):
        table = station_table.drop_vars('wind')
        with caplog.at_level(logging.WARNING):
            add_evapotranspiration(table, STATION_LATITUDE, STATION_ELEVATION)
        assert 'pet_penman' not in table
        assert 'pet_thornthwaite' in table
        assert 'Skipping Penman-Monteith' in caplog.text

    def test_penman_options(self, station_table):
        add_evapotranspiration(station_table, STATION_LATITUDE, STATION_ELEVATION,
                               methods=['penman'], na_rm=True)
        short = station_table['pet_penman'].copy()
        add_evapotranspiration(station_table, STATION_LATITUDE, STATION_ELEVATION,
                               methods=['penman'], na_rm=True, crop='tall')
        assert float(station_table['pet_penman'].mean()) > float(short.mean())

    def test_water_balance(self, station_table):
        add_evapotranspiration(station_table, STATION_LATITUDE, methods=['thornthwaite'])
        add_water_balance(station_table)
        expected = station_table['precip'] - station_table['pet_thornthwaite']
        np.testing.assert_allclose(station_table['balance_thornthwaite'].values, expected.values)
        assert 'balance_penman' not in station_table
        assert balance_series(station_table, 'thornthwaite').name == 'balance_thornthwaite'

    def test_balance_not_derived(self, station_table):
        with pytest.raises(ValueError, match="add_water_balance"):
            balance_series(station_table, 'hargreaves')

    def test_to_frame(self, station_table):
        add_evapotranspiration(station_table, STATION_LATITUDE, methods=['hargreaves'])
        frame = to_frame(station_table)
        assert list(frame.columns[:2]) == ['YEAR', 'MONTH']
        assert 'pet_hargreaves' in frame
        assert len(frame) == station_table.sizes['time']
