"""
Tests for the evapotranspiration estimators.

Reference values come from the worked examples of FAO Irrigation and
Drainage Paper 56 (Allen et al., 1998).
"""

import numpy as np
import pytest  # type: ignore

from speikit.evapotranspiration import (
    atmospheric_pressure,
    calculate_pet,
    hargreaves,
    penman,
    required_inputs,
    soil_heat_flux,
    thornthwaite,
    wind_at_2m,
)
from speikit.utils import (
    daylight_hours,
    extraterrestrial_radiation,
    solar_declination,
    sunset_hour_angle,
)


class TestSolarGeometry:
    """FAO-56 examples 8 and 9: 3 September at 20°S."""

    def test_extraterrestrial_radiation(self):
        assert extraterrestrial_radiation(-20.0, 246) == pytest.approx(32.2, abs=0.1)

    def test_daylight_hours(self):
        ws = sunset_hour_angle(np.radians(-20.0), solar_declination(246))
        assert daylight_hours(ws) == pytest.approx(11.7, abs=0.1)

    def test_polar_night_has_no_radiation(self):
        assert extraterrestrial_radiation(80.0, 355) == pytest.approx(0.0, abs=1e-9)

    def test_invalid_day_of_year(self):
        with pytest.raises(ValueError):
            solar_declination(0)


class TestThornthwaite:

    def test_warm_months_exceed_cold_months(self):
        months = np.arange(1, 13)
        tmean = 13.0 + 12.0 * np.cos(2 * np.pi * (months - 7) / 12)
        pet = thornthwaite(np.tile(tmean, 3), 37.6, 2001)

        assert pet.shape == (36,)
        assert np.all(pet >= 0)
        assert pet[6] > pet[0]

    def test_freezing_months_are_zero(self):
        tmean = np.array([-5.0, -1.0, 4.0, 10.0, 16.0, 21.0, 24.0, 23.0, 18.0, 11.0, 4.0, -3.0])
        pet = thornthwaite(tmean, 45.0, 2001)
        assert pet[0] == 0.0
        assert pet[1] == 0.0
        assert pet[11] == 0.0
        assert pet[6] > 0.0

    def test_all_freezing_gives_zero(self):
        pet = thornthwaite(np.full(24, -10.0), 70.0, 2001)
        np.testing.assert_array_equal(pet, np.zeros(24))

    def test_hemispheres_are_mirrored(self):
        tmean = np.full(12, 20.0)
        north = thornthwaite(tmean, 40.0, 2001)
        south = thornthwaite(tmean, -40.0, 2001)
        # Longer days in June up north, in December down south
        assert north[5] > north[11]
        assert south[11] > south[5]

    def test_start_month_shifts_calendar(self):
        tmean = 13.0 + 12.0 * np.cos(2 * np.pi * (np.arange(1, 25) - 7) / 12)
        pet_jan = thornthwaite(tmean, 37.6, 2001, 1)
        pet_jul = thornthwaite(np.roll(tmean, -6), 37.6, 2001, 7)
        # July 2001 is the first value of the second series
        assert pet_jul[0] == pytest.approx(pet_jan[6], rel=0.05)

    def test_missing_values_raise(self):
        tmean = np.full(12, 15.0)
        tmean[3] = np.nan
        with pytest.raises(ValueError, match="missing"):
            thornthwaite(tmean, 37.6, 2001)

    def test_missing_values_propagate_with_na_rm(self):
        tmean = np.full(24, 15.0)
        tmean[3] = np.nan
        pet = thornthwaite(tmean, 37.6, 2001, na_rm=True)
        assert np.isnan(pet[3])
        assert np.all(np.isfinite(np.delete(pet, 3)))


class TestHargreaves:

    def test_matches_formula_with_given_radiation(self):
        et0 = hargreaves([10.0], [24.0], 0.0, 2001, 1, ra=[30.0])
        expected = 0.0023 * 0.408 * 30.0 * (17.0 + 17.8) * np.sqrt(14.0) * 31
        assert et0[0] == pytest.approx(expected)

    def test_modified_form_with_precipitation(self):
        et0 = hargreaves([10.0], [24.0], 0.0, 2001, 4, precip=[100.0], ra=[30.0])
        expected = 0.0013 * 0.408 * 30.0 * (17.0 + 17.0) * (14.0 - 1.23) ** 0.76 * 30
        assert et0[0] == pytest.approx(expected)

    def test_modified_form_negative_base_is_zero(self):
        et0 = hargreaves([10.0], [12.0], 0.0, 2001, 1, precip=[500.0], ra=[30.0])
        assert et0[0] == 0.0

    def test_radiation_from_latitude(self):
        tmin = np.full(12, 8.0)
        tmax = np.full(12, 22.0)
        et0 = hargreaves(tmin, tmax, 37.6, 2001)
        assert np.argmax(et0) in (5, 6)
        assert np.all(et0 > 0)

    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="same length"):
            hargreaves(np.ones(12), np.ones(11), 37.6, 2001)

    def test_missing_values_raise(self):
        tmax = np.full(12, 20.0)
        tmax[0] = np.nan
        with pytest.raises(ValueError):
            hargreaves(np.full(12, 5.0), tmax, 37.6, 2001)


class TestPenman:

    @pytest.fixture
    def bangkok(self):
        """FAO-56 example 17: Bangkok, March and April."""
        return dict(
            tmin=[24.8, 25.6],
            tmax=[33.6, 34.8],
            wind=[2.0, 2.0],
            latitude=13.733,
            elevation=2.0,
            data_start_year=2001,
            data_start_month=3,
            tsun=[8.5, 8.5],
            ea=[2.85, 2.85],
        )

    def test_fao_example_17(self, bangkok):
        et0 = penman(**bangkok)
        # 5.72 mm/day in April
        assert et0[1] / 30 == pytest.approx(5.72, abs=0.1)

    def test_cloud_cover_equals_sunshine_fraction(self, bangkok):
        with_sun = penman(**bangkok)
        max_sun = np.array([12.0, 12.31])
        cloud = 100.0 * (1.0 - np.array(bangkok.pop('tsun')) / max_sun)
        with_cloud = penman(**bangkok, cloud=cloud)
        assert with_cloud[1] == pytest.approx(with_sun[1], rel=0.01)

    def test_humidity_alternatives(self, bangkok):
        bangkok.pop('ea')
        from_dew = penman(**bangkok, tdew=[22.0, 22.0])
        from_tmin = penman(**bangkok)
        # Drier air than tmin saturation gives more evaporation
        assert from_dew[1] > from_tmin[1]

    def test_tall_crop_exceeds_short(self, bangkok):
        short = penman(**bangkok)
        tall = penman(**bangkok, crop='tall')
        assert tall[1] > short[1]

    def test_invalid_crop(self, bangkok):
        with pytest.raises(ValueError, match="crop"):
            penman(**bangkok, crop='forest')

    def test_temperature_only_radiation(self, bangkok):
        bangkok.pop('tsun')
        et0 = penman(**bangkok)
        assert np.all(np.isfinite(et0))
        assert np.all(et0 > 0)

    def test_missing_wind_raises(self, bangkok):
        bangkok['wind'] = [np.nan, 2.0]
        with pytest.raises(ValueError, match="wind"):
            penman(**bangkok)
        et0 = penman(**bangkok, na_rm=True)
        assert np.isnan(et0[0])
        assert np.isfinite(et0[1])


class TestPenmanHelpers:

    def test_atmospheric_pressure(self):
        # FAO-56 example 2: 1800 m
        assert atmospheric_pressure(1800.0) == pytest.approx(81.8, abs=0.1)

    def test_wind_at_2m(self):
        # FAO-56 example 14: 3.2 m/s at 10 m
        assert wind_at_2m(np.array([3.2]), 10.0)[0] == pytest.approx(2.4, abs=0.05)

    def test_soil_heat_flux(self):
        tmean = np.array([20.0, 22.0, 25.0])
        g = soil_heat_flux(tmean)
        assert g[0] == pytest.approx(0.14 * 2.0)
        assert g[1] == pytest.approx(0.07 * 5.0)
        assert g[2] == pytest.approx(0.14 * 3.0)

    def test_soil_heat_flux_single_month(self):
        assert soil_heat_flux(np.array([20.0]))[0] == 0.0


class TestCalculatePet:

    def test_thornthwaite_from_table(self, station_table):
        pet = calculate_pet(station_table, 'thornthwaite', 37.6475)
        assert pet.name == 'pet_thornthwaite'
        assert pet.attrs['units'] == 'mm/month'
        assert pet.sizes['time'] == station_table.sizes['time']

    def test_penman_needs_elevation(self, station_table):
        with pytest.raises(ValueError, match="elevation"):
            calculate_pet(station_table, 'penman', 37.6475, na_rm=True)

    def test_penman_uses_table_sunshine(self, station_table):
        pet = calculate_pet(station_table, 'penman', 37.6475, 402.6, na_rm=True)
        assert np.isnan(pet.values[0])
        assert np.all(np.isfinite(pet.values[48:]))

    def test_missing_inputs(self, station_table):
        with pytest.raises(ValueError, match="requires"):
            calculate_pet(station_table.drop_vars('tmin'), 'hargreaves', 37.6475)

    def test_required_inputs(self):
        assert required_inputs('penman') == ('tmin', 'tmax', 'wind')

    def test_unknown_method(self, station_table):
        with pytest.raises(ValueError, match="Invalid PET method"):
            calculate_pet(station_table, 'blaney-criddle', 37.6475)
