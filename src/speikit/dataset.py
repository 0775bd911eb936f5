"""
Monthly station climate tables.

A climate table is an xarray Dataset with a single contiguous monthly
`time` dimension. Loaded variables use canonical names (see
config.CLIMATE_VARIABLES); evapotranspiration and water balance variables
are appended in place as they are derived.

Input records are CSV files (or DataFrames) with YEAR/MONTH columns, or
without them when the first or last month is given, and NetCDF files with
a time coordinate.
"""

from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

import pandas as pd
import xarray as xr

from .config import (
    CLIMATE_VARIABLES,
    COLUMN_ALIASES,
    KMH_TO_MS,
    VARIABLE_ATTRS,
    PETMethod,
    balance_variable_name,
    get_logger,
    pet_variable_name,
)
from .evapotranspiration import calculate_pet, required_inputs
from .utils import parse_year_month

# Module logger
_logger = get_logger(__name__)

YearMonth = Tuple[int, int]


# =============================================================================
# LOADING
# =============================================================================

def _canonical_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename known station columns to canonical names and drop the rest."""
    renamed = {}
    for column in df.columns:
        key = str(column).strip().lower()
        if key in ('year', 'month'):
            renamed[column] = key
        elif key in COLUMN_ALIASES:
            renamed[column] = COLUMN_ALIASES[key]
    df = df.rename(columns=renamed)

    unknown = [c for c in df.columns if c not in renamed.values()]
    if unknown:
        _logger.debug(f"Ignoring unrecognized columns: {unknown}")
    df = df[[c for c in df.columns if c in renamed.values()]]
    return df.loc[:, ~df.columns.duplicated()]


def climate_table_from_frame(
    df: pd.DataFrame,
    end: Union[str, YearMonth, None] = None,
    start: Union[str, YearMonth, None] = None,
    wind_units: str = 'm/s'
) -> xr.Dataset:
    """
    Build a climate table from a DataFrame of monthly observations.

    :param df: one row per month; YEAR/MONTH columns define the time axis
        when present, otherwise rows are consecutive months
    :param end: (year, month) or 'YYYY-MM' of the last row (no YEAR/MONTH)
    :param start: (year, month) or 'YYYY-MM' of the first row (no YEAR/MONTH)
    :param wind_units: 'm/s' or 'km/h'
    :return: climate table Dataset
    :raises ValueError: if time cannot be resolved or precipitation is missing
    """
    if wind_units not in ('m/s', 'km/h'):
        raise ValueError(f"wind_units must be 'm/s' or 'km/h', got: '{wind_units}'")

    df = _canonical_columns(df)

    if 'precip' not in df.columns:
        raise ValueError(
            f"Climate record needs a precipitation column, got: {list(df.columns)}"
        )

    if 'year' in df.columns and 'month' in df.columns:
        time = pd.to_datetime(
            pd.DataFrame({'year': df['year'].astype(int), 'month': df['month'].astype(int), 'day': 1})
        )
    elif end is not None or start is not None:
        if start is not None:
            year, month = parse_year_month(start)
            time = pd.date_range(pd.Timestamp(year=year, month=month, day=1), periods=len(df), freq='MS')
        else:
            year, month = parse_year_month(end)
            time = pd.date_range(end=pd.Timestamp(year=year, month=month, day=1), periods=len(df), freq='MS')
    else:
        raise ValueError(
            "No YEAR/MONTH columns: pass `end` or `start` as (year, month)"
        )

    data = df.drop(columns=[c for c in ('year', 'month') if c in df.columns])
    data = data.apply(pd.to_numeric, errors='coerce')
    data.index = pd.DatetimeIndex(time, name='time')

    if data.index.has_duplicates:
        raise ValueError("Climate record has duplicate months")
    data = data.sort_index()

    # Insert missing months as NaN
    full_index = pd.date_range(data.index[0], data.index[-1], freq='MS', name='time')
    n_inserted = len(full_index) - len(data)
    if n_inserted:
        _logger.warning(f"Inserted {n_inserted} missing month(s) as NaN")
        data = data.reindex(full_index)

    if 'wind' in data.columns and wind_units == 'km/h':
        data['wind'] = data['wind'] * KMH_TO_MS

    ds = xr.Dataset.from_dataframe(data)
    for name in ds.data_vars:
        ds[name].attrs.update(VARIABLE_ATTRS.get(name, {}))

    _logger.info(
        f"Loaded climate table: {ds.sizes['time']} months "
        f"({full_index[0]:%Y-%m} to {full_index[-1]:%Y-%m}), "
        f"variables {list(ds.data_vars)}"
    )
    return ds


def load_climate_table(
    path: Union[str, Path],
    end: Union[str, YearMonth, None] = None,
    start: Union[str, YearMonth, None] = None,
    wind_units: str = 'm/s'
) -> xr.Dataset:
    """
    Load a monthly station record from CSV or NetCDF.

    :param path: .csv/.txt or .nc file
    :param end: (year, month) of the last row when the CSV has no YEAR/MONTH
    :param start: (year, month) of the first row when the CSV has no YEAR/MONTH
    :param wind_units: 'm/s' or 'km/h'
    :return: climate table Dataset
    :raises FileNotFoundError: if the file does not exist
    :raises ValueError: for unsupported file types or unusable content

    Example:
        >>> ds = load_climate_table('wichita.csv')
        >>> ds = load_climate_table('wichita_values.csv', end=(2011, 10))
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Climate record not found: {path}")

    suffix = path.suffix.lower()
    if suffix in ('.csv', '.txt'):
        df = pd.read_csv(path, sep=None, engine='python')
    elif suffix in ('.nc', '.nc4'):
        with xr.open_dataset(path) as nc:
            df = nc.to_dataframe().reset_index()
        if 'time' in df.columns:
            times = pd.DatetimeIndex(df.pop('time'))
            df.insert(0, 'YEAR', times.year)
            df.insert(1, 'MONTH', times.month)
    else:
        raise ValueError(f"Unsupported file type: '{suffix}'. Use .csv or .nc")

    return climate_table_from_frame(df, end=end, start=start, wind_units=wind_units)


# =============================================================================
# DERIVED VARIABLES
# =============================================================================

def add_evapotranspiration(
    ds: xr.Dataset,
    latitude: float,
    elevation: Optional[float] = None,
    methods: Iterable[Union[str, PETMethod]] = tuple(PETMethod),
    na_rm: Union[bool, dict] = False,
    **kwargs
) -> xr.Dataset:
    """
    Append evapotranspiration variables (pet_<method>) to a climate table.

    Methods whose inputs are missing are skipped with a warning.

    :param ds: climate table (modified in place and returned)
    :param latitude: station latitude in degrees north
    :param elevation: station elevation in m (Penman-Monteith)
    :param methods: estimators to run
    :param na_rm: allow missing values; a dict maps method name to a flag
    :param kwargs: passed to calculate_pet()
    :return: the climate table
    """
    for method in methods:
        if isinstance(method, str):
            method = PETMethod.from_string(method)

        missing = [v for v in required_inputs(method) if v not in ds]
        if missing:
            _logger.warning(
                f"Skipping {method.display_name}: missing variable(s) {missing}"
            )
            continue

        allow_missing = na_rm.get(method.name, False) if isinstance(na_rm, dict) else na_rm
        method_kwargs = kwargs if method == PETMethod.penman else {}
        ds[pet_variable_name(method)] = calculate_pet(
            ds, method, latitude, elevation, na_rm=allow_missing, **method_kwargs
        )

    return ds


def add_water_balance(ds: xr.Dataset) -> xr.Dataset:
    """
    Append climatic water balance (balance_<method> = precip - pet_<method>)
    for every evapotranspiration variable present.

    :param ds: climate table with 'precip' and pet_* variables
    :return: the climate table
    """
    if 'precip' not in ds:
        raise ValueError("Water balance requires a 'precip' variable")

    for method in PETMethod:
        pet_name = pet_variable_name(method)
        if pet_name not in ds:
            continue
        balance = ds['precip'] - ds[pet_name]
        balance.attrs = {
            'long_name': f"Climatic water balance (P - PET, {method.display_name})",
            'units': 'mm/month',
        }
        ds[balance_variable_name(method)] = balance

    return ds


def balance_series(ds: xr.Dataset, method: Union[str, PETMethod]) -> xr.DataArray:
    """
    Water balance DataArray of one evapotranspiration method.

    :raises ValueError: if the balance has not been derived
    """
    if isinstance(method, str):
        method = PETMethod.from_string(method)
    name = balance_variable_name(method)
    if name not in ds:
        raise ValueError(
            f"No water balance for {method.display_name}; run add_water_balance() first"
        )
    return ds[name]


def input_variables(ds: xr.Dataset) -> list:
    """Loaded climate variables present in the table, in canonical order."""
    return [v for v in CLIMATE_VARIABLES if v in ds]


def to_frame(ds: xr.Dataset) -> pd.DataFrame:
    """Climate table as a DataFrame with YEAR/MONTH columns first."""
    df = ds.to_dataframe()
    times = pd.DatetimeIndex(df.index)
    df.insert(0, 'MONTH', times.month)
    df.insert(0, 'YEAR', times.year)
    return df.reset_index(drop=True)
