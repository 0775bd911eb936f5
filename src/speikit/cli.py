"""
Command-line entry point.

examples:
    speikit --input wichita.csv
    speikit --input wichita_values.csv --end 2011-10 --wind-units km/h
    speikit --input station.nc --latitude -8.5 --elevation 50 --scales 1 3 12 \
        --kernel gaussian --output-dir output/bali
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

import matplotlib.pyplot as plt

from . import __version__
from .analysis import StationConfig, run_analysis
from .config import (
    DEFAULT_ELEVATION,
    DEFAULT_LATITUDE,
    DEFAULT_SCALES,
    Distribution,
    FitMethod,
    Kernel,
    PETMethod,
    get_logger,
)
from .dataset import load_climate_table, to_frame
from .utils import parse_year_month, summarize_data_completeness

_logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog='speikit',
        description=(
            'Evapotranspiration, climatic water balance and SPEI for a monthly '
            'station climate record.'
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    ap.add_argument('--input', required=True, help='CSV or NetCDF station record')
    ap.add_argument('--end', default=None,
                    help='YYYY-MM of the last row when the CSV has no YEAR/MONTH columns')
    ap.add_argument('--start', default=None,
                    help='YYYY-MM of the first row when the CSV has no YEAR/MONTH columns')
    ap.add_argument('--name', default='Wichita', help='station name used in titles and file names')
    ap.add_argument('--latitude', type=float, default=DEFAULT_LATITUDE)
    ap.add_argument('--elevation', type=float, default=DEFAULT_ELEVATION)
    ap.add_argument('--scales', type=int, nargs='+', default=list(DEFAULT_SCALES))
    ap.add_argument('--methods', nargs='+', default=[m.name for m in PETMethod],
                    choices=[m.name for m in PETMethod])
    ap.add_argument('--ref-period', nargs=2, metavar=('START', 'END'), default=None,
                    help='YYYY-MM YYYY-MM reference period for every method')
    ap.add_argument('--kernel', default=Kernel.rectangular.value,
                    choices=[k.value for k in Kernel])
    ap.add_argument('--shift', type=int, default=0)
    ap.add_argument('--distribution', default=Distribution.log_logistic.value,
                    choices=[d.value for d in Distribution])
    ap.add_argument('--fit', default=FitMethod.ub_pwm.value,
                    choices=[f.value for f in FitMethod])
    ap.add_argument('--na-rm', action='store_true',
                    help='allow missing values for every method')
    ap.add_argument('--wind-units', default='m/s', choices=['m/s', 'km/h'])
    ap.add_argument('--output-dir', default='output/plots')
    ap.add_argument('--no-plots', action='store_true')
    ap.add_argument('--save-table', default=None, metavar='CSV',
                    help='write the table with evapotranspiration and balance columns')
    ap.add_argument('--verbose', '-v', action='store_true')
    ap.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return ap


def _set_verbose() -> None:
    for name in list(logging.Logger.manager.loggerDict):
        if name.startswith('speikit'):
            logging.getLogger(name).setLevel(logging.DEBUG)


def config_from_args(args: argparse.Namespace) -> StationConfig:
    """Translate parsed arguments into a StationConfig."""
    config = StationConfig(
        name=args.name,
        latitude=args.latitude,
        elevation=args.elevation,
        scales=tuple(args.scales),
        methods=tuple(PETMethod[m] for m in args.methods),
        kernel=args.kernel,
        shift=args.shift,
        distribution=args.distribution,
        fit_method=args.fit,
        na_rm=args.na_rm,
        output_dir=args.output_dir,
    )
    if args.ref_period:
        period = (parse_year_month(args.ref_period[0]), parse_year_month(args.ref_period[1]))
        config.reference_periods = {m.name: period for m in PETMethod}
    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        _set_verbose()

    # Figures are written to files only
    plt.switch_backend('Agg')

    try:
        config = config_from_args(args)
        ds = load_climate_table(args.input, end=args.end, start=args.start,
                                wind_units=args.wind_units)
        if args.verbose:
            print(summarize_data_completeness(ds).to_string())
        analysis = run_analysis(ds, config, make_plots=not args.no_plots)
    except (ValueError, FileNotFoundError) as e:
        _logger.error(str(e))
        return 1

    if args.save_table:
        directory = os.path.dirname(args.save_table)
        if directory:
            os.makedirs(directory, exist_ok=True)
        to_frame(analysis.dataset).to_csv(args.save_table, index=False)
        _logger.info(f"Saved climate table to {args.save_table}")

    print(analysis.summary_table().to_string(index=False))
    for key, path in analysis.figure_paths.items():
        print(f"{key:>24}: {path}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
