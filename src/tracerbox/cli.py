#!/usr/bin/env python
"""
Command Line Interface for the tracerbox Ocean Box Model.

Usage:
    tracerbox case1              # Argon-39 steady spin-up
    tracerbox case2              # Unit dye ventilation
    tracerbox case3              # CFC-11 (needs data/tracer_histories.mat)
    tracerbox case4              # Iodine-129 (needs data/iodine129_history.csv)
    tracerbox --all              # Run all cases
    tracerbox --config path.txt  # Custom config
"""

import argparse
import sys
import warnings
from pathlib import Path
from typing import List
import numpy as np
import pandas as pd

from . import __version__
from .core.model import BoxModel
from .core.tracers import Tracer, tracer_timeseries
from .core.diagnostics import compute_all_diagnostics
from .io.config_manager import DEFAULT_CASES, ConfigManager
from .io.data_handler import DataHandler
from .io.source_data import read_iodine129_history, read_transient_tracer_histories
from .utils.logger import SimulationLogger
from .utils.timer import Timer


def print_header():
    """Print ASCII art header."""
    print("\n" + "=" * 70)
    print(" " * 14 + "tracerbox: Linear Box Models of Ocean Tracers")
    print(" " * 25 + f"Version {__version__}")
    print("=" * 70)
    print("\n  Probed Transport Matrices | Exact Eigenvector Propagation")
    print("  Duhamel Forcing Quadrature | Unit-Checked Quantities")
    print("  License: MIT")
    print("=" * 70 + "\n")


def normalize_scenario_name(scenario_name: str) -> str:
    """Convert scenario name to clean filename format."""
    clean = scenario_name.lower()
    clean = clean.replace(' - ', '_')
    clean = clean.replace('-', '_')
    clean = clean.replace(' ', '_')

    while '__' in clean:
        clean = clean.replace('__', '_')

    clean = clean.rstrip('_')
    return clean


def load_history(tracer: Tracer, filepath: str) -> pd.DataFrame:
    """Read a tabulated source history in the format its suffix implies."""
    path = Path(filepath)
    if path.suffix.lower() == '.mat':
        return read_transient_tracer_histories(path)
    if tracer is Tracer.IODINE129:
        return read_iodine129_history(path)
    return pd.read_csv(path, index_col=0)


def run_scenario(
    config: dict,
    output_dir: str = "outputs",
    verbose: bool = True
):
    """Run a complete tracer box model scenario."""

    scenario_name = config.get('scenario_name', 'simulation')
    clean_name = normalize_scenario_name(scenario_name)

    if verbose:
        print(f"\n{'=' * 70}")
        print(f"SCENARIO: {scenario_name}")
        print(f"{'=' * 70}")

    logger = SimulationLogger(clean_name, "logs", verbose)
    timer = Timer()
    timer.start("total")

    try:
        ConfigManager.validate_config(config)
        tracer = Tracer.from_name(config['tracer'])

        # [1/6] Build model
        with timer.time_section("model_init"):
            if verbose:
                print("\n[1/6] Building box model...")

            model = BoxModel.from_config(config)
            logger.log_model(model)
            logger.log_config(config)

            if verbose:
                print(f"      {model}")

        # [2/6] Probe matrices
        with timer.time_section("matrices"):
            if verbose:
                print("\n[2/6] Probing transport and boundary matrices...")

            A = model.transport_matrix()
            B = model.boundary_matrix()

            if verbose:
                print(f"      A: {A.shape[0]}×{A.shape[1]} [{A.units}]")
                print(f"      B: {B.shape[0]}×{B.shape[1]} [{B.units}]")

        # [3/6] Source history
        with timer.time_section("source_history"):
            if verbose:
                print("\n[3/6] Loading source history...")

            history = None
            if config.get('history_file') and not tracer.steady:
                history = load_history(tracer, config['history_file'])
                logger.info(f"Loaded history {config['history_file']} ({len(history)} rows)")

            if verbose:
                source = config.get('history_file') if history is not None else "constant boundary values"
                print(f"      Tracer: {tracer.key} ({source})")

        # [4/6] Run tracer
        with timer.time_section("simulation"):
            if verbose:
                print("\n[4/6] Propagating tracer...")

            tlist = np.linspace(
                float(config['t_start']), float(config['t_end']), int(config['n_outputs'])
            )

            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always")
                trajectory = tracer_timeseries(
                    tracer,
                    A,
                    B,
                    tlist,
                    history=history,
                    halflife=config.get('halflife'),
                    grid=model.grid,
                    tolerance=config.get('tolerance', 1.0e-5),
                    limit=int(config.get('quad_limit', 10000)),
                    verbose=verbose,
                )
            for w in caught:
                logger.warning(str(w.message))

        # [5/6] Diagnostics
        with timer.time_section("diagnostics"):
            if verbose:
                print("\n[5/6] Computing diagnostics...")

            diagnostics = compute_all_diagnostics(model, A, B, trajectory, verbose=verbose)
            logger.log_diagnostics(diagnostics)

        # [6/6] Save output
        with timer.time_section("output"):
            if verbose:
                print("\n[6/6] Saving output...")

            csv_dir = Path(output_dir) / "csv"
            csv_dir.mkdir(parents=True, exist_ok=True)

            series_file = csv_dir / f"{clean_name}_timeseries.csv"
            DataHandler.save_timeseries_csv(str(series_file), trajectory)
            DataHandler.save_matrix_csv(str(csv_dir / f"{clean_name}_A.csv"), A, model.grid)
            DataHandler.save_matrix_csv(str(csv_dir / f"{clean_name}_B.csv"), B, model.grid)

            diag_file = csv_dir / f"{clean_name}_diagnostics.csv"
            DataHandler.save_diagnostics_csv(str(diag_file), diagnostics)

            if verbose:
                print(f"      Saved: {series_file}")
                print(f"      Saved: {diag_file}")

            if config.get('save_netcdf', True):
                nc_dir = Path(output_dir) / "netcdf"
                nc_dir.mkdir(parents=True, exist_ok=True)

                nc_file = nc_dir / f"{clean_name}.nc"
                DataHandler.save_netcdf(str(nc_file), trajectory, model, A, B, config)

                if verbose:
                    print(f"      Saved: {nc_file}")

        timer.stop("total")
        logger.log_timing(timer.get_times())

        if verbose:
            total_time = timer.times.get('total', 0)
            print(f"\n{'=' * 70}")
            print("SIMULATION COMPLETED")
            print(f"{'=' * 70}")
            print(f"  Max volume convergence: {diagnostics.get('volume_convergence_max', 0):.2e} Tg/s")
            print(f"  Final mean concentration: {diagnostics.get('mean_concentration_final', 0):.4f}")
            print(f"  Total time: {total_time:.2f} s")
            print(f"{'=' * 70}\n")

        return trajectory, diagnostics

    except Exception as e:
        logger.error(f"Simulation failed: {str(e)}")

        if verbose:
            print(f"\n{'=' * 70}")
            print(f"SIMULATION FAILED: {str(e)}")
            print(f"{'=' * 70}\n")

        raise

    finally:
        logger.finalize()


def _configs_from_args(args) -> List[dict]:
    """Resolve the run configurations named on the command line."""
    if args.config:
        configs = [ConfigManager.load(args.config)]
    elif args.all:
        return [ConfigManager.get_default_config(case) for case in sorted(DEFAULT_CASES)]
    elif args.case:
        configs = [ConfigManager.get_default_config(args.case)]
    else:
        return []

    # --history-file only applies to a single named run
    if args.history_file:
        for config in configs:
            config["history_file"] = args.history_file
    return configs


def main():
    """Main entry point for command-line interface."""
    parser = argparse.ArgumentParser(
        description='tracerbox: Linear Box Models of Ocean Tracer Transport',
        epilog='Example: tracerbox case1'
    )

    parser.add_argument(
        'case',
        nargs='?',
        choices=sorted(DEFAULT_CASES),
        help='Built-in scenario: argon-39, unit dye, CFC-11 or iodine-129'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        help='Run a key = value configuration file instead of a built-in case'
    )

    parser.add_argument(
        '--all', '-a',
        action='store_true',
        help='Run every built-in scenario in turn'
    )

    parser.add_argument(
        '--history-file',
        type=str,
        help='Tracer source history file (.mat compendium or CSV table)'
    )

    parser.add_argument(
        '--output-dir', '-o',
        type=str,
        default='outputs',
        help='Output directory for results (default: outputs)'
    )

    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Quiet mode (minimal output)'
    )

    args = parser.parse_args()
    verbose = not args.quiet

    if verbose:
        print_header()

    configs = _configs_from_args(args)
    if not configs:
        parser.print_help()
        sys.exit(0)

    for config in configs:
        run_scenario(config, args.output_dir, verbose)


if __name__ == '__main__':
    main()
