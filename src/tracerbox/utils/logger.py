"""Run logger for tracer box model scenarios."""

import logging
import numpy as np
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, List


class SimulationLogger:
    """Logger for tracer box model runs."""

    def __init__(
        self,
        scenario_name: str,
        log_dir: str = "logs",
        verbose: bool = True
    ):
        """
        Initialize run logger.

        Args:
            scenario_name: Scenario name (for log filename)
            log_dir: Directory for log files
            verbose: Echo warnings and errors to the console
        """
        self.scenario_name = scenario_name
        self.log_dir = Path(log_dir)
        self.verbose = verbose

        self.log_dir.mkdir(parents=True, exist_ok=True)

        clean_name = scenario_name.lower().replace(' ', '_').replace('-', '_')
        self.log_file = self.log_dir / f"{clean_name}.log"

        self.logger = self._setup_logger()
        self.warnings: List[str] = []
        self.errors: List[str] = []

    def _setup_logger(self) -> logging.Logger:
        """Configure Python logging."""
        logger = logging.getLogger(f"tracerbox_{self.scenario_name}")
        logger.setLevel(logging.DEBUG)
        logger.propagate = False
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)

        handler = logging.FileHandler(self.log_file, mode='w')
        handler.setLevel(logging.DEBUG)

        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)

        logger.addHandler(handler)
        return logger

    def info(self, msg: str):
        """Log informational message."""
        self.logger.info(msg)

    def warning(self, msg: str):
        """Log warning message."""
        self.logger.warning(msg)
        self.warnings.append(msg)

        if self.verbose:
            print(f"  WARNING: {msg}")

    def error(self, msg: str):
        """Log error message."""
        self.logger.error(msg)
        self.errors.append(msg)

        if self.verbose:
            print(f"  ERROR: {msg}")

    def _section(self, title: str):
        self.info("")
        self.info("=" * 70)
        self.info(title)
        self.info("=" * 70)

    def log_model(self, model: 'BoxModel'):
        """Log grid and circulation of the box model."""
        self._section(f"TRACER BOX MODEL RUN: {self.scenario_name}")
        self.info("")

        grid = model.grid
        self.info("GRID:")
        self.info(f"  Meridional: {', '.join(grid.meridional)}")
        self.info(f"  Vertical: {', '.join(grid.vertical)}")
        self.info(f"  Boundary boxes: {', '.join(f'{m}/{v}' for m, v in grid.boundary)}")

        self.info("")
        self.info("CIRCULATION:")
        self.info(f"  Total volume = {model.total_volume.m_as('m**3'):.3e} m³")
        self.info(f"  Boundary exchange = {model.boundary_exchange.m_as('m**3/s') / 1e6} Sv")
        self.info(f"  Density = {model.density.m_as('kg/m**3'):.1f} kg/m³")
        self.info(f"  Flushing time = {model.flushing_time().m_as('yr'):.1f} yr")

        self.info("=" * 70)

    def log_config(self, config: Dict[str, Any]):
        """Log run configuration."""
        self.info("")
        self.info("RUN PARAMETERS:")
        self.info(f"  Tracer = {config.get('tracer', '?')}")
        self.info(f"  ψ abyssal = {config.get('psi_abyssal', '?')} Sv")
        self.info(f"  ψ intermediate = {config.get('psi_intermediate', '?')} Sv")
        self.info(f"  Vertical exchange = {config.get('vertical_exchange', '?')} Sv")
        self.info(f"  Time span = {config.get('t_start', '?')} - {config.get('t_end', '?')} yr")
        self.info(f"  Output times = {config.get('n_outputs', '?')}")

        halflife = config.get('halflife')
        if halflife is not None:
            self.info(f"  Half life override = {halflife} yr")

        history_file = config.get('history_file')
        if history_file is not None:
            self.info(f"  History file = {history_file}")

        self.info("=" * 70)

    def log_diagnostics(self, diagnostics: Dict[str, Any]):
        """Log conservation, spectrum and inventory metrics."""
        self._section("BOX MODEL DIAGNOSTICS")

        self.info("")
        self.info("CONSERVATION:")
        self.info(f"  Max volume convergence: {diagnostics.get('volume_convergence_max', np.nan):.2e} Tg/s")
        self.info(f"  Row-sum residual: {diagnostics.get('row_sum_residual_max', np.nan):.2e} yr⁻¹")

        self.info("")
        self.info("SPECTRUM:")
        self.info(f"  Stable: {diagnostics.get('stable', '?')}")
        self.info(f"  Slowest timescale: {diagnostics.get('timescale_slowest', np.nan):.2f} yr")
        self.info(f"  Fastest timescale: {diagnostics.get('timescale_fastest', np.nan):.3f} yr")

        if 'inventory_final' in diagnostics:
            self.info("")
            self.info("INVENTORY:")
            self.info(f"  Initial: {diagnostics.get('inventory_initial', np.nan):.4e} Zg")
            self.info(f"  Final: {diagnostics.get('inventory_final', np.nan):.4e} Zg")
            self.info(f"  Mean concentration (final): {diagnostics.get('mean_concentration_final', np.nan):.4f}")

        self.info("=" * 70)

    def log_timing(self, timing: Dict[str, float]):
        """Log wall-clock time per run stage with its share of the total."""
        self._section("TIMING")

        total = timing.get('total', sum(timing.values()))
        stages = [(key, value) for key, value in timing.items() if key != 'total']
        for key, value in sorted(stages, key=lambda item: -item[1]):
            share = 100.0 * value / total if total > 0 else 0.0
            self.info(f"  {key:<16s} {value:9.3f} s  ({share:5.1f}%)")

        self.info(f"  {'total':<16s} {total:9.3f} s")
        self.info("=" * 70)

    def _report(self, label: str, messages: List[str]):
        if not messages:
            self.info(f"{label}: None")
            return
        self.info(f"{label}: {len(messages)}")
        for i, message in enumerate(messages, 1):
            self.info(f"  {i}. {message}")

    def finalize(self):
        """Write the run summary and release the log file."""
        self._section("SUMMARY")
        self._report("ERRORS", self.errors)
        self._report("WARNINGS", self.warnings)

        self.info("")
        self.info(f"Log file: {self.log_file}")
        self.info(f"Completed: {datetime.now().isoformat()}")
        self.info("=" * 70)

        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)
