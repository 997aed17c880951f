"""
Data Handler for Tracer Box Model Runs.

Saves results to:
    - CSV: Box timeseries, transport/boundary matrices and diagnostics
    - NetCDF: Trajectory with box volumes and matrices (CF-1.8 style)

Box convention:
    - meridional: north to south (High latitudes first)
    - vertical: surface to bottom (Thermocline first)
"""

import numpy as np
import pandas as pd
from netCDF4 import Dataset
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional

from .. import __version__
from ..core.grid import BoxGrid


class DataHandler:
    """Handle saving simulation data to various formats."""

    @staticmethod
    def save_timeseries_csv(filepath: str, trajectory: 'Trajectory'):
        """
        Save every box's concentration history to CSV.

        Args:
            filepath: Output file path
            trajectory: Trajectory with a grid attached
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        df = trajectory.to_dataframe()
        df.to_csv(filepath, float_format='%.8e')

    @staticmethod
    def save_matrix_csv(filepath: str, matrix, grid: BoxGrid):
        """
        Save a transport or boundary matrix with box labels.

        Rows are boxes in flattened order; columns are boxes (transport
        matrix) or boundary boxes (boundary matrix).

        Args:
            filepath: Output file path
            matrix: Quantity matrix
            grid: Box grid
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        values = np.asarray(matrix.magnitude, dtype=np.float64)
        rows = [f"{m} | {v}" for m, v in grid.labels()]

        if values.shape[1] == grid.size:
            columns = rows
        elif values.shape[1] == grid.n_boundary:
            columns = [f"{m} | {v}" for m, v in grid.boundary]
        else:
            raise ValueError(f"Matrix shape {values.shape} does not fit grid {grid}")

        df = pd.DataFrame(values, index=pd.Index(rows, name=f"box [{matrix.units}]"), columns=columns)
        df.to_csv(filepath, float_format='%.8e')

    @staticmethod
    def save_diagnostics_csv(filepath: str, diagnostics: Dict[str, Any]):
        """
        Save diagnostic metrics to CSV.

        Args:
            filepath: Output file path
            diagnostics: Dictionary of metrics
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        rows = []
        for key, value in sorted(diagnostics.items()):
            if isinstance(value, (int, float, bool, np.integer, np.floating)):
                rows.append({
                    'Metric': key,
                    'Value': value,
                    'Units': DataHandler._get_metric_units(key),
                })

        df = pd.DataFrame(rows)
        df.to_csv(filepath, index=False)

    @staticmethod
    def _get_metric_units(metric_name: str) -> str:
        """Get units for a metric."""
        units_map = {
            'volume_convergence_max': 'Tg s-1',
            'volume_convergence_net': 'Tg s-1',
            'volume_convergence_relative': 'dimensionless',
            'eigenvalue_real_max': 'yr-1',
            'eigenvalue_real_min': 'yr-1',
            'eigenvalue_imag_max': 'yr-1',
            'trace': 'yr-1',
            'row_sum_max': 'yr-1',
            'row_sum_residual_max': 'yr-1',
            'boundary_rate_total': 'yr-1',
            'timescale_slowest': 'yr',
            'timescale_fastest': 'yr',
            'flushing_time': 'yr',
            'total_volume': 'm3',
            'steady_unit_response_min': 'dimensionless',
            'steady_unit_response_max': 'dimensionless',
            'inventory_initial': 'Zg',
            'inventory_final': 'Zg',
            'inventory_change': 'Zg',
            'mean_concentration_initial': 'dimensionless',
            'mean_concentration_final': 'dimensionless',
            'concentration_min_final': 'dimensionless',
            'concentration_max_final': 'dimensionless',
            'time_final': 'yr',
            'n_boxes': 'count',
            'n_boundary': 'count',
            'n_times': 'count',
            'stable': 'flag',
        }
        return units_map.get(metric_name, 'unknown')

    @staticmethod
    def save_netcdf(
        filepath: str,
        trajectory: 'Trajectory',
        model: Optional['BoxModel'] = None,
        A=None,
        B=None,
        config: Optional[Dict[str, Any]] = None,
    ):
        """
        Save a tracer run to NetCDF.

        Args:
            filepath: Output file path
            trajectory: Trajectory with a grid attached
            model: BoxModel (volumes and exchange are stored when given)
            A: Transport matrix (optional)
            B: Boundary matrix (optional)
            config: Optional configuration dictionary
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        grid = trajectory.grid
        if grid is None:
            raise ValueError("Trajectory has no grid; cannot label NetCDF dimensions")

        n_time = len(trajectory)
        nm, nv = grid.shape

        with Dataset(filepath, 'w', format='NETCDF4') as nc:
            # ================================================================
            # DIMENSIONS
            # ================================================================
            nc.createDimension('time', n_time)
            nc.createDimension('meridional', nm)
            nc.createDimension('vertical', nv)
            nc.createDimension('box', grid.size)
            nc.createDimension('boundary', grid.n_boundary)

            # ================================================================
            # COORDINATE VARIABLES
            # ================================================================
            nc_time = nc.createVariable('time', 'f8', ('time',), zlib=True)
            nc_time[:] = np.asarray(trajectory.times.magnitude)
            nc_time.units = f"{trajectory.times.units}"
            nc_time.long_name = 'time'
            nc_time.standard_name = 'time'
            nc_time.axis = 'T'
            nc_time.calendar = 'none'

            nc_mer = nc.createVariable('meridional', str, ('meridional',))
            nc_mer[:] = np.array(grid.meridional, dtype=object)
            nc_mer.long_name = 'meridional category (north to south)'

            nc_ver = nc.createVariable('vertical', str, ('vertical',))
            nc_ver[:] = np.array(grid.vertical, dtype=object)
            nc_ver.long_name = 'vertical category (surface to bottom)'

            nc_box = nc.createVariable('box', str, ('box',))
            nc_box[:] = np.array([f"{m} | {v}" for m, v in grid.labels()], dtype=object)
            nc_box.long_name = 'box label in flattened order'

            nc_bnd = nc.createVariable('boundary', str, ('boundary',))
            nc_bnd[:] = np.array([f"{m} | {v}" for m, v in grid.boundary], dtype=object)
            nc_bnd.long_name = 'boundary box label'

            # ================================================================
            # TRACER
            # ================================================================
            nc_c = nc.createVariable(
                'concentration', 'f8', ('time', 'meridional', 'vertical'), zlib=True
            )
            nc_c[:] = np.asarray(trajectory.concentrations.magnitude)
            nc_c.units = f"{trajectory.concentrations.units}"
            nc_c.long_name = 'tracer concentration'
            nc_c.coordinates = 'time meridional vertical'

            # ================================================================
            # MODEL
            # ================================================================
            if model is not None:
                nc_vol = nc.createVariable('volume', 'f8', ('meridional', 'vertical'), zlib=True)
                nc_vol[:] = model.volumes.m_as('m**3')
                nc_vol.units = 'm3'
                nc_vol.long_name = 'box volume'

                nc_fb = nc.createVariable('boundary_exchange', 'f8', ('boundary',), zlib=True)
                nc_fb[:] = model.boundary_exchange.m_as('m**3/s')
                nc_fb.units = 'm3 s-1'
                nc_fb.long_name = 'boundary exchange volume flux'

                nc.density_kgm3 = float(model.density.m_as('kg/m**3'))
                nc.flushing_time_yr = float(model.flushing_time().m_as('yr'))

            if A is not None:
                nc_a = nc.createVariable('transport_matrix', 'f8', ('box', 'box'), zlib=True)
                nc_a[:] = np.asarray(A.magnitude)
                nc_a.units = f"{A.units}"
                nc_a.long_name = 'tracer transport matrix'

            if B is not None:
                nc_b = nc.createVariable('boundary_matrix', 'f8', ('box', 'boundary'), zlib=True)
                nc_b[:] = np.asarray(B.magnitude)
                nc_b.units = f"{B.units}"
                nc_b.long_name = 'boundary forcing matrix'

            # ================================================================
            # GLOBAL ATTRIBUTES
            # ================================================================
            nc.title = 'Tracer Box Model Run'
            nc.institution = 'tracerbox'
            nc.source = f'tracerbox v{__version__}'
            nc.history = f'Created {datetime.now().isoformat()}'
            nc.Conventions = 'CF-1.8'

            if config:
                nc.scenario_name = str(config.get('scenario_name', 'unknown'))
                nc.tracer = str(config.get('tracer', 'unknown'))
                for key in ('psi_abyssal', 'psi_intermediate', 'vertical_exchange', 'boundary_exchange'):
                    if config.get(key) is not None:
                        setattr(nc, f'{key}_Sv', float(config[key]))

            nc.n_time_outputs = n_time
