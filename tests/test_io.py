"""Tests for configuration, data output, source readers and the CLI."""

import sys

import numpy as np
import pandas as pd
import pytest
from netCDF4 import Dataset
from scipy.io import savemat

from tracerbox import BoxModel, Q_
from tracerbox.cli import main, normalize_scenario_name, run_scenario
from tracerbox.core.diagnostics import compute_all_diagnostics
from tracerbox.core.propagator import evolve_concentration
from tracerbox.core.tracers import ConstantHistory, TabulatedHistory
from tracerbox.io import (
    ConfigManager,
    DataHandler,
    read_iodine129_history,
    read_transient_tracer_histories,
)


@pytest.fixture
def short_run(standard_model, matrices):
    """Short unit-dye trajectory on the standard model."""
    A, B = matrices
    grid = standard_model.grid
    trajectory = evolve_concentration(
        grid.zeros(), A, B, [0.0, 10.0, 20.0], ConstantHistory(np.ones(2)), grid=grid
    )
    return trajectory, A, B


class TestConfigManager:
    """Test configuration management."""

    def test_default_configs(self):
        """Test every built-in case validates."""
        for case in ('case1', 'case2', 'case3', 'case4'):
            config = ConfigManager.get_default_config(case)
            assert ConfigManager.validate_config(config)
            assert 'scenario_name' in config

    def test_default_config_is_copy(self):
        """Test defaults are not shared between calls."""
        config = ConfigManager.get_default_config('case1')
        config['areas'][0] = 0.0
        assert ConfigManager.get_default_config('case1')['areas'][0] == 2.0e13

    def test_unknown_case(self):
        with pytest.raises(ValueError):
            ConfigManager.get_default_config('case9')

    def test_load(self, tmp_path):
        """Test parsing of a configuration file."""
        path = tmp_path / "run.txt"
        path.write_text(
            "# Dye run\n"
            "scenario_name = Dye Test\n"
            "tracer = Bool   # unit dye\n"
            "t_start = 0\n"
            "t_end = 50.5\n"
            "n_outputs = 6\n"
            "areas = 2e13, 4e13, 4e13\n"
            "halflife = none\n"
            "save_netcdf = false\n"
        )
        config = ConfigManager.load(str(path))

        assert config['scenario_name'] == 'Dye Test'
        assert config['tracer'] == 'Bool'
        assert config['t_start'] == 0
        assert config['t_end'] == 50.5
        assert config['areas'] == [2.0e13, 4.0e13, 4.0e13]
        assert config['halflife'] is None
        assert config['save_netcdf'] is False

    def test_load_text_keys_with_commas(self, tmp_path):
        """Test free-text values are not split into lists."""
        path = tmp_path / "run.txt"
        path.write_text(
            "scenario_name = Case 1, argon\n"
            "tracer = argon39\n"
            "history_file = data/a,b.csv\n"
            "areas = 1, 2, 3\n"
        )
        config = ConfigManager.load(str(path))

        assert config['scenario_name'] == 'Case 1, argon'
        assert config['history_file'] == 'data/a,b.csv'
        assert config['areas'] == [1, 2, 3]
        assert normalize_scenario_name(config['scenario_name']) == 'case_1,_argon'

    def test_load_malformed(self, tmp_path):
        path = tmp_path / "bad.txt"
        path.write_text("tracer argon39\n")
        with pytest.raises(ValueError):
            ConfigManager.load(str(path))

    def test_save_load_roundtrip(self, tmp_path):
        """Test saved configuration loads back unchanged."""
        config = ConfigManager.get_default_config('case3')
        path = tmp_path / "configs" / "case3.txt"
        ConfigManager.save(config, str(path))

        loaded = ConfigManager.load(str(path))
        assert loaded['tracer'] == 'CFC11NH'
        assert loaded['history_file'] == 'data/tracer_histories.mat'
        assert loaded['thicknesses'] == [1000.0, 1500.0, 1500.0]
        assert loaded['halflife'] is None
        assert loaded['save_netcdf'] is True

    @pytest.mark.parametrize("key,value", [
        ('tracer', 'N2ONH'),
        ('t_end', -1.0),
        ('n_outputs', 1),
        ('boundary_exchange', 0.0),
        ('psi_abyssal', -5.0),
    ])
    def test_validation_errors(self, key, value):
        """Test invalid parameters are rejected."""
        config = ConfigManager.get_default_config('case1')
        config[key] = value
        with pytest.raises(ValueError):
            ConfigManager.validate_config(config)

    def test_validation_missing(self):
        config = ConfigManager.get_default_config('case2')
        del config['tracer']
        with pytest.raises(ValueError):
            ConfigManager.validate_config(config)

    def test_validation_history_required(self):
        """Test transient point-source tracers need a history file."""
        config = ConfigManager.get_default_config('case3')
        config['history_file'] = None
        with pytest.raises(ValueError):
            ConfigManager.validate_config(config)


class TestDataHandler:
    """Test data output."""

    def test_timeseries_csv(self, tmp_path, short_run):
        """Test timeseries CSV output."""
        trajectory, _, _ = short_run
        path = tmp_path / "out" / "series.csv"
        DataHandler.save_timeseries_csv(str(path), trajectory)

        assert path.exists()
        df = pd.read_csv(path, index_col=0)
        assert df.shape == (3, 9)
        assert "High latitudes | Thermocline" in df.columns
        np.testing.assert_allclose(df.iloc[0].to_numpy(), 0.0)

    def test_matrix_csv(self, tmp_path, short_run, grid):
        """Test labelled matrix output."""
        _, A, B = short_run
        DataHandler.save_matrix_csv(str(tmp_path / "A.csv"), A, grid)
        DataHandler.save_matrix_csv(str(tmp_path / "B.csv"), B, grid)

        a = pd.read_csv(tmp_path / "A.csv", index_col=0)
        b = pd.read_csv(tmp_path / "B.csv", index_col=0)
        assert a.shape == (9, 9)
        assert list(b.columns) == ["High latitudes | Thermocline", "Mid-latitudes | Thermocline"]

        with pytest.raises(ValueError):
            DataHandler.save_matrix_csv(str(tmp_path / "bad.csv"), A[:, :4], grid)

    def test_diagnostics_csv(self, tmp_path, standard_model, short_run):
        """Test diagnostics CSV output."""
        trajectory, A, B = short_run
        diagnostics = compute_all_diagnostics(standard_model, A, B, trajectory, verbose=False)
        path = tmp_path / "diagnostics.csv"
        DataHandler.save_diagnostics_csv(str(path), diagnostics)

        df = pd.read_csv(path)
        assert list(df.columns) == ['Metric', 'Value', 'Units']
        units = dict(zip(df['Metric'], df['Units']))
        assert units['flushing_time'] == 'yr'
        assert units['volume_convergence_max'] == 'Tg s-1'

    def test_netcdf(self, tmp_path, standard_model, short_run):
        """Test NetCDF output structure."""
        trajectory, A, B = short_run
        config = ConfigManager.get_default_config('case2')
        path = tmp_path / "run.nc"
        DataHandler.save_netcdf(str(path), trajectory, standard_model, A, B, config)

        with Dataset(str(path), 'r') as nc:
            assert nc.dimensions['time'].size == 3
            assert nc.dimensions['box'].size == 9
            assert nc.dimensions['boundary'].size == 2
            for name in ('time', 'concentration', 'volume', 'transport_matrix', 'boundary_matrix'):
                assert name in nc.variables
            assert nc.variables['concentration'].shape == (3, 3, 3)
            assert list(nc.variables['vertical'][:]) == ["Thermocline", "Deep", "Abyssal"]
            assert nc.Conventions == 'CF-1.8'
            assert nc.tracer == 'Bool'
            np.testing.assert_allclose(nc.variables['transport_matrix'][:], A.magnitude)

    def test_netcdf_without_model(self, tmp_path, short_run):
        trajectory, _, _ = short_run
        path = tmp_path / "bare.nc"
        DataHandler.save_netcdf(str(path), trajectory)

        with Dataset(str(path), 'r') as nc:
            assert 'concentration' in nc.variables
            assert 'transport_matrix' not in nc.variables


class TestSourceData:
    """Test tabulated source history readers."""

    def test_transient_histories(self, tmp_path):
        """Test reading a MATLAB tracer compendium."""
        path = tmp_path / "histories.mat"
        years = np.arange(1930.0, 1936.0)
        savemat(str(path), {
            'Year': years.reshape(-1, 1),
            'CFC11NH': np.linspace(0.0, 5.0, 6).reshape(-1, 1),
            'SF6NH': np.zeros((6, 1)),
        })

        frame = read_transient_tracer_histories(str(path))
        assert frame.index.name == 'Year'
        assert set(frame.columns) == {'CFC11NH', 'SF6NH'}
        assert frame.loc[1932.0, 'CFC11NH'] == pytest.approx(2.0)

        history = TabulatedHistory.from_frame(frame, column='CFC11NH')
        assert float(history(Q_(1933.5, "yr")).magnitude) == pytest.approx(3.5)

    def test_transient_histories_errors(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_transient_tracer_histories(str(tmp_path / "missing.mat"))

        path = tmp_path / "noyear.mat"
        savemat(str(path), {'CFC11NH': np.ones(3)})
        with pytest.raises(KeyError):
            read_transient_tracer_histories(str(path))

        path = tmp_path / "ragged.mat"
        savemat(str(path), {'Year': np.arange(3.0), 'CFC11NH': np.ones(4)})
        with pytest.raises(ValueError):
            read_transient_tracer_histories(str(path))

    def test_iodine129_history(self, tmp_path):
        """Test header rows are skipped and zero input is prepended."""
        path = tmp_path / "iodine.csv"
        path.write_text(
            "Year,I129\n"
            "source,Sellafield+La Hague\n"
            "units,relative\n"
            "note,annual\n"
            "1960,0.1\n"
            "1990,2.0\n"
            "2010,1.5\n"
        )
        frame = read_iodine129_history(str(path))

        assert list(frame.columns) == ['iodine129']
        np.testing.assert_array_equal(frame.index.to_numpy(), [0.0, 1957.0, 1960.0, 1990.0, 2010.0])
        np.testing.assert_allclose(frame['iodine129'].to_numpy(), [0.0, 0.0, 0.1, 2.0, 1.5])

    def test_iodine129_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_iodine129_history(str(tmp_path / "missing.csv"))


class TestCLI:
    """Test scenario runner and command line entry point."""

    def test_normalize_scenario_name(self):
        assert normalize_scenario_name("Case 1 - Argon-39 Steady Spin-up") == "case_1_argon_39_steady_spin_up"
        assert normalize_scenario_name("Dye  Test ") == "dye_test"

    def test_run_scenario(self, tmp_path, monkeypatch):
        """Test full scenario run and its output files."""
        monkeypatch.chdir(tmp_path)
        config = ConfigManager.get_default_config('case2')
        config['t_end'] = 20.0
        config['n_outputs'] = 3

        trajectory, diagnostics = run_scenario(config, output_dir="outputs", verbose=False)

        assert len(trajectory) == 3
        assert diagnostics['n_times'] == 3
        name = "case_2_unit_dye_ventilation"
        assert (tmp_path / "outputs" / "csv" / f"{name}_timeseries.csv").exists()
        assert (tmp_path / "outputs" / "csv" / f"{name}_A.csv").exists()
        assert (tmp_path / "outputs" / "csv" / f"{name}_B.csv").exists()
        assert (tmp_path / "outputs" / "csv" / f"{name}_diagnostics.csv").exists()
        assert (tmp_path / "outputs" / "netcdf" / f"{name}.nc").exists()
        assert (tmp_path / "logs" / f"{name}.log").exists()

    def test_run_scenario_iodine(self, tmp_path, monkeypatch):
        """Test a transient run driven by a CSV history."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / "iodine.csv").write_text(
            "Year,I129\na,b\nc,d\ne,f\n1960,0.5\n1980,1.0\n2000,2.0\n"
        )
        config = ConfigManager.get_default_config('case4')
        config.update({'t_end': 1977.0, 'n_outputs': 3, 'history_file': 'iodine.csv', 'save_netcdf': False})

        trajectory, diagnostics = run_scenario(config, verbose=False)

        assert np.all(trajectory[0].magnitude == 0.0)
        assert diagnostics['inventory_final'] > 0.0
        assert not (tmp_path / "outputs" / "netcdf").exists()

    def test_run_scenario_missing_history(self, tmp_path, monkeypatch):
        """Test failures propagate after being logged."""
        monkeypatch.chdir(tmp_path)
        config = ConfigManager.get_default_config('case3')
        config['history_file'] = 'missing.mat'

        with pytest.raises(FileNotFoundError):
            run_scenario(config, verbose=False)
        assert "Simulation failed" in (tmp_path / "logs" / "case_3_cfc_11_northern_hemisphere.log").read_text()

    def test_main_with_config(self, tmp_path, monkeypatch):
        """Test the entry point with a custom configuration file."""
        monkeypatch.chdir(tmp_path)
        config = ConfigManager.get_default_config('case1')
        config.update({'scenario_name': 'Quick Argon', 't_end': 100.0, 'n_outputs': 3})
        ConfigManager.save(config, str(tmp_path / "quick.txt"))

        monkeypatch.setattr(sys, 'argv', ['tracerbox', '--config', 'quick.txt', '-q', '-o', 'results'])
        main()

        assert (tmp_path / "results" / "csv" / "quick_argon_timeseries.csv").exists()

    def test_main_without_arguments(self, monkeypatch):
        monkeypatch.setattr(sys, 'argv', ['tracerbox'])
        with pytest.raises(SystemExit):
            main()

    def test_model_from_config(self):
        """Test model assembly from a configuration dictionary."""
        config = ConfigManager.get_default_config('case1')
        config['boundary_exchange'] = 40.0
        model = BoxModel.from_config(config)
        assert model.flushing_time().m_as("yr") == pytest.approx(158.44, rel=1e-3)
