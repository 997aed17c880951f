"""
Configuration Manager for Tracer Box Model Runs.

Configuration files are plain text, one ``key = value`` per line:

    # Case 1: argon-39 spin-up
    scenario_name = Case 1 - Argon-39 Steady Spin-up
    tracer = argon39
    psi_abyssal = 20.0
    areas = 2e13, 4e13, 4e13
    history_file = none

Values are parsed as booleans (true/false), none, integers, floats,
comma-separated lists, or strings, in that order. The free-text keys
(scenario_name, tracer, history_file) are always kept as strings.
"""

from pathlib import Path
from typing import Any, Dict

from ..core.tracers import Tracer


REQUIRED_KEYS = ('tracer', 't_start', 't_end', 'n_outputs')

POSITIVE_KEYS = ('boundary_exchange', 'density', 'tolerance', 'quad_limit')
NON_NEGATIVE_KEYS = ('psi_abyssal', 'psi_intermediate', 'vertical_exchange')
TEXT_KEYS = ('scenario_name', 'tracer', 'history_file')


BASE_CONFIG: Dict[str, Any] = {
    'psi_abyssal': 20.0,
    'psi_intermediate': 10.0,
    'vertical_exchange': 5.0,
    'boundary_exchange': 20.0,
    'areas': [2.0e13, 4.0e13, 4.0e13],
    'thicknesses': [1000.0, 1500.0, 1500.0],
    'density': 1035.0,
    'halflife': None,
    'history_file': None,
    'tolerance': 1.0e-5,
    'quad_limit': 10000,
    'save_netcdf': True,
}

DEFAULT_CASES: Dict[str, Dict[str, Any]] = {
    'case1': {
        'scenario_name': 'Case 1 - Argon-39 Steady Spin-up',
        'tracer': 'argon39',
        't_start': 0.0,
        't_end': 2000.0,
        'n_outputs': 101,
    },
    'case2': {
        'scenario_name': 'Case 2 - Unit Dye Ventilation',
        'tracer': 'Bool',
        't_start': 0.0,
        't_end': 1000.0,
        'n_outputs': 101,
    },
    'case3': {
        'scenario_name': 'Case 3 - CFC-11 Northern Hemisphere',
        'tracer': 'CFC11NH',
        't_start': 1940.0,
        't_end': 2020.0,
        'n_outputs': 81,
        'history_file': 'data/tracer_histories.mat',
    },
    'case4': {
        'scenario_name': 'Case 4 - Iodine-129 Reprocessing Release',
        'tracer': 'iodine129',
        't_start': 1957.0,
        't_end': 2020.0,
        'n_outputs': 64,
        'history_file': 'data/iodine129_history.csv',
    },
}


class ConfigManager:
    """Load, save and validate run configurations."""

    @staticmethod
    def _parse_value(text: str) -> Any:
        value = text.strip()
        lowered = value.lower()

        if lowered in ('true', 'yes', 'on'):
            return True
        if lowered in ('false', 'no', 'off'):
            return False
        if lowered in ('none', 'null', ''):
            return None

        if ',' in value:
            return [ConfigManager._parse_value(item) for item in value.split(',') if item.strip()]

        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            return value

    @staticmethod
    def _format_value(value: Any) -> str:
        if value is None:
            return 'none'
        if isinstance(value, bool):
            return 'true' if value else 'false'
        if isinstance(value, (list, tuple)):
            return ', '.join(ConfigManager._format_value(v) for v in value)
        return str(value)

    @staticmethod
    def load(filepath: str) -> Dict[str, Any]:
        """
        Load configuration from a ``key = value`` text file.

        Args:
            filepath: Path to configuration file

        Returns:
            Configuration dictionary
        """
        config = {}
        with open(filepath, 'r') as f:
            for line_number, raw in enumerate(f, 1):
                line = raw.split('#', 1)[0].strip()
                if not line:
                    continue
                if '=' not in line:
                    raise ValueError(f"{filepath}:{line_number}: expected 'key = value', got {raw.strip()!r}")
                key, value = (part.strip() for part in line.split('=', 1))
                if key in TEXT_KEYS:
                    config[key] = None if value.lower() in ('none', 'null', '') else value
                else:
                    config[key] = ConfigManager._parse_value(value)
        return config

    @staticmethod
    def save(config: Dict[str, Any], filepath: str):
        """
        Save configuration to a ``key = value`` text file.

        Args:
            config: Configuration dictionary
            filepath: Output file path
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, 'w') as f:
            f.write("# tracerbox configuration\n")
            for key, value in config.items():
                f.write(f"{key} = {ConfigManager._format_value(value)}\n")

    @staticmethod
    def get_default_config(case: str = 'case1') -> Dict[str, Any]:
        """
        Get default configuration for a built-in case.

        Args:
            case: One of 'case1' .. 'case4'

        Returns:
            Configuration dictionary (a fresh copy)
        """
        if case not in DEFAULT_CASES:
            raise ValueError(f"Unknown case {case!r}; choose from {sorted(DEFAULT_CASES)}")
        config = dict(BASE_CONFIG)
        config['areas'] = list(BASE_CONFIG['areas'])
        config['thicknesses'] = list(BASE_CONFIG['thicknesses'])
        config.update(DEFAULT_CASES[case])
        return config

    @staticmethod
    def validate_config(config: Dict[str, Any]) -> bool:
        """
        Validate a configuration dictionary.

        Raises:
            ValueError: On missing or invalid parameters

        Returns:
            True if valid
        """
        missing = [key for key in REQUIRED_KEYS if key not in config]
        if missing:
            raise ValueError(f"Missing required parameters: {missing}")

        known = {t.key.lower() for t in Tracer} | {t.name.lower() for t in Tracer}
        tracer_name = str(config['tracer']).lower()
        if tracer_name not in known:
            raise ValueError(f"Unknown tracer {config['tracer']!r}")

        if not config['t_end'] > config['t_start']:
            raise ValueError(f"t_end ({config['t_end']}) must exceed t_start ({config['t_start']})")
        if int(config['n_outputs']) < 2:
            raise ValueError(f"n_outputs must be at least 2, got {config['n_outputs']}")

        for key in POSITIVE_KEYS:
            if config.get(key) is not None and not config[key] > 0:
                raise ValueError(f"{key} must be positive, got {config[key]}")
        for key in NON_NEGATIVE_KEYS:
            if config.get(key) is not None and config[key] < 0:
                raise ValueError(f"{key} must be non-negative, got {config[key]}")

        tracer = Tracer.from_name(tracer_name)
        if not tracer.steady and tracer is not Tracer.BOOL and not config.get('history_file'):
            raise ValueError(f"Tracer {tracer.key} needs a history_file")

        return True
