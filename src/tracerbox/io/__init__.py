"""Input/output handlers for tracerbox."""

from .config_manager import ConfigManager
from .data_handler import DataHandler
from .source_data import read_iodine129_history, read_transient_tracer_histories

__all__ = [
    "ConfigManager",
    "DataHandler",
    "read_iodine129_history",
    "read_transient_tracer_histories",
]
