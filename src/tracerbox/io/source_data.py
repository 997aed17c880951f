"""
Readers for Tabulated Tracer Source Histories.

Two local file formats are supported:

    - MATLAB ``.mat`` compendium of transient tracer histories (CFCs, SF6,
      N2O, ...), one variable per tracer plus a ``Year`` vector
    - CSV table of iodine-129 input to the Nordic Seas, three header rows
      below the column names, then year and value columns

Both return a DataFrame indexed by year (one column per tracer), ready
for ``TabulatedHistory.from_frame``.
"""

import numpy as np
import pandas as pd
from pathlib import Path
from scipy.io import loadmat


def read_transient_tracer_histories(filepath: str) -> pd.DataFrame:
    """
    Read transient tracer source histories from a MATLAB file.

    Args:
        filepath: Path to the ``.mat`` file

    Returns:
        DataFrame indexed by year with one column per tracer
    """
    filepath = Path(filepath)
    if not filepath.is_file():
        raise FileNotFoundError(f"Tracer history file not found: {filepath}")

    contents = loadmat(filepath)
    if 'Year' not in contents:
        raise KeyError(f"{filepath} has no 'Year' variable")
    years = np.ravel(contents['Year']).astype(np.float64)

    columns = {}
    for name, value in contents.items():
        # skip MATLAB header entries and the time axis
        if name.startswith('__') or name == 'Year':
            continue
        data = np.ravel(np.asarray(value, dtype=np.float64))
        if data.size != years.size:
            raise ValueError(
                f"Variable {name!r} has {data.size} entries, 'Year' has {years.size}"
            )
        columns[name] = data

    return pd.DataFrame(columns, index=pd.Index(years, name='Year'))


def read_iodine129_history(filepath: str) -> pd.DataFrame:
    """
    Read the iodine-129 source history from CSV.

    Zero input is prepended at years 0 and 1957, before reprocessing
    releases began.

    Args:
        filepath: Path to the CSV file

    Returns:
        DataFrame indexed by year with a single ``iodine129`` column
    """
    filepath = Path(filepath)
    if not filepath.is_file():
        raise FileNotFoundError(f"Iodine-129 history file not found: {filepath}")

    raw = pd.read_csv(filepath)
    years = pd.to_numeric(raw.iloc[3:, 0], errors='raise').to_numpy(dtype=np.float64)
    values = pd.to_numeric(raw.iloc[3:, 1], errors='raise').to_numpy(dtype=np.float64)

    years = np.concatenate(([0.0, 1957.0], years))
    values = np.concatenate(([0.0, 0.0], values))

    return pd.DataFrame({'iodine129': values}, index=pd.Index(years, name='Year'))
