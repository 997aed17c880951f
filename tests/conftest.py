"""Pytest configuration and fixtures for tracerbox tests."""

import pytest
import numpy as np

from tracerbox import BoxGrid, BoxModel, Q_


@pytest.fixture(scope="session")
def random_seed():
    """Set random seed for reproducibility."""
    np.random.seed(42)
    return 42


@pytest.fixture
def grid():
    """Default 3 × 3 grid with two boundary boxes."""
    return BoxGrid()


@pytest.fixture
def standard_model():
    """Standard three-cell configuration."""
    return BoxModel.standard(
        psi_abyssal=20.0,
        psi_intermediate=10.0,
        vertical_exchange=5.0,
        boundary_exchange=20.0,
    )


@pytest.fixture
def matrices(standard_model):
    """Transport and boundary matrices of the standard configuration."""
    return standard_model.transport_matrix(), standard_model.boundary_matrix()


@pytest.fixture
def random_field(grid, random_seed):
    """Random dimensionless tracer field on the default grid."""
    return Q_(np.random.rand(*grid.shape), "dimensionless")

