"""Pytest configuration and shared fixtures."""

from pathlib import Path

import numpy as np
import pytest
import rasterio

from fieldsurvey.sampling.types import Population


def _grid_coordinates(side: int, spacing: float = 1.0):
    xs, ys = np.meshgrid(np.arange(side) * spacing, np.arange(side) * spacing)
    return xs.ravel(), ys.ravel()


def _write_raster(path: Path, data: np.ndarray, transform, crs: str = "EPSG:32736", nodata=None) -> Path:
    data = np.asarray(data)
    height, width = data.shape

    profile = {
        "driver": "GTiff",
        "height": height,
        "width": width,
        "count": 1,
        "dtype": data.dtype,
        "transform": transform,
        "crs": crs,
        "nodata": nodata,
    }

    with rasterio.open(path, "w", **profile) as dst:
        dst.write(data, 1)
    return path


@pytest.fixture
def grid_population():
    """Factory for a population on a regular side x side grid."""

    def _make(side: int = 30, spacing: float = 1.0, **covariates) -> Population:
        xs, ys = _grid_coordinates(side, spacing)
        return Population.from_coordinates(xs, ys, **covariates)

    return _make


@pytest.fixture
def write_raster():
    """Write a single-band GeoTIFF and return its path."""
    return _write_raster
