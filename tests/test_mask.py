"""Tests for raster reading, the eligibility mask and population building."""

import numpy as np
import pytest
from rasterio.transform import from_origin

from fieldsurvey.exceptions import GridMismatchError
from fieldsurvey.scripts.mask import (
    build_eligibility_mask,
    check_coregistered,
    mask_to_population,
    population_from_stack,
    read_aligned_layers,
)

TRANSFORM = from_origin(1000.0, 2000.0, 10.0, 10.0)


@pytest.fixture
def layer_paths(tmp_path, write_raster):
    landcover = np.array([[40, 40, 10], [40, 20, 40], [255, 40, 40]], dtype=np.uint8)
    distance = np.array(
        [[100.0, 2500.0, 0.0], [1999.0, 0.0, 2000.0], [0.0, np.nan, 10.0]],
        dtype=np.float32,
    )
    slope = np.arange(9, dtype=np.float32).reshape(3, 3)

    return {
        "landcover": write_raster(tmp_path / "landcover.tif", landcover, TRANSFORM, nodata=255),
        "distance": write_raster(tmp_path / "distance.tif", distance, TRANSFORM),
        "slope": write_raster(tmp_path / "slope.tif", slope, TRANSFORM),
    }


def test_read_aligned_layers(layer_paths):
    stack = read_aligned_layers(layer_paths)

    assert list(stack.layers) == ["landcover", "distance", "slope"]
    assert stack.shape == (3, 3)
    assert stack.crs.to_epsg() == 32736
    assert stack.transform == TRANSFORM
    # nodata in land cover and NaN in distance
    assert not stack.valid[2, 0]
    assert not stack.valid[2, 1]
    assert stack.valid.sum() == 7


def test_shape_mismatch(tmp_path, write_raster, layer_paths):
    paths = dict(layer_paths)
    paths["slope"] = write_raster(
        tmp_path / "small.tif", np.zeros((2, 3), dtype=np.float32), TRANSFORM
    )
    with pytest.raises(GridMismatchError, match="slope"):
        read_aligned_layers(paths)


def test_crs_mismatch(tmp_path, write_raster, layer_paths):
    paths = dict(layer_paths)
    paths["distance"] = write_raster(
        tmp_path / "other_crs.tif",
        np.zeros((3, 3), dtype=np.float32),
        TRANSFORM,
        crs="EPSG:32737",
    )
    with pytest.raises(GridMismatchError) as excinfo:
        read_aligned_layers(paths)
    assert excinfo.value.layer == "distance"


def test_transform_mismatch(tmp_path, write_raster, layer_paths):
    paths = dict(layer_paths)
    paths["slope"] = write_raster(
        tmp_path / "shifted.tif",
        np.zeros((3, 3), dtype=np.float32),
        from_origin(1005.0, 2000.0, 10.0, 10.0),
    )
    with pytest.raises(GridMismatchError, match="transform"):
        read_aligned_layers(paths)


def test_unsupported_raster_format(tmp_path):
    with pytest.raises(ValueError, match="unsupported"):
        read_aligned_layers({"landcover": tmp_path / "landcover.csv"})


def test_no_layers():
    with pytest.raises(ValueError):
        read_aligned_layers({})


def test_build_eligibility_mask():
    landcover = np.array([[40, 40], [10, 41]])
    distance = np.array([[2000.0, 2000.1], [0.0, 5.0]])

    mask = build_eligibility_mask(landcover, distance, [40, 41], 2000.0)

    np.testing.assert_array_equal(mask, [[True, False], [False, True]])


def test_build_eligibility_mask_with_valid_pixels():
    landcover = np.full((2, 2), 40)
    distance = np.zeros((2, 2))
    valid = np.array([[True, False], [True, True]])

    mask = build_eligibility_mask(landcover, distance, [40], 100.0, valid=valid)

    np.testing.assert_array_equal(mask, valid)


def test_build_eligibility_mask_shape_mismatch():
    with pytest.raises(GridMismatchError):
        build_eligibility_mask(np.zeros((2, 2)), np.zeros((2, 3)), [40], 1.0)


def test_check_coregistered():
    check_coregistered({"a": np.zeros((2, 2)), "b": np.ones((2, 2))})
    with pytest.raises(GridMismatchError) as excinfo:
        check_coregistered({"a": np.zeros((2, 2)), "b": np.ones((3, 2))})
    assert excinfo.value.layer == "b"


def test_mask_to_population_uses_pixel_centres():
    mask = np.array([[True, False], [False, True]])

    population = mask_to_population(mask, TRANSFORM, crs="EPSG:32736")

    assert population.size == 2
    np.testing.assert_allclose(population.points["x"], [1005.0, 1015.0])
    np.testing.assert_allclose(population.points["y"], [1995.0, 1985.0])
    assert population.points["row"].tolist() == [0, 1]
    assert population.points["col"].tolist() == [0, 1]
    assert population.crs == "EPSG:32736"


def test_mask_to_population_row_major_order():
    mask = np.ones((2, 3), dtype=bool)
    population = mask_to_population(mask, TRANSFORM)
    assert population.points["row"].tolist() == [0, 0, 0, 1, 1, 1]
    assert population.points["col"].tolist() == [0, 1, 2, 0, 1, 2]


def test_mask_to_population_with_covariates():
    mask = np.array([[False, True], [True, False]])
    slope = np.array([[1.0, 2.0], [3.0, 4.0]])

    population = mask_to_population(mask, TRANSFORM, covariates={"slope": slope})

    assert population.points["slope"].tolist() == [2.0, 3.0]


def test_empty_mask_gives_empty_population():
    population = mask_to_population(np.zeros((3, 3), dtype=bool), TRANSFORM)
    assert population.size == 0
    assert list(population.points.columns) == ["x", "y", "row", "col"]


def test_population_from_stack(layer_paths):
    stack = read_aligned_layers(layer_paths)

    population = population_from_stack(stack, [40], 2000.0, covariate_names=("slope",))

    # eligible: (0,0), (1,0), (1,2), (2,2)
    assert population.points["row"].tolist() == [0, 1, 1, 2]
    assert population.points["col"].tolist() == [0, 0, 2, 2]
    assert population.points["slope"].tolist() == [0.0, 3.0, 5.0, 8.0]
    assert population.crs == stack.crs
