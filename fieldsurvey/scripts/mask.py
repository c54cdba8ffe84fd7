"""Eligibility mask and candidate population.

Contains functions to read co-registered raster layers, derive the
eligible pixels of the region of interest and turn them into a
sampling population.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd
import rasterio
from rasterio.crs import CRS
from rasterio.transform import Affine, xy

from fieldsurvey.exceptions import GridMismatchError
from fieldsurvey.sampling.types import Population
from fieldsurvey.scripts.parameter import raster_extensions

logger = logging.getLogger("fieldsurvey.mask")


@dataclass(frozen=True, eq=False)
class RasterStack:
    """Single-band layers sharing one grid.

    ``valid`` is False wherever any layer holds its nodata value (or a
    non-finite value for float layers).
    """

    layers: Dict[str, np.ndarray]
    valid: np.ndarray
    transform: Affine
    crs: Optional[CRS] = None

    @property
    def shape(self):
        return self.valid.shape

    def __getitem__(self, name: str) -> np.ndarray:
        return self.layers[name]


def _valid_pixels(data: np.ndarray, nodata) -> np.ndarray:
    valid = np.ones(data.shape, dtype=bool)
    if nodata is not None and not (isinstance(nodata, float) and np.isnan(nodata)):
        valid &= data != nodata
    if np.issubdtype(data.dtype, np.floating):
        valid &= np.isfinite(data)
    return valid


def is_raster_file(file_path: Union[str, Path]) -> bool:
    """Check if file is a supported raster format."""
    return Path(file_path).suffix.lower() in raster_extensions


def read_aligned_layers(paths: Mapping[str, Union[str, Path]]) -> RasterStack:
    """Read single-band rasters that must share CRS, transform and shape.

    Args:
        paths: Mapping of layer name to raster path; the first layer is
            the reference grid

    Returns:
        RasterStack with band 1 of every layer

    Raises:
        GridMismatchError: If a layer is not co-registered with the first
        ValueError: If no path is given or a file is not a raster
    """
    if not paths:
        raise ValueError("At least one raster layer is required")
    for name, path in paths.items():
        if not is_raster_file(path):
            raise ValueError(
                f"Layer '{name}' has unsupported file format: {Path(path).suffix.lower()}"
            )

    layers: Dict[str, np.ndarray] = {}
    valid = None
    reference = None

    for name, path in paths.items():
        with rasterio.open(path) as raster:
            data = raster.read(1)

            if reference is None:
                reference = (name, raster.crs, raster.transform, data.shape)
                valid = np.ones(data.shape, dtype=bool)
            else:
                ref_name, ref_crs, ref_transform, ref_shape = reference
                if data.shape != ref_shape:
                    raise GridMismatchError(
                        name, f"shape {data.shape} differs from '{ref_name}' {ref_shape}"
                    )
                if raster.crs != ref_crs:
                    raise GridMismatchError(
                        name, f"CRS {raster.crs} differs from '{ref_name}' {ref_crs}"
                    )
                if not np.allclose(
                    tuple(raster.transform)[:6], tuple(ref_transform)[:6], rtol=0.0, atol=1e-6
                ):
                    raise GridMismatchError(
                        name, f"transform differs from '{ref_name}' (extent or resolution)"
                    )

            valid &= _valid_pixels(data, raster.nodata)
            layers[name] = data
            logger.debug(f"Read layer '{name}' {data.shape} {data.dtype} from {path}")

    _, crs, transform, _ = reference
    if crs is not None and crs.is_geographic:
        logger.warning(
            f"Layers use geographic CRS {crs}; grid IDs expect projected coordinates in meters"
        )

    return RasterStack(layers=layers, valid=valid, transform=transform, crs=crs)


def check_coregistered(layers: Mapping[str, np.ndarray]) -> None:
    """Check that in-memory layers share one shape.

    Raises:
        GridMismatchError: Naming the first layer whose shape differs
    """
    reference = None
    for name, data in layers.items():
        shape = np.shape(data)
        if reference is None:
            reference = (name, shape)
        elif shape != reference[1]:
            raise GridMismatchError(
                name, f"shape {shape} differs from '{reference[0]}' {reference[1]}"
            )


def build_eligibility_mask(
    landcover: np.ndarray,
    distance: np.ndarray,
    cropland_classes: Iterable[int],
    max_distance: float,
    valid: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Flag pixels that are cropland and close enough to built structures.

    A pixel is eligible when its land cover class is one of
    ``cropland_classes`` and its distance to the nearest built structure
    is at most ``max_distance``.

    Args:
        landcover: Land cover class per pixel
        distance: Distance to the nearest built structure per pixel
        cropland_classes: Land cover codes that count as cropland
        max_distance: Distance threshold in map units
        valid: Optional mask of pixels with data in every layer

    Returns:
        Boolean array of eligible pixels

    Raises:
        GridMismatchError: If the arrays do not share one shape
    """
    layers = {"landcover": landcover, "distance": distance}
    if valid is not None:
        layers["valid"] = valid
    check_coregistered(layers)

    eligible = np.isin(landcover, list(cropland_classes))
    with np.errstate(invalid="ignore"):
        eligible &= np.asarray(distance) <= max_distance
    if valid is not None:
        eligible &= np.asarray(valid, dtype=bool)

    logger.info(
        f"Eligible pixels: {int(eligible.sum())} of {eligible.size} "
        f"(classes={list(cropland_classes)}, max distance={max_distance})"
    )
    return eligible


def extract_covariates(
    covariates: Mapping[str, np.ndarray], rows: np.ndarray, cols: np.ndarray
) -> Dict[str, np.ndarray]:
    """Read covariate values at the given pixels."""
    return {name: np.asarray(layer)[rows, cols] for name, layer in covariates.items()}


def mask_to_population(
    mask: np.ndarray,
    transform: Affine,
    crs=None,
    covariates: Optional[Mapping[str, np.ndarray]] = None,
) -> Population:
    """Convert eligible pixels into a sampling population.

    Pixels are taken in row-major order, with their centre coordinates.

    Args:
        mask: Boolean eligibility array
        transform: Affine transform of the grid
        crs: CRS of the grid
        covariates: Optional layers to extract at every eligible pixel

    Returns:
        Population with columns x, y, row, col and one column per covariate

    Raises:
        GridMismatchError: If a covariate layer does not match the mask
    """
    covariates = dict(covariates or {})
    check_coregistered({"mask": mask, **covariates})

    rows, cols = np.nonzero(np.asarray(mask, dtype=bool))
    if rows.size:
        xs, ys = xy(transform, rows, cols, offset="center")
        xs = np.asarray(xs, dtype=np.float64)
        ys = np.asarray(ys, dtype=np.float64)
    else:
        xs = np.empty(0, dtype=np.float64)
        ys = np.empty(0, dtype=np.float64)

    data = {"x": xs, "y": ys, "row": rows.astype(np.int64), "col": cols.astype(np.int64)}
    data.update(extract_covariates(covariates, rows, cols))

    return Population(points=pd.DataFrame(data), crs=crs)


def population_from_stack(
    stack: RasterStack,
    cropland_classes: Iterable[int],
    max_distance: float,
    covariate_names: Sequence[str] = (),
    landcover_layer: str = "landcover",
    distance_layer: str = "distance",
) -> Population:
    """Build the eligibility mask of a stack and return its population."""
    mask = build_eligibility_mask(
        stack[landcover_layer],
        stack[distance_layer],
        cropland_classes,
        max_distance,
        valid=stack.valid,
    )
    covariates = {name: stack[name] for name in covariate_names}
    return mask_to_population(mask, stack.transform, stack.crs, covariates)
