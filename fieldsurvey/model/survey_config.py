"""Survey design parameters.

The parameters of one survey design run are read from a TOML file (see
``survey_config.toml`` at the repo root) into an immutable SurveyConfig.
"""

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import tomli

from fieldsurvey.scripts.parameter import (
    admin_levels,
    default_balancing_variables,
    default_cropland_classes,
    default_max_distance_m,
    default_population_divisor,
    default_sample_fraction,
    default_seed,
    default_tile_size_m,
)

logger = logging.getLogger("fieldsurvey.config")


@dataclass(frozen=True)
class SurveyConfig:
    """Parameters of a survey design run."""

    # [sampling]
    population_divisor: float = default_population_divisor
    sample_fraction: float = default_sample_fraction
    seed: int = default_seed
    sampling_method: str = "balanced"
    balancing_variables: Tuple[str, ...] = default_balancing_variables
    weights_column: Optional[str] = None

    # [mask]
    cropland_classes: Tuple[int, ...] = default_cropland_classes
    max_distance_m: float = default_max_distance_m

    # [grid]
    tile_size_m: float = default_tile_size_m

    # [admin]
    admin_fields: Dict[str, str] = field(
        default_factory=lambda: {level: level for level in admin_levels}
    )

    # [paths]
    landcover_path: Optional[Path] = None
    distance_path: Optional[Path] = None
    admin_path: Optional[Path] = None
    output_csv: Optional[Path] = None
    output_geojson: Optional[Path] = None
    covariate_paths: Dict[str, Path] = field(default_factory=dict)

    def __post_init__(self):
        errors = self.validate()
        if errors:
            raise ValueError("; ".join(errors))

    def validate(self):
        """Return a list of parameter errors (empty if valid)."""
        errors = []
        if not self.population_divisor > 0:
            errors.append("population_divisor must be greater than 0")
        if not (math.isfinite(self.sample_fraction) and self.sample_fraction >= 0):
            errors.append("sample_fraction must be a non-negative number")
        if not (math.isfinite(self.tile_size_m) and self.tile_size_m > 0):
            errors.append("tile_size_m must be greater than 0")
        if not self.max_distance_m >= 0:
            errors.append("max_distance_m must not be negative")
        if not self.cropland_classes:
            errors.append("cropland_classes must list at least one class")
        return errors

    def raster_paths(self) -> Dict[str, Path]:
        """Layer name to path, land cover first (reference grid)."""
        if self.landcover_path is None or self.distance_path is None:
            raise ValueError("Both landcover and distance raster paths are required")
        paths = {"landcover": self.landcover_path, "distance": self.distance_path}
        paths.update(self.covariate_paths)
        return paths


def _resolve(base: Path, value: Optional[str]) -> Optional[Path]:
    if not value:
        return None
    path = Path(value).expanduser()
    return path if path.is_absolute() else base / path


def config_from_dict(data: Dict[str, Any], base_dir: Union[str, Path] = ".") -> SurveyConfig:
    """Build a SurveyConfig from parsed TOML tables.

    Args:
        data: Parsed TOML document
        base_dir: Directory relative paths are resolved against

    Returns:
        SurveyConfig

    Raises:
        ValueError: If a value is out of range
    """
    base = Path(base_dir)
    sampling = data.get("sampling", {})
    mask = data.get("mask", {})
    grid = data.get("grid", {})
    admin = data.get("admin", {})
    paths = data.get("paths", {})

    admin_fields = {
        level: admin.get(f"{level}_field", level) for level in admin_levels
    }
    covariate_paths = {
        name: _resolve(base, value) for name, value in paths.get("covariates", {}).items()
    }
    balancing = tuple(sampling.get("balancing_variables", default_balancing_variables))
    for name in covariate_paths:
        if name in ("landcover", "distance"):
            raise ValueError(f"Covariate name '{name}' is reserved")

    return SurveyConfig(
        population_divisor=sampling.get("population_divisor", default_population_divisor),
        sample_fraction=sampling.get("sample_fraction", default_sample_fraction),
        seed=int(sampling.get("seed", default_seed)),
        sampling_method=sampling.get("method", "balanced"),
        balancing_variables=balancing,
        weights_column=sampling.get("weights_column") or None,
        cropland_classes=tuple(int(c) for c in mask.get("cropland_classes", default_cropland_classes)),
        max_distance_m=float(mask.get("max_distance_m", default_max_distance_m)),
        tile_size_m=float(grid.get("tile_size_m", default_tile_size_m)),
        admin_fields=admin_fields,
        landcover_path=_resolve(base, paths.get("landcover")),
        distance_path=_resolve(base, paths.get("distance")),
        admin_path=_resolve(base, paths.get("admin_boundaries")),
        output_csv=_resolve(base, paths.get("output_csv")),
        output_geojson=_resolve(base, paths.get("output_geojson")),
        covariate_paths=covariate_paths,
    )


def load_survey_config(cfg_path: Union[str, Path]) -> SurveyConfig:
    """Read survey parameters from a TOML file.

    Relative paths in the [paths] table are resolved against the
    directory of the file.

    Raises:
        FileNotFoundError: If the file does not exist
        tomli.TOMLDecodeError: If the file is not valid TOML
    """
    cfg_path = Path(cfg_path)
    if not cfg_path.is_file():
        raise FileNotFoundError(f"Survey config not found at {cfg_path}")

    with cfg_path.open("rb") as f:
        data = tomli.load(f)

    config = config_from_dict(data, base_dir=cfg_path.parent)
    logger.info(
        f"Loaded survey config from {cfg_path}: k={config.population_divisor}, "
        f"f={config.sample_fraction}, seed={config.seed}"
    )
    return config
