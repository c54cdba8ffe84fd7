"""Survey design pipeline.

Runs the full sequence for one region of interest: read the layers, build
the eligibility mask and population, draw the balanced sample, label the
points and export the field table. Every step takes its inputs as
arguments and returns new objects.
"""

import logging
from typing import Mapping, Optional

import geopandas as gpd
import pandas as pd

from fieldsurvey.model.survey_config import SurveyConfig
from fieldsurvey.sampling.service import SamplingService
from fieldsurvey.sampling.types import Population, SampleDesign
from fieldsurvey.scripts.geospatial import (
    assign_admin_regions,
    export_points_to_csv,
    export_points_to_geojson,
    read_admin_boundaries,
    to_geographic,
)
from fieldsurvey.scripts.grid_id import encode_grid_ids
from fieldsurvey.scripts.mask import population_from_stack, read_aligned_layers
from fieldsurvey.scripts.parameter import (
    admin_levels,
    default_tile_size_m,
    output_columns,
    unmatched_placeholder,
)

logger = logging.getLogger("fieldsurvey.processing")


def build_sample_table(
    population: Population,
    design: SampleDesign,
    admin_gdf: Optional[gpd.GeoDataFrame] = None,
    tile_size: float = default_tile_size_m,
    admin_fields: Optional[Mapping[str, str]] = None,
) -> pd.DataFrame:
    """Build the field table of the sampled points.

    Args:
        population: Population the design was drawn from
        design: Selected sample
        admin_gdf: Administrative polygons; without them every point is
            labelled "unmatched"
        tile_size: Grid ID tile size in map units
        admin_fields: Mapping of level to column of ``admin_gdf``; levels
            left out are labelled "unmatched"

    Returns:
        DataFrame with columns region, district, ward, grid_id, longitude,
        latitude; one row per sampled point, in population order
    """
    points = design.sample_points(population)

    if admin_gdf is not None:
        names = assign_admin_regions(points, admin_gdf, admin_fields, crs=population.crs)
    else:
        logger.info("No administrative boundaries given; names left unmatched")
        names = pd.DataFrame(
            {level: [unmatched_placeholder] * len(points) for level in admin_levels},
            index=points.index,
        )

    for level in admin_levels:
        if level not in names.columns:
            names[level] = unmatched_placeholder

    longitude, latitude = to_geographic(points["x"], points["y"], population.crs)

    table = pd.DataFrame(
        {
            "region": names["region"].to_numpy(),
            "district": names["district"].to_numpy(),
            "ward": names["ward"].to_numpy(),
            "grid_id": encode_grid_ids(points["x"], points["y"], tile_size),
            "longitude": longitude,
            "latitude": latitude,
        }
    )
    return table[list(output_columns)]


def run_survey_design(config: SurveyConfig) -> pd.DataFrame:
    """Run the survey design described by a config.

    Args:
        config: Survey parameters and file paths

    Returns:
        The field table written to ``config.output_csv``

    Raises:
        GridMismatchError: If the raster layers are not co-registered
        EmptyPopulation: If no pixel is eligible
        InvalidSampleSize: If the computed sample size is out of range
        DegenerateBalancingMatrix: If the balancing variables are collinear
    """
    logger.info("Reading raster layers")
    stack = read_aligned_layers(config.raster_paths())

    population = population_from_stack(
        stack,
        config.cropland_classes,
        config.max_distance_m,
        covariate_names=tuple(config.covariate_paths),
    )
    logger.info(f"Population: {population.size} eligible units")

    design = SamplingService.draw_from_config(config, population)

    admin_gdf = None
    if config.admin_path is not None:
        admin_gdf = read_admin_boundaries(config.admin_path, config.admin_fields)

    table = build_sample_table(
        population,
        design,
        admin_gdf=admin_gdf,
        tile_size=config.tile_size_m,
        admin_fields=config.admin_fields,
    )

    if config.output_csv is not None:
        export_points_to_csv(table, config.output_csv)
    if config.output_geojson is not None:
        export_points_to_geojson(table, config.output_geojson)

    logger.info(f"Survey design complete: {len(table)} points")
    return table
