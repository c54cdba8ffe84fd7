"""Geospatial helpers for the survey table.

Contains functions for reprojection, administrative lookup and export of
the sampled points.
"""

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple, Union

import geopandas as gpd
import numpy as np
import pandas as pd
from pyproj import CRS
from shapely.geometry import Point

from fieldsurvey.exceptions import UnmatchedRegion
from fieldsurvey.scripts.parameter import (
    admin_levels,
    target_crs_str,
    unmatched_placeholder,
    vector_extensions,
)

logger = logging.getLogger("fieldsurvey.geospatial")


def default_admin_fields() -> Dict[str, str]:
    """Map every administrative level to a column of the same name."""
    return {level: level for level in admin_levels}


def is_vector_file(file_path: Union[str, Path]) -> bool:
    """Check if file is a supported vector format."""
    return Path(file_path).suffix.lower() in vector_extensions


def read_admin_boundaries(
    file_path: Union[str, Path], fields: Optional[Mapping[str, str]] = None
) -> gpd.GeoDataFrame:
    """Read administrative polygons and check the name columns exist.

    Args:
        file_path: Path to a vector file of polygons
        fields: Mapping of level (region/district/ward) to column name

    Returns:
        GeoDataFrame of the polygons

    Raises:
        ValueError: If the format is not supported, the file is empty or a
            name column is missing
    """
    fields = dict(fields or default_admin_fields())
    if not is_vector_file(file_path):
        raise ValueError(f"Unsupported file format: {Path(file_path).suffix.lower()}")

    gdf = gpd.read_file(file_path)
    if len(gdf) == 0:
        raise ValueError("Administrative boundary file contains no features")

    missing = [field for field in fields.values() if field not in gdf.columns]
    if missing:
        raise ValueError(f"Administrative boundaries are missing columns: {missing}")

    logger.info(f"Read {len(gdf)} administrative polygons from {file_path}")
    return gdf


def _as_crs(crs) -> Optional[CRS]:
    if crs is None:
        return None
    return CRS.from_user_input(crs)


def _admin_in_crs(admin_gdf: gpd.GeoDataFrame, crs) -> gpd.GeoDataFrame:
    target = _as_crs(crs)
    if target is None or admin_gdf.crs is None or admin_gdf.crs == target:
        return admin_gdf
    return admin_gdf.to_crs(target)


def to_geographic(x, y, crs) -> Tuple[np.ndarray, np.ndarray]:
    """Convert projected coordinates to longitude/latitude (EPSG:4326).

    Args:
        x: Eastings
        y: Northings
        crs: CRS of the input coordinates; None or a geographic CRS
            returns the input unchanged

    Returns:
        Tuple of (longitude, latitude) arrays
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    source = _as_crs(crs)
    if x.size == 0:
        return x, y
    if source is None:
        logger.warning(
            "Points have no CRS; coordinates are written as longitude/latitude unchanged"
        )
        return x, y
    if source.is_geographic:
        return x, y

    points = gpd.GeoSeries(gpd.points_from_xy(x, y), crs=source).to_crs(target_crs_str)
    return points.x.to_numpy(), points.y.to_numpy()


def lookup_admin_region(
    x: float,
    y: float,
    admin_gdf: gpd.GeoDataFrame,
    fields: Optional[Mapping[str, str]] = None,
    crs=None,
) -> Dict[str, object]:
    """Find the administrative names of the polygon containing a point.

    Args:
        x: Point easting
        y: Point northing
        admin_gdf: Administrative polygons
        fields: Mapping of level (region/district/ward) to column name
        crs: CRS of the point; polygons are reprojected to it

    Returns:
        Dictionary of level to name

    Raises:
        UnmatchedRegion: If no polygon contains the point
    """
    fields = dict(fields or default_admin_fields())
    admin = _admin_in_crs(admin_gdf, crs)

    hits = admin[admin.geometry.intersects(Point(x, y))]
    if hits.empty:
        raise UnmatchedRegion((x, y))

    row = hits.iloc[0]
    return {level: row[field] for level, field in fields.items()}


def assign_admin_regions(
    points: pd.DataFrame,
    admin_gdf: gpd.GeoDataFrame,
    fields: Optional[Mapping[str, str]] = None,
    crs=None,
) -> pd.DataFrame:
    """Attach administrative names to many points with a spatial join.

    Points outside every polygon get the "unmatched" placeholder instead
    of failing the run. A point on a shared border takes the first
    polygon.

    Args:
        points: DataFrame with x and y columns
        admin_gdf: Administrative polygons
        fields: Mapping of level (region/district/ward) to column name
        crs: CRS of the points

    Returns:
        DataFrame with one column per level, aligned with ``points``
    """
    fields = dict(fields or default_admin_fields())
    levels: List[str] = list(fields.keys())

    if len(points) == 0:
        return pd.DataFrame({level: pd.Series(dtype=object) for level in levels})

    admin = _admin_in_crs(admin_gdf, crs)
    names = gpd.GeoDataFrame(
        {level: admin[field].to_numpy() for level, field in fields.items()},
        geometry=admin.geometry.to_numpy(),
        crs=admin.crs,
    )

    points_gdf = gpd.GeoDataFrame(
        {"point_id": np.arange(len(points))},
        geometry=gpd.points_from_xy(points["x"], points["y"]),
        crs=_as_crs(crs) if crs is not None else admin.crs,
    )

    joined = gpd.sjoin(points_gdf, names, how="left", predicate="intersects")
    joined = joined.sort_values(["point_id", "index_right"]).drop_duplicates(
        subset="point_id", keep="first"
    )

    result = pd.DataFrame(
        {level: joined[level].to_numpy(dtype=object) for level in levels},
        index=points.index,
    )

    unmatched = result[levels].isna().all(axis=1)
    if unmatched.any():
        for x, y in points.loc[unmatched, ["x", "y"]].itertuples(index=False):
            logger.warning(str(UnmatchedRegion((x, y))))
        logger.warning(
            f"{int(unmatched.sum())} of {len(points)} points matched no administrative "
            f"polygon; labelled '{unmatched_placeholder}'"
        )
        result.loc[unmatched, levels] = unmatched_placeholder

    return result


def export_points_to_csv(
    points_df: pd.DataFrame, file_path: Optional[Union[str, Path]] = None
) -> str:
    """Export points to CSV format.

    Args:
        points_df: DataFrame with sample points
        file_path: Optional output path

    Returns:
        CSV string
    """
    csv_text = points_df.to_csv(index=False)
    if file_path is not None:
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        Path(file_path).write_text(csv_text)
        logger.info(f"Wrote {len(points_df)} points to {file_path}")
    return csv_text


def export_points_to_geojson(
    points_df: pd.DataFrame, file_path: Optional[Union[str, Path]] = None
) -> str:
    """Export points to GeoJSON format.

    Args:
        points_df: DataFrame with longitude and latitude columns
        file_path: Optional output path

    Returns:
        GeoJSON string
    """
    gdf = gpd.GeoDataFrame(
        points_df,
        geometry=gpd.points_from_xy(points_df.longitude, points_df.latitude),
        crs=target_crs_str,
    )
    geojson = gdf.to_json()
    if file_path is not None:
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        Path(file_path).write_text(geojson)
        logger.info(f"Wrote {len(points_df)} points to {file_path}")
    return geojson
