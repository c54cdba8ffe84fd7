# File containing shared parameters for survey design
raster_extensions = (
    ".tif",
    ".tiff",
    ".img",
    ".vrt",
)

vector_extensions = (
    ".shp",
    ".gpkg",
    ".geojson",
    ".json",
)

# Output coordinates for the field table
target_crs_epsg = 4326
target_crs_str = f"EPSG:{target_crs_epsg}"

# Sample size: n = round(N / population_divisor * sample_fraction)
default_population_divisor = 16
default_sample_fraction = 0.1
default_seed = 6405

default_balancing_variables = ("x", "y")

# Eligibility thresholds
default_cropland_classes = (40,)
default_max_distance_m = 2000.0

# Grid ID tiles
default_tile_size_m = 10000.0

# Administrative lookup
admin_levels = ("region", "district", "ward")
unmatched_placeholder = "unmatched"

# Field table layout
output_columns = ("region", "district", "ward", "grid_id", "longitude", "latitude")

# Numerical tolerances of the cube method
decision_tolerance = 1e-9
probability_sum_tolerance = 1e-6
