# fieldsurvey/__init__.py

# Balanced spatial sampling of field-survey locations.

from fieldsurvey.exceptions import (
    DegenerateBalancingMatrix,
    EmptyPopulation,
    GridMismatchError,
    InvalidSampleSize,
    SamplingError,
    UnmatchedRegion,
)
from fieldsurvey.sampling import (
    Population,
    SampleDesign,
    SamplingInputs,
    SamplingMethod,
    SamplingService,
)
from fieldsurvey.scripts.cube import cube_sample, inclusion_probabilities, target_sample_size
from fieldsurvey.scripts.grid_id import encode_grid_id

__version__ = "0.1.0"

__all__ = [
    "SamplingError",
    "InvalidSampleSize",
    "EmptyPopulation",
    "DegenerateBalancingMatrix",
    "GridMismatchError",
    "UnmatchedRegion",
    "Population",
    "SampleDesign",
    "SamplingInputs",
    "SamplingMethod",
    "SamplingService",
    "cube_sample",
    "inclusion_probabilities",
    "target_sample_size",
    "encode_grid_id",
]
