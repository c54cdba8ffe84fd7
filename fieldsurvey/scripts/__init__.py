"""fieldsurvey scripts package.

Contains calculation and processing functions for survey design.
"""

from .calc_utils import (
    calculate_balance_diagnostics,
    horvitz_thompson_total,
)
from .cube import (
    cube_sample,
    flight_phase,
    inclusion_probabilities,
    landing_phase,
    target_sample_size,
)
from .grid_id import (
    encode_grid_id,
    encode_grid_ids,
)

__all__ = [
    # Cube method
    "cube_sample",
    "flight_phase",
    "landing_phase",
    "inclusion_probabilities",
    "target_sample_size",
    # Diagnostics
    "horvitz_thompson_total",
    "calculate_balance_diagnostics",
    # Grid IDs
    "encode_grid_id",
    "encode_grid_ids",
]
