"""Sampling strategies module.

Each sampling method is implemented as a Strategy class that handles:
- Input validation
- Inclusion probabilities
- Sample selection and balance diagnostics

Usage:
    from fieldsurvey.sampling import SamplingInputs, SamplingMethod, SamplingService

    inputs = SamplingInputs(SamplingMethod.BALANCED, population, sample_size=63, seed=6405)
    design = SamplingService.draw(inputs)
"""

from fieldsurvey.sampling.base import SamplingStrategy
from fieldsurvey.sampling.service import SamplingService, get_sampling_strategy
from fieldsurvey.sampling.types import (
    Population,
    SampleDesign,
    SamplingInputs,
    SamplingMethod,
)

__all__ = [
    "SamplingStrategy",
    "SamplingMethod",
    "Population",
    "SamplingInputs",
    "SampleDesign",
    "SamplingService",
    "get_sampling_strategy",
]
