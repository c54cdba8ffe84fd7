"""Exceptions raised while building a population or drawing a sample."""

from typing import Optional, Tuple


class SamplingError(ValueError):
    """Base class for all survey design errors."""


class InvalidSampleSize(SamplingError):
    """Requested sample size is negative, fractional or larger than N."""

    def __init__(self, sample_size, population_size: int):
        self.sample_size = sample_size
        self.population_size = population_size
        super().__init__(
            f"Invalid sample size {sample_size} for a population of {population_size} units"
        )


class EmptyPopulation(SamplingError):
    """The region of interest contains no eligible unit."""

    def __init__(self, message: str = "Population contains no eligible units"):
        super().__init__(message)


class DegenerateBalancingMatrix(SamplingError):
    """Balancing variables have fewer independent columns than declared."""

    def __init__(self, message: str, rank: Optional[int] = None, expected: Optional[int] = None):
        self.rank = rank
        self.expected = expected
        super().__init__(message)


class GridMismatchError(SamplingError):
    """Raster layers are not co-registered (CRS, transform or shape differ)."""

    def __init__(self, layer: str, reason: str):
        self.layer = layer
        self.reason = reason
        super().__init__(f"Layer '{layer}' is not co-registered: {reason}")


class UnmatchedRegion(SamplingError):
    """Point falls outside every administrative polygon."""

    def __init__(self, point: Tuple[float, float]):
        self.point = point
        super().__init__(
            f"Point ({point[0]:.3f}, {point[1]:.3f}) is outside all administrative boundaries"
        )
