"""Type definitions for sampling strategies.

Contains data classes that define the inputs and outputs for all sampling methods.
Every object is built once and not modified afterwards.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from fieldsurvey.scripts.parameter import default_balancing_variables, default_seed


class SamplingMethod(Enum):
    """Available sampling methods."""

    BALANCED = "balanced"
    SIMPLE = "simple"

    @classmethod
    def from_string(cls, value: str) -> "SamplingMethod":
        """Convert string to SamplingMethod enum."""
        for method in cls:
            if method.value == value.lower():
                return method
        raise ValueError(f"Unknown sampling method: {value}")


@dataclass(frozen=True, eq=False)
class Population:
    """Eligible candidate points of the region of interest.

    ``points`` holds one row per unit with planar ``x`` and ``y`` columns
    (projected CRS), usually the source pixel ``row`` and ``col``, and any
    covariate columns. Row order is the population order used by the
    samplers.
    """

    points: pd.DataFrame
    crs: Optional[Any] = None

    def __post_init__(self):
        missing = {"x", "y"} - set(self.points.columns)
        if missing:
            raise ValueError(f"Population is missing coordinate columns: {sorted(missing)}")
        object.__setattr__(self, "points", self.points.reset_index(drop=True).copy())

    @classmethod
    def from_coordinates(
        cls, x: Sequence[float], y: Sequence[float], crs: Optional[Any] = None, **covariates
    ) -> "Population":
        """Build a population from coordinate arrays and optional covariates."""
        data = {"x": np.asarray(x, dtype=np.float64), "y": np.asarray(y, dtype=np.float64)}
        data.update({name: np.asarray(values) for name, values in covariates.items()})
        return cls(points=pd.DataFrame(data), crs=crs)

    def __len__(self) -> int:
        return len(self.points)

    @property
    def size(self) -> int:
        return len(self.points)

    @property
    def coordinates(self) -> np.ndarray:
        """(N, 2) array of x, y."""
        return self.points[["x", "y"]].to_numpy(dtype=np.float64)

    def balancing_matrix(self, variables: Sequence[str]) -> np.ndarray:
        """Return the (N, p) matrix of the given columns."""
        missing = [v for v in variables if v not in self.points.columns]
        if missing:
            raise ValueError(f"Unknown balancing variables: {missing}")
        return self.points[list(variables)].to_numpy(dtype=np.float64)


@dataclass
class SamplingInputs:
    """Input parameters for drawing a sample.

    Each strategy uses only the parameters relevant to it.
    """

    sampling_method: SamplingMethod
    population: Population
    sample_size: int
    seed: int = default_seed

    # Balanced-specific
    balancing_variables: Tuple[str, ...] = default_balancing_variables
    weights_column: Optional[str] = None
    weights: Optional[np.ndarray] = None


@dataclass(frozen=True, eq=False)
class SampleDesign:
    """Result of a sampling draw.

    ``balancing_variables`` are the variables the draw enforced balance on
    (empty for simple random sampling). ``balance`` is a diagnostic table
    and may list more variables than were enforced, so methods can be
    compared on the same coordinates.
    """

    sampling_method: SamplingMethod
    indices: np.ndarray
    inclusion_probabilities: np.ndarray
    seed: int
    population_size: int
    balancing_variables: Tuple[str, ...] = ()
    balance: pd.DataFrame = field(default_factory=pd.DataFrame)

    @property
    def sample_size(self) -> int:
        return int(self.indices.size)

    def sample_points(self, population: Population) -> pd.DataFrame:
        """Rows of the population that were selected, in index order."""
        return population.points.iloc[self.indices].reset_index(drop=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the design to plain Python types."""
        return {
            "sampling_method": self.sampling_method.value,
            "sample_size": self.sample_size,
            "population_size": self.population_size,
            "seed": self.seed,
            "indices": self.indices.tolist(),
            "balancing_variables": list(self.balancing_variables),
            "balance": self.balance.to_dict(orient="records"),
        }
