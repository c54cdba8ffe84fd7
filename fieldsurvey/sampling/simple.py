"""Simple random sampling strategy implementation.

Simple random sampling gives every eligible point an equal probability
of being selected. It serves as the baseline for comparison with
balanced sampling.
"""

import logging
from typing import List

import numpy as np

from fieldsurvey.sampling.base import SamplingStrategy
from fieldsurvey.sampling.types import SampleDesign, SamplingInputs, SamplingMethod
from fieldsurvey.scripts.calc_utils import calculate_balance_diagnostics
from fieldsurvey.scripts.cube import inclusion_probabilities

logger = logging.getLogger("fieldsurvey.sampling.simple")


class SimpleSamplingStrategy(SamplingStrategy):
    """Strategy for simple random sampling without replacement."""

    @property
    def method(self) -> SamplingMethod:
        return SamplingMethod.SIMPLE

    @property
    def display_name(self) -> str:
        return "Simple Random Sampling"

    @property
    def description(self) -> str:
        return (
            "Randomly select points with equal probability. "
            "No spatial spread or covariate balance is enforced."
        )

    def validate_inputs(self, inputs: SamplingInputs) -> List[str]:
        """Validate inputs for simple random sampling."""
        errors = []
        if inputs.weights_column or inputs.weights is not None:
            errors.append("Simple random sampling does not support unequal probabilities")
        return errors

    def select(self, inputs: SamplingInputs) -> SampleDesign:
        """Draw a simple random sample."""
        population = inputs.population
        n = int(inputs.sample_size)
        pik = inclusion_probabilities(n, population_size=population.size)

        rng = np.random.default_rng(inputs.seed)
        indices = np.sort(rng.choice(population.size, size=n, replace=False))

        variables = tuple(
            v for v in inputs.balancing_variables if v in population.points.columns
        )
        balance = calculate_balance_diagnostics(
            population.balancing_matrix(variables) if variables else np.ones((population.size, 1)),
            pik,
            indices,
            variables if variables else ("size",),
        )

        return SampleDesign(
            sampling_method=self.method,
            indices=indices.astype(np.int64),
            inclusion_probabilities=pik,
            seed=inputs.seed,
            population_size=population.size,
            # balance is diagnostic only; nothing is enforced
            balancing_variables=(),
            balance=balance,
        )
