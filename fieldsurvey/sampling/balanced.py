"""Balanced sampling strategy implementation.

Balanced sampling (cube method) selects a sample whose Horvitz-Thompson
estimates of the balancing variables match their population totals, while
keeping the requested inclusion probabilities. Balancing on the x and y
coordinates spreads the survey points over the region of interest.
"""

import logging
from typing import List

import numpy as np

from fieldsurvey.sampling.base import SamplingStrategy
from fieldsurvey.sampling.types import SampleDesign, SamplingInputs, SamplingMethod
from fieldsurvey.scripts.calc_utils import calculate_balance_diagnostics
from fieldsurvey.scripts.cube import cube_sample, inclusion_probabilities

logger = logging.getLogger("fieldsurvey.sampling.balanced")


class BalancedSamplingStrategy(SamplingStrategy):
    """Strategy for balanced sampling with the cube method.

    Balanced sampling is ideal when:
    - Survey points must be well spread over the region of interest
    - Auxiliary covariates (slope, distance to roads) are known everywhere
    - Unequal inclusion probabilities are needed
    """

    @property
    def method(self) -> SamplingMethod:
        return SamplingMethod.BALANCED

    @property
    def display_name(self) -> str:
        return "Balanced Sampling (cube method)"

    @property
    def description(self) -> str:
        return (
            "Select points with fixed inclusion probabilities while balancing "
            "on the coordinates and optional covariates."
        )

    @property
    def supports_balancing(self) -> bool:
        return True

    def validate_inputs(self, inputs: SamplingInputs) -> List[str]:
        """Validate inputs for balanced sampling."""
        errors = []
        columns = set(inputs.population.points.columns)

        missing = [v for v in inputs.balancing_variables if v not in columns]
        if missing:
            errors.append(f"Balancing variables not found in population: {missing}")
        if len(set(inputs.balancing_variables)) != len(inputs.balancing_variables):
            errors.append("Balancing variables must not repeat")

        if inputs.weights_column and inputs.weights_column not in columns:
            errors.append(f"Weights column '{inputs.weights_column}' not found in population")
        if inputs.weights_column and inputs.weights is not None:
            errors.append("Give either a weights column or a weights array, not both")
        if inputs.weights is not None and len(inputs.weights) != inputs.population.size:
            errors.append("Weights must have one value per population unit")

        return errors

    def _weights(self, inputs: SamplingInputs):
        if inputs.weights_column:
            return inputs.population.points[inputs.weights_column].to_numpy(dtype=np.float64)
        return inputs.weights

    def select(self, inputs: SamplingInputs) -> SampleDesign:
        """Draw a balanced sample."""
        population = inputs.population
        pik = inclusion_probabilities(
            inputs.sample_size,
            population_size=population.size,
            weights=self._weights(inputs),
        )

        variables = tuple(inputs.balancing_variables)
        balancing = population.balancing_matrix(variables) if variables else None

        indices = cube_sample(pik, balancing=balancing, seed=inputs.seed)

        balance = calculate_balance_diagnostics(
            balancing if balancing is not None else np.ones((population.size, 1)),
            pik,
            indices,
            variables if variables else ("size",),
        )
        for row in balance.itertuples():
            logger.debug(
                f"Balance on {row.variable}: relative error {row.relative_error:.2e}"
            )

        return SampleDesign(
            sampling_method=self.method,
            indices=indices,
            inclusion_probabilities=pik,
            seed=inputs.seed,
            population_size=population.size,
            balancing_variables=variables,
            balance=balance,
        )
