"""Sampling service for orchestrating sample draws.

This module provides the main entry points for the pipeline to interact
with the sampling strategies.
"""

import logging
from typing import Dict, Type

from fieldsurvey.sampling.balanced import BalancedSamplingStrategy
from fieldsurvey.sampling.base import SamplingStrategy
from fieldsurvey.sampling.simple import SimpleSamplingStrategy
from fieldsurvey.sampling.types import (
    Population,
    SampleDesign,
    SamplingInputs,
    SamplingMethod,
)
from fieldsurvey.scripts.cube import target_sample_size

logger = logging.getLogger("fieldsurvey.sampling.service")

# Registry of available strategies
_STRATEGY_REGISTRY: Dict[SamplingMethod, Type[SamplingStrategy]] = {
    SamplingMethod.BALANCED: BalancedSamplingStrategy,
    SamplingMethod.SIMPLE: SimpleSamplingStrategy,
}

# Cached strategy instances (strategies hold no state)
_strategy_instances: Dict[SamplingMethod, SamplingStrategy] = {}


def get_sampling_strategy(method: SamplingMethod) -> SamplingStrategy:
    """Get the sampling strategy for a given method.

    Args:
        method: The sampling method

    Returns:
        The corresponding SamplingStrategy instance

    Raises:
        ValueError: If the method is not supported
    """
    if method not in _STRATEGY_REGISTRY:
        raise ValueError(f"Unsupported sampling method: {method}")

    if method not in _strategy_instances:
        _strategy_instances[method] = _STRATEGY_REGISTRY[method]()

    return _strategy_instances[method]


def get_strategy_from_string(method_str: str) -> SamplingStrategy:
    """Get sampling strategy from string method name (e.g. "balanced")."""
    method = SamplingMethod.from_string(method_str)
    return get_sampling_strategy(method)


class SamplingService:
    """High-level service for drawing survey samples."""

    @staticmethod
    def create_inputs_from_config(config, population: Population) -> SamplingInputs:
        """Create SamplingInputs from survey parameters.

        Args:
            config: SurveyConfig with the sampling section
            population: Eligible population

        Returns:
            SamplingInputs with n computed from the population divisor and
            sample fraction
        """
        sample_size = target_sample_size(
            population.size,
            population_divisor=config.population_divisor,
            sample_fraction=config.sample_fraction,
        )
        logger.info(
            f"Target sample size: round({population.size} / {config.population_divisor} "
            f"* {config.sample_fraction}) = {sample_size}"
        )

        return SamplingInputs(
            sampling_method=SamplingMethod.from_string(config.sampling_method),
            population=population,
            sample_size=sample_size,
            seed=config.seed,
            balancing_variables=tuple(config.balancing_variables),
            weights_column=config.weights_column or None,
        )

    @staticmethod
    def draw(inputs: SamplingInputs) -> SampleDesign:
        """Draw a sample using the appropriate strategy.

        Raises:
            EmptyPopulation, InvalidSampleSize, DegenerateBalancingMatrix,
            ValueError: propagated from the strategy
        """
        strategy = get_sampling_strategy(inputs.sampling_method)
        return strategy.draw(inputs)

    @staticmethod
    def draw_from_config(config, population: Population) -> SampleDesign:
        """Create inputs from the config and draw the sample."""
        inputs = SamplingService.create_inputs_from_config(config, population)
        return SamplingService.draw(inputs)

    @staticmethod
    def get_available_methods() -> list:
        """Get list of available sampling methods.

        Returns:
            List of (method_value, display_name, description) tuples
        """
        methods = []
        for method in SamplingMethod:
            strategy = get_sampling_strategy(method)
            methods.append((method.value, strategy.display_name, strategy.description))
        return methods
