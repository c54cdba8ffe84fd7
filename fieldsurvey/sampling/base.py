"""Base class for sampling strategies.

Defines the interface that all sampling strategies must implement.
"""

import logging
from abc import ABC, abstractmethod
from typing import List

from fieldsurvey.exceptions import EmptyPopulation
from fieldsurvey.sampling.types import SampleDesign, SamplingInputs, SamplingMethod
from fieldsurvey.scripts.cube import check_sample_size

logger = logging.getLogger("fieldsurvey.sampling")


class SamplingStrategy(ABC):
    """Abstract base class for sampling strategies.

    Each sampling method (balanced, simple) implements this interface.
    """

    @property
    @abstractmethod
    def method(self) -> SamplingMethod:
        """Return the sampling method this strategy handles."""
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name for this sampling method."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Description of when to use this sampling method."""
        pass

    @property
    def supports_balancing(self) -> bool:
        """Whether this method balances on auxiliary variables."""
        return False

    @abstractmethod
    def validate_inputs(self, inputs: SamplingInputs) -> List[str]:
        """Validate method-specific inputs.

        Args:
            inputs: Sampling inputs to validate

        Returns:
            List of validation error messages (empty if valid)
        """
        pass

    @abstractmethod
    def select(self, inputs: SamplingInputs) -> SampleDesign:
        """Draw the sample from validated inputs."""
        pass

    def draw(self, inputs: SamplingInputs) -> SampleDesign:
        """Validate inputs and draw the sample.

        Args:
            inputs: Sampling inputs

        Returns:
            SampleDesign with the selected indices

        Raises:
            EmptyPopulation: If the population has no unit
            InvalidSampleSize: If the sample size is out of range
            ValueError: If method-specific inputs are invalid
        """
        self._validate_common_inputs(inputs)

        errors = self.validate_inputs(inputs)
        if errors:
            raise ValueError("; ".join(errors))

        design = self.select(inputs)
        logger.info(
            f"{self.display_name}: selected {design.sample_size} of "
            f"{design.population_size} units (seed={design.seed})"
        )
        return design

    def is_ready(self, inputs: SamplingInputs) -> bool:
        """Check if inputs are ready for sampling."""
        try:
            self._validate_common_inputs(inputs)
        except ValueError:
            return False
        return len(self.validate_inputs(inputs)) == 0

    def _validate_common_inputs(self, inputs: SamplingInputs) -> None:
        """Check population and sample size; raises typed errors."""
        if inputs.population.size == 0:
            raise EmptyPopulation()
        check_sample_size(inputs.sample_size, inputs.population.size)
