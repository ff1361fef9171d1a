"""
# Parameter Space Configuration

This module provides configuration classes for declaring the marginal
distribution of each sampled parameter of a neural ODE, used by Monte Carlo
propagation.

## Classes

- `SampleSpace`: Container for a distribution factory and its parameters
- `SpaceConfig`: Configuration for multiple parameter sampling spaces

## Example Usage

```python
from nodegsa.config.space import SpaceConfig
from nodegsa.utils.distributions import MARGINALS

space_config = SpaceConfig.from_dict(MARGINALS, {
    'u0[1]': ['normal', [2.0, 0.1]],
    'u0[2]': ['uniform', [-0.1, 0.1]]
})

marginals = space_config.get_distributions()
x = marginals['u0[1]'].ppf(0.5)   # 2.0
```
"""

from typing import Callable

from dataclasses import dataclass


@dataclass
class SampleSpace:
    """
    Container for a distribution factory and its parameters.

    Attributes:
        distribution (Callable): Factory returning a frozen SciPy distribution.
        parameters (tuple[float]): Positional arguments for the factory.
    """
    distribution: Callable
    parameters: tuple[float]

    def unpack(self):
        """Return (factory, parameters) ready for instantiation."""
        return (self.distribution, self.parameters)


class SpaceConfig(dict[str, SampleSpace]):
    """
    Configuration for multiple parameter sampling spaces.

    Keys are parameter names (as reported by `NeuralODEModel.names`), values
    are SampleSpace instances. Insertion order defines the column order of
    sampled designs.
    """

    @classmethod
    def from_dict(cls, mapping: dict[str, Callable], data: dict):
        """
        Create a SpaceConfig from a distribution mapping and configuration data.

        Args:
            mapping (dict[str, Callable]): Distribution names to factories.
            data (dict): Parameter names to `[distribution_name, parameters]`.

        Returns:
            SpaceConfig: Configured instance with parameter spaces.

        Raises:
            ValueError: If a distribution type in data is not found in mapping.
        """
        space_config = {}
        for k, v in data.items():
            dist_type = v[0].lower()
            params = v[1]
            if dist_type not in mapping:
                raise ValueError(f"Unknown distribution type: {dist_type}")
            space_config[k] = SampleSpace(
                distribution=mapping[dist_type],
                parameters=tuple(params)
            )
        return cls(space_config)

    def get_distributions(self) -> dict:
        """
        Instantiate the frozen marginal of every parameter.

        Returns:
            dict[str, rv_frozen]: Parameter names to frozen SciPy distributions.
                Each call creates new instances.
        """
        space = {}
        for param_name, samplespace in self.items():
            sampler, parameters = samplespace.unpack()
            space[param_name] = sampler(*parameters)

        return space

    def to_dict(self, mapping: dict[str, Callable]) -> dict:
        """Inverse of `from_dict`, using the same name-to-factory mapping."""
        names = {factory: name for name, factory in mapping.items()}
        return {
            param: [names[space.distribution], list(space.parameters)]
            for param, space in self.items()
        }
