"""
# Configuration Management

This module provides configuration classes for managing fit metrics and
parameter sampling spaces used throughout the nodegsa package.

## Components

- **MetricConfig**: Configuration for fit metrics and their modes
- **SpaceConfig**: Configuration for parameter marginals used in sampling

## Example Usage

```python
from nodegsa.config import MetricConfig, SpaceConfig
from nodegsa.utils.distributions import MARGINALS

# Create metric configuration
metric_config = MetricConfig.from_dict({
    'metrics': ['rmse', 'r2'],
    'modes': ['min', 'max'],
    'params': ['u1', 'u2']
})

# Create parameter space configuration
space_config = SpaceConfig.from_dict(MARGINALS, {
    'u0[1]': ['normal', [2.0, 0.1]],
    'u0[2]': ['uniform', [-0.1, 0.1]]
})
```
"""

from .metric import *
from .space import *
