"""
# Sensitivity Analysis

This module provides global sensitivity analysis of scalar model outputs,
with the loss of a trained neural ODE as the main target.

## Components

- `Shapley`, `gsa`: Shapley effects, valid for correlated inputs
- `Sobol`: First- and total-order Sobol indices via SALib
- `SensitivityAnalysis`: Workflow from trained model to saved results and plots
- `SensitivityAnalysisConfig`, `ShapleyConfig`, `SensitivityAnalysisProblem`: Configuration
- `plot_shapley_effects`, `plot_sobol_indices`, `plot_fit`: Figures

## Example Usage

```python
from nodegsa.sa import SensitivityAnalysis, SensitivityAnalysisConfig

config = SensitivityAnalysisConfig.from_json('sa_config.json')
sa = SensitivityAnalysis(model, config)
result = sa.run('results/')

print(result.top(10))
```
"""

from .shapley import *
from .sobol import *
from .sa import *
from .config import *
