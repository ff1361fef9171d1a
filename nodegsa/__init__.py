"""
# nodegsa

A toolkit for global sensitivity analysis of neural ordinary differential
equations, providing functionality for:

- **Neural ODE**: Reference spiral dynamics, the derivative network and the glue to fit it
- **Model Interface**: Abstract base class and a neural ODE model evaluated at perturbed weights
- **Shapley Effects**: Variance attribution that stays meaningful for correlated inputs
- **Sobol Indices**: SALib baseline for independent inputs
- **Monte Carlo Simulations**: Propagation of parameter uncertainty to trajectories
- **Configuration Management**: JSON-backed configuration for metrics, parameter spaces and analyses

## Main Components

- `Model`: Base class for model execution and evaluation
- `NeuralODEModel`: Concrete implementation for a trained neural ODE
- `ode`: Dynamics, network and training
- `sa`: Shapley and Sobol sensitivity analysis
- `montecarlo`: Monte Carlo simulation framework
- `config`: Configuration management for metrics and parameter spaces
- `utils`: Marginals, copulas, metrics and result containers

## Example Usage

```python
from nodegsa import NeuralODEModel
from nodegsa.ode import generate_data, build_node, train, TrainingConfig
from nodegsa.sa import Shapley, gsa
from nodegsa.utils.copula import CopulaDistribution, GaussianCopula, equicorrelation
from nodegsa.utils.distributions import get_scipy_normal

data = generate_data()
config = TrainingConfig()
node = build_node(data, config)
train(node, data, config)

model = NeuralODEModel.from_data(node, data)
marginals = [get_scipy_normal(v, 0.05) for v in model.theta]
dist = CopulaDistribution(marginals, GaussianCopula(equicorrelation(model.num_vars, 0.09)))

result = gsa(model.get_loss_function(), Shapley(n_perms=50), dist, batch=True)
print(result.top(10))
```
"""

from .model import *
