"""
# Monte Carlo Simulations

This module propagates uncertainty in the initial condition and network
weights of a trained neural ODE to its trajectories.

## Components

- `Sim`: Main simulation class for running Monte Carlo experiments
- `MonteCarloConfig`: Configuration for Monte Carlo simulations

## Example Usage

```python
from nodegsa.montecarlo import Sim, MonteCarloConfig
from nodegsa import NeuralODEModel

# Load configuration
config = MonteCarloConfig.from_json('mc_config.json')

# Create model instance
model = NeuralODEModel.from_data(node, data)

# Setup simulation
sim = Sim(
    model=model,
    config=config,
    run_kwargs={'method': 'dopri5'},
    engine='sobol',  # Quasi-random sampling
    seed=42
)

# Run Monte Carlo simulation
results = sim.run(n=1024, parallel=True, workers=8)

# Analyze results
stats = sim.analyze(results, index_columns=['t'])
stats.save('/path/to/results/')
Sim.plot_ci(stats, ['u1', 'u2'], 'bands.png')
```
"""

from .sim import *
from .config import *
