"""
# Neural ODE

Reference dynamics, the neural ODE model and the glue to fit it.

## Components

- `SpiralDynamics`, `generate_data`: Cubic spiral system and its sampled trajectory
- `ODEFunc`, `NeuralODE`: Derivative network and integrator with flat state vector
- `TrainingConfig`, `train`, `build_node`: Adam fit of the state vector

## Example Usage

```python
from nodegsa.ode import generate_data, build_node, train, TrainingConfig

data = generate_data(datasize=30)
config = TrainingConfig(maxiters=300)
node = build_node(data, config)
history = train(node, data, config)
theta = node.state_vector()
```
"""

from .dynamics import *
from .network import *
from .config import *
from .train import *
