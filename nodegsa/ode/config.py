"""Configuration for fitting a neural ODE to an observed trajectory.

Typical usage example:

    from nodegsa.ode import TrainingConfig

    config = TrainingConfig.from_json("train_config.json")
    config.maxiters = 500
    config.to_json("updated_train_config.json")
"""

from dataclasses import dataclass, asdict
import json


@dataclass
class TrainingConfig:
    """Settings of the Adam fit of a neural ODE.

    Attributes:
        learning_rate (float): Adam step size. Defaults to 0.05.
        maxiters (int): Number of optimizer iterations. Defaults to 300.
        hidden (int): Width of the hidden layer. Defaults to 50.
        method (str): torchdiffeq solver used while training. Defaults to 'dopri5'.
        rtol (float): Relative solver tolerance. Defaults to 1e-7.
        atol (float): Absolute solver tolerance. Defaults to 1e-9.
        log_every (int): Iterations between loss log lines. Defaults to 50.
        seed (int): Seed for network initialization. Defaults to 42.
    """

    learning_rate: float = 0.05
    maxiters: int = 300
    hidden: int = 50
    method: str = "dopri5"
    rtol: float = 1e-7
    atol: float = 1e-9
    log_every: int = 50
    seed: int = 42

    @classmethod
    def from_json(cls, infile: str):
        """Create a TrainingConfig instance from a JSON file.

        Raises:
            FileNotFoundError: If the specified file does not exist.
            TypeError: If the file contains unknown keys.
        """
        with open(infile, "r") as f:
            data = json.load(f)
        return cls(**data)

    def to_json(self, outfile: str):
        """Serialize the configuration to a new JSON file.

        Raises:
            FileExistsError: If the specified file already exists.
        """
        with open(outfile, "+x") as f:
            json.dump(asdict(self), f, indent=4)
