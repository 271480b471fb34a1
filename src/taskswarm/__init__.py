"""taskswarm - goal planning and execution across a pool of agents."""

__version__ = "0.1.0"
