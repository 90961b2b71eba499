"""tasklane: plan validation, step execution and task lifecycle for tool-using agents."""

__version__ = "0.1.0"
