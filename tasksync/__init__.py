"""tasksync - derived Bases views for a task/project/area vault."""

__version__ = "0.4.0"
