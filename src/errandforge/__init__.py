"""ErrandForge: agent orchestration and memory for recurring personal errands."""

__version__ = "0.1.0"
