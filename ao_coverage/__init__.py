"""Coverage report and badge hosting service."""

__version__ = "1.0.0"
