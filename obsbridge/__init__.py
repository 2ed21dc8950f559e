"""OBS Metrics Bridge Package Initialisation."""

__version__ = "1.0.0"
