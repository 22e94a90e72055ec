"""stressbench: a configurable load generator for databases."""

from .config_loader import ConfigLoader, ConfigurationError, StressConfig
from .stress_manager import RunSummary, StressManager

__version__ = "0.1.0"

__all__ = ['ConfigLoader', 'ConfigurationError', 'StressConfig', 'RunSummary', 'StressManager']
