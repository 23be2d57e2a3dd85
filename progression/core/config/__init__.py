"""
Configuration for the progression engine.

Static, environment-driven settings loaded once through python-dotenv.

- **config.py**: `Config` class with bounds-checked loaders and validation
"""

from progression.core.config.config import Config, Environment

__all__ = ["Config", "Environment"]
