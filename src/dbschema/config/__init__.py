"""Configuration package.

Usage:
    from dbschema.config import load_config, ProjectConfig
"""

from dbschema.config.loader import DEFAULT_CONFIG_FILE, load_config
from dbschema.config.models import MigrateSettings, ProjectConfig, SchemaSettings

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "load_config",
    "ProjectConfig",
    "SchemaSettings",
    "MigrateSettings",
]
