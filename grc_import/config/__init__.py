"""Configuration: import.yml loader, entity profiles, remembered mappings."""

from .loader import ConfigError, load_config
from .mapping_store import MappingStore
from .profiles import ProfileError, get_profile, load_profiles

__all__ = [
    "ConfigError",
    "MappingStore",
    "ProfileError",
    "get_profile",
    "load_config",
    "load_profiles",
]
