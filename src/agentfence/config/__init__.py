"""Configuration management for agentfence.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/agentfence/)
- User-level config (~/.config/agentfence/ or ~/.agentfence/)
- Project-level config (<cwd>/.agentfence/)
- Environment variable overrides (highest priority)

Example usage:
    from agentfence.config import load_config

    config = load_config(cwd="/path/to/project")
    print(config.sandbox.filesystem.deny_read)
"""

from agentfence.config.loader import (
    dict_to_layer,
    env_overrides,
    load_config,
    load_yaml_file,
)
from agentfence.config.merge import merge_layer, merge_layers
from agentfence.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from agentfence.config.schema import (
    Config,
    ConfigLayer,
    FilesystemConfig,
    LoggingConfig,
    NetworkConfig,
    SandboxConfig,
)

__all__ = [
    # Main API
    "Config",
    "load_config",
    # Schema types
    "ConfigLayer",
    "FilesystemConfig",
    "LoggingConfig",
    "NetworkConfig",
    "SandboxConfig",
    # Loading and merging
    "dict_to_layer",
    "env_overrides",
    "load_yaml_file",
    "merge_layer",
    "merge_layers",
    # Path utilities
    "get_config_paths",
    "get_project_config_path",
    "get_system_config_path",
    "get_user_config_path",
]
