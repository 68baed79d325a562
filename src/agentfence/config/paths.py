"""Platform-aware configuration path resolution.

Handles config file locations for:
- Unix: /etc/ (system), ~/.config/agentfence/ or ~/.agentfence/ (user)
- macOS: same as Unix
- Project: <cwd>/.agentfence/
"""

from __future__ import annotations

import os
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "agentfence"
SHORT_NAME = ".agentfence"


def get_system_config_path() -> Path:
    """Get system-level config path (the file may not exist)."""
    return Path("/etc") / APP_NAME / CONFIG_FILENAME


def get_user_config_path() -> Path:
    """Get user-level config path.

    Tries XDG_CONFIG_HOME first, then ~/.config if it exists, then
    ~/.agentfence. The file may not exist.
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME

    home = Path.home()
    xdg_default = home / ".config"
    if xdg_default.exists():
        return xdg_default / APP_NAME / CONFIG_FILENAME

    return home / SHORT_NAME / CONFIG_FILENAME


def get_project_config_path(cwd: str) -> Path:
    """Get project-level config path (the file may not exist)."""
    return Path(cwd) / SHORT_NAME / CONFIG_FILENAME


def get_config_paths(cwd: str | None = None) -> list[Path]:
    """Get all config paths in priority order (lowest to highest).

    Args:
        cwd: Optional project directory for project-level config.

    Returns:
        List of config paths in order: system, user, project.
        Later paths override earlier ones when merging.
    """
    paths = [get_system_config_path(), get_user_config_path()]
    if cwd:
        paths.append(get_project_config_path(cwd))
    return paths
