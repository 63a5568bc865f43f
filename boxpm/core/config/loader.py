"""
Configuration loader — reads box.yml into a BoxConfig.

Every path and URL the installer, registry client and builder use
comes from here and is passed to them through their constructors.
A missing box.yml is not an error: defaults apply.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

CONFIG_FILE = "box.yml"

DEFAULT_REGISTRY_URL = "https://raw.githubusercontent.com/neutron-modules/nur/refs/heads/main"

# Environment overrides → BoxConfig field
ENV_OVERRIDES = {
    "BOX_REGISTRY_URL": "registry_url",
    "BOX_GLOBAL_DIR": "global_modules_dir",
    "BOX_LOCAL_DIR": "local_modules_dir",
}


class ConfigError(Exception):
    """Raised when box.yml is unreadable or invalid."""


class BoxConfig(BaseModel):
    """Settings shared by the registry client, builder and installer."""

    model_config = ConfigDict(extra="forbid")

    registry_url: str = DEFAULT_REGISTRY_URL
    index_file: str = "nur.json"
    global_modules_dir: str = "~/.box/modules"
    local_modules_dir: str = ".box/modules"
    manifest_file: str = ".quark"
    runtime_home: str | None = None     # Neutron install root hint
    shim_source: str | None = None      # explicit native_shim.cpp
    fetch_timeout: int = Field(default=60, gt=0)
    build_timeout: int = Field(default=600, gt=0)
    project_root: str = "."

    @property
    def index_url(self) -> str:
        return f"{self.registry_url.rstrip('/')}/{self.index_file}"

    def root(self) -> Path:
        """Project root as an absolute path."""
        return Path(self.project_root).expanduser().resolve()

    def modules_dir(self, global_: bool) -> Path:
        """Install root for the given scope."""
        raw = Path(self.global_modules_dir if global_ else self.local_modules_dir).expanduser()
        if raw.is_absolute():
            return raw
        return self.root() / raw

    def manifest_path(self) -> Path:
        return self.root() / self.manifest_file


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for box.yml starting from ``start_dir`` (default: cwd), walking up."""
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> BoxConfig:
    """Load box.yml (if any), validate it and apply environment overrides.

    Args:
        path: Explicit config path. If None, searches upward from cwd.
        environ: Environment mapping (default: ``os.environ``).

    Raises:
        ConfigError: If an explicit path is missing or any file is invalid.
    """
    env = os.environ if environ is None else environ
    data: dict = {}

    if path is None:
        path = find_config_file()
    elif not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    if path is not None:
        logger.debug("Loading config from %s", path)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}") from e

        try:
            loaded = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"Expected a YAML mapping in {path}, got {type(loaded).__name__}")

        section = loaded["box"] if "box" in loaded else loaded
        if section is None:
            section = {}
        if not isinstance(section, dict):
            raise ConfigError(
                f"Expected a mapping under 'box' in {path}, got {type(section).__name__}"
            )
        data = dict(section)
        data.setdefault("project_root", str(path.parent.resolve()))

    for var, field in ENV_OVERRIDES.items():
        if env.get(var):
            data[field] = env[var]

    try:
        config = BoxConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid box configuration: {e}") from e

    logger.debug("Registry: %s", config.registry_url)
    return config
