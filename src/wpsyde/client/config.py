"""
Local project configuration and install state (wpsyde.json).

Format:
    {
        "registry": "https://registry.wpsyde.com",
        "themePath": "theme",
        "componentsDir": "theme/template-parts/components",
        "blocksDir": "theme/template-parts/blocks",
        "acfJsonDir": "acf-json",
        "channels": ["stable"],
        "installed": {
            "Button": {"version": "1.0.0", "installedAt": "2026-01-25T12:00:00.000Z"}
        }
    }

The file is loaded once per CLI invocation and threaded through calls.
Relative directories resolve against the directory holding wpsyde.json.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from wpsyde.errors import ConfigError

CONFIG_FILENAME = "wpsyde.json"
DEFAULT_REGISTRY_URL = "https://registry.wpsyde.com"
REGISTRY_URL_ENV_VAR = "WPSYDE_REGISTRY_URL"
DEFAULT_TIMEOUT_S = 30.0


def default_registry_url() -> str:
    return os.environ.get(REGISTRY_URL_ENV_VAR, "").strip() or DEFAULT_REGISTRY_URL


class InstalledComponent(BaseModel):
    """Install-state record of one component."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    version: str
    installed_at: str = Field(..., alias="installedAt")


class ProjectConfig(BaseModel):
    """Contents of wpsyde.json."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    registry: str = Field(default_factory=default_registry_url)
    theme_path: str = Field(default="theme", alias="themePath")
    components_dir: str = Field(default="theme/template-parts/components", alias="componentsDir")
    blocks_dir: str = Field(default="theme/template-parts/blocks", alias="blocksDir")
    acf_json_dir: str = Field(default="acf-json", alias="acfJsonDir")
    channels: list[str] = Field(default_factory=lambda: ["stable"])
    installed: dict[str, InstalledComponent] = Field(default_factory=dict)

    @field_validator("registry")
    @classmethod
    def validate_registry(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"registry must be an http(s) URL, got {v!r}")
        return v

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict(), option=orjson.OPT_INDENT_2) + b"\n"


@dataclass
class Project:
    """Loaded wpsyde.json together with its location on disk."""

    path: Path
    config: ProjectConfig

    @property
    def root(self) -> Path:
        return self.path.parent

    def resolve(self, relative: str) -> Path:
        candidate = Path(relative)
        return candidate if candidate.is_absolute() else self.root / candidate

    @property
    def components_dir(self) -> Path:
        return self.resolve(self.config.components_dir)

    def component_dir(self, name: str) -> Path:
        return self.components_dir / name

    def save(self) -> None:
        save_config(self.config, self.path)


def load_config(path: Path) -> ProjectConfig:
    """Load wpsyde.json.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f'{path.name} not found. Run "wpsyde init" first')
    try:
        return ProjectConfig.model_validate(orjson.loads(path.read_bytes()))
    except orjson.JSONDecodeError as e:
        raise ConfigError(f"{path} is not valid JSON: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"{path} is invalid: {e}") from e


def load_project(path: Path) -> Project:
    path = Path(path).absolute()
    return Project(path=path, config=load_config(path))


def save_config(config: ProjectConfig, path: Path) -> None:
    """Persist wpsyde.json via write-to-temp and atomic rename.

    Raises:
        ConfigError: If the file cannot be written.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    except OSError as e:
        raise ConfigError(f"Cannot write {path}: {e}") from e
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(config.to_json())
        os.replace(tmp_name, path)
    except OSError as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise ConfigError(f"Cannot write {path}: {e}") from e
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def init_config(path: Path, registry: str | None = None) -> ProjectConfig | None:
    """Create wpsyde.json with defaults.

    Returns:
        The new config, or None if the file already exists (left untouched).
    """
    path = Path(path)
    if path.exists():
        return None
    config = ProjectConfig(registry=registry) if registry else ProjectConfig()
    save_config(config, path)
    return config


@dataclass
class ClientConfig:
    """HTTP client settings for registry access."""

    base_url: str = DEFAULT_REGISTRY_URL
    timeout_s: float = DEFAULT_TIMEOUT_S
    progress_chunk_bytes: int = 16 * 1024

    def __post_init__(self) -> None:
        self.base_url = self.base_url.rstrip("/")
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {self.base_url!r}")
        if self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be > 0, got {self.timeout_s}")
        if self.progress_chunk_bytes < 1:
            raise ValueError(f"progress_chunk_bytes must be >= 1, got {self.progress_chunk_bytes}")
