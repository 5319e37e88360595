"""Configuration management for savesaver."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console

from .paths import parse_flat_line, write_atomic

console = Console()
logger = logging.getLogger(__name__)

REPO_URL_KEY = "repo_url"

DEFAULT_CONFIG: Dict[str, Any] = {
    "data_dir": "~/.savesaver",
    "paths_file": "paths.txt",
    "repo_file": "conf.txt",
    "temp_dir": "temp",
    "log_file": "~/Documents/uploading.log",
    "manifest_name": "README.md",
    "staging_dir": "content",
    "heading_marker": "#",
    "git_executable": "git",
}

_PATH_KEYS = ("data_dir", "paths_file", "repo_file", "temp_dir", "log_file")
_NAME_KEYS = ("manifest_name", "staging_dir", "heading_marker", "git_executable")


class Config:
    """Configuration class for savesaver.

    Settings start from ``DEFAULT_CONFIG`` and are overridden by an optional
    YAML file. File locations that are not absolute resolve against
    ``data_dir``.
    """

    def __init__(
        self,
        config_file: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize configuration.

        Args:
            config_file: Optional YAML file merged over the defaults.
            overrides: Settings applied last, e.g. from command line options.
        """
        self.config: Dict[str, Any] = {}
        self.load_config(config_file)
        if overrides:
            self.update(overrides)

    def load_config(self, config_file: Optional[Path] = None) -> None:
        """Load configuration from file."""
        self._merge_config(DEFAULT_CONFIG)

        if config_file is not None:
            try:
                with open(config_file, "r") as f:
                    user_config = yaml.safe_load(f)
                if user_config:
                    self._merge_config(user_config)
            except (OSError, yaml.YAMLError) as e:
                console.print(f"[red]Error loading config file: {e}[/red]")

    def _merge_config(self, config: Dict[str, Any]) -> None:
        """Merge configuration with current configuration."""
        if not isinstance(config, dict):
            raise ValueError("Configuration must be a dictionary")

        for key, value in config.items():
            if key in _PATH_KEYS or key in _NAME_KEYS:
                if not isinstance(value, str):
                    raise ValueError(f"{key} must be a string")
            self.config[key] = value

    def update(self, overrides: Dict[str, Any]) -> None:
        """Apply settings over the current configuration."""
        self._merge_config(overrides)

    def validate(self) -> List[str]:
        """Validate configuration."""
        errors = []
        for key in _PATH_KEYS + _NAME_KEYS:
            value = self.config.get(key)
            if not isinstance(value, str) or not value:
                errors.append(f"{key} must be a non-empty string")

        for key in ("manifest_name", "staging_dir"):
            value = self.config.get(key)
            if isinstance(value, str) and ("/" in value or "\\" in value or value == ".git"):
                errors.append(f"{key} must be a plain file name")

        return errors

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        return self.config.get(key, default)

    def _resolve(self, key: str) -> Path:
        path = Path(self.config[key]).expanduser()
        if path.is_absolute():
            return path
        return self.data_dir / path

    @property
    def data_dir(self) -> Path:
        return Path(self.config["data_dir"]).expanduser()

    @property
    def paths_file(self) -> Path:
        return self._resolve("paths_file")

    @property
    def repo_file(self) -> Path:
        return self._resolve("repo_file")

    @property
    def temp_dir(self) -> Path:
        return self._resolve("temp_dir")

    @property
    def log_file(self) -> Path:
        return self._resolve("log_file")

    @property
    def manifest_name(self) -> str:
        return self.config["manifest_name"]

    @property
    def staging_dir(self) -> str:
        return self.config["staging_dir"]

    @property
    def heading_marker(self) -> str:
        return self.config["heading_marker"]

    @property
    def git_executable(self) -> str:
        return self.config["git_executable"]


class RepositoryConfig:
    """The single remote repository URL, persisted as ``repo_url = <url>``.

    Once a URL is set it is not re-pointed; ``clear`` has to be called first.
    """

    def __init__(self, path: Path) -> None:
        """Initialize repository configuration."""
        self.path = Path(path)
        self.url: Optional[str] = None

    def load(self) -> Optional[str]:
        """Read the URL from the backing file, if present."""
        self.url = None
        if not self.path.exists():
            return None

        for line in self.path.read_text(encoding="utf-8").splitlines():
            parsed = parse_flat_line(line)
            if parsed is None:
                continue
            key, value = parsed
            if key == REPO_URL_KEY and value:
                self.url = value
        return self.url

    def save(self, url: str) -> bool:
        """Persist the URL.

        Returns:
            bool: False when the URL is empty or one is already set, either
            in memory or in the backing file.
        """
        url = url.strip()
        if not url:
            logger.warning("Ignoring empty repository URL")
            return False
        if self.url is None:
            self.load()
        if self.url is not None:
            logger.warning("Repository URL already set to %s", self.url)
            return False

        write_atomic(self.path, f"{REPO_URL_KEY} = {url}\n")
        self.url = url
        return True

    def clear(self) -> None:
        """Forget the stored URL."""
        if self.path.exists():
            self.path.unlink()
        self.url = None
