"""Engine configuration."""

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from ..utils.helpers import ensure_directory, setup_logging

logger = setup_logging(__name__)

CONFIG_DIR = ".swarm"
CONFIG_FILE = "config.json"


class EngineConfig(BaseModel):
    """
    Configuration for one repository.

    Built explicitly and handed to SwarmManager; there is no process-wide
    instance.
    """

    repo_root: Path
    remote: str = "origin"
    lock_dir: str = ".swarm-locks"
    store_dir: str = ".swarm/swarms"
    fetch_retries: int = Field(default=3, ge=1)
    fetch_retry_delay: float = Field(default=2.0, ge=0, description="Backoff unit in seconds")
    fetch_max_elapsed: Optional[float] = Field(default=None, gt=0)
    git_timeout: Optional[float] = Field(default=None, gt=0)
    lock_timeout: Optional[float] = Field(default=None, ge=0)
    serialize_checkout: bool = True

    @property
    def lock_path(self) -> Path:
        return self.repo_root / self.lock_dir

    @property
    def store_path(self) -> Path:
        return self.repo_root / self.store_dir

    @classmethod
    def config_file(cls, repo_root: Path) -> Path:
        return Path(repo_root) / CONFIG_DIR / CONFIG_FILE

    @classmethod
    def load(cls, repo_root: Path) -> "EngineConfig":
        """
        Load configuration for a repository.

        Args:
            repo_root: Repository root

        Returns:
            Settings from ``.swarm/config.json`` when present, defaults otherwise
        """
        repo_root = Path(repo_root)
        config_file = cls.config_file(repo_root)
        if not config_file.exists():
            return cls(repo_root=repo_root)

        with open(config_file, 'r') as f:
            try:
                config_data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid configuration file {config_file}: {e}")

        config_data["repo_root"] = repo_root
        logger.debug(f"Loaded configuration from {config_file}")
        return cls(**config_data)

    def save(self) -> Path:
        config_file = self.config_file(self.repo_root)
        ensure_directory(config_file.parent)

        data = self.model_dump(exclude={"repo_root"})
        with open(config_file, 'w') as f:
            json.dump(data, f, indent=2, default=str)

        return config_file
