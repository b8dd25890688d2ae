# Task board configuration
# Override storage and server settings via a YAML file (TASKBOARD_CONFIG) or CLI args.

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .seed import STORAGE_KEY

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).parent / "config.yaml"
CONFIG_ENV = "TASKBOARD_CONFIG"


@dataclass
class BoardConfig:
    """Runtime configuration for the board store and server."""

    # Persistence slot
    storage_backend: str = "file"          # file | sqlite | memory | http
    storage_path: str = "~/.local/share/taskboard"
    storage_key: str = STORAGE_KEY
    http_url: Optional[str] = None         # required for the http backend
    http_timeout: float = 2.0

    # Server
    host: str = "127.0.0.1"
    port: int = 3000
    api_secret_env: str = "TASKBOARD_API_SECRET"
    api_secret: str = ""                   # resolved from api_secret_env

    log_level: str = "INFO"

    def resolve(self):
        """Expand ~ in paths and pull the API secret from the environment."""
        if self.storage_backend == "sqlite" and not self.storage_path.endswith(".db"):
            self.storage_path = str(Path(self.storage_path) / "board.db")
        self.storage_path = str(Path(self.storage_path).expanduser())
        if not self.api_secret:
            self.api_secret = os.environ.get(self.api_secret_env, "")

    @classmethod
    def load(cls, path: Optional[str] = None) -> "BoardConfig":
        """Load config from YAML file, falling back to defaults."""
        path = path or os.environ.get(CONFIG_ENV)
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if hasattr(cls, k)})
            except (OSError, yaml.YAMLError, TypeError, AttributeError) as e:
                logger.warning(f"Ignoring unreadable config {cfg_path}: {e}")
                cfg = cls()
        else:
            cfg = cls()
        cfg.resolve()
        return cfg
