"""Configuration management for the chunkvault CLI."""

import json
import os
import shutil
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from common.constants import HTTP_TIMEOUT_SECONDS, UPLOAD_BATCH_SIZE
from common.logging_config import get_logger
from vault import config as vault_config
from vault.exceptions import ConfigurationError

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / '.chunkvault' / 'config.json'


class Config:
    """
    Manages CLI configuration stored in a JSON file.

    Lookup order for every setting: command-line override, config file,
    environment (including a .env file in the working directory), default.
    The webhook URL and proxy base are never written to the file unless
    set explicitly, since the webhook URL carries a token.
    """

    DEFAULT_CONFIG = {
        "db_path": vault_config.DATABASE_PATH,
        "storage_path": vault_config.STORAGE_PATH,
        "chunk_size": vault_config.DEFAULT_CHUNK_SIZE,
        "timeout": HTTP_TIMEOUT_SECONDS,
        "batch_size": UPLOAD_BATCH_SIZE,
        "rate_limit_budget": None,
        "keep_staging": True,
    }

    ENV_KEYS = {
        "webhook": "WEBHOOK",
        "proxy_base": "PROXY_BASE",
    }

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH, load_env: bool = True):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.chunkvault/config.json)
            load_env: Read a .env file into the environment first
        """
        if load_env:
            load_dotenv(find_dotenv(usecwd=True))
        self.config_path = Path(config_path)
        self.overrides: dict = {}
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            import tempfile
            self.config_path = Path(tempfile.gettempdir()) / '.chunkvault' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (json.JSONDecodeError, IOError) as e:
                backup_path = self.config_path.with_suffix('.json.bak')
                logger.warning(f"Unreadable config {self.config_path} ({e}), backing up to {backup_path}")
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError as copy_error:
                    logger.warning(f"Could not back up config: {copy_error}")
                return self.DEFAULT_CONFIG.copy()
        else:
            config = self.DEFAULT_CONFIG.copy()
            try:
                with open(self.config_path, 'w') as f:
                    json.dump(config, f, indent=2)
            except IOError as e:
                logger.debug(f"Could not write default config: {e}")
            return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except IOError as e:
            logger.warning(f"Could not save config to {self.config_path}: {e}")

    def override(self, **values) -> None:
        """Apply command-line overrides for this process only; None values are ignored."""
        self.overrides.update({k: v for k, v in values.items() if v is not None})

    def get(self, key: str, default=None):
        if key in self.overrides:
            return self.overrides[key]
        value = self.data.get(key)
        if value in (None, "") and key in self.ENV_KEYS:
            value = os.environ.get(self.ENV_KEYS[key])
        return default if value in (None, "") else value

    def get_webhook(self) -> str:
        """
        Get the upload destination.

        Raises:
            ConfigurationError: If no webhook URL is configured
        """
        webhook = self.get('webhook')
        if not webhook:
            raise ConfigurationError("WEBHOOK must be set (environment, .env, config file or --webhook)")
        return webhook

    def get_proxy_base(self) -> str:
        """
        Get the download proxy base URL.

        Raises:
            ConfigurationError: If no proxy base is configured
        """
        proxy_base = self.get('proxy_base')
        if not proxy_base:
            raise ConfigurationError("PROXY_BASE must be set (environment, .env, config file or --proxy-base)")
        return proxy_base

    def get_proxy_base_or_none(self) -> Optional[str]:
        return self.get('proxy_base') or None

    def get_db_path(self) -> str:
        return str(self.get('db_path', vault_config.DATABASE_PATH))

    def get_storage_path(self) -> Path:
        return Path(self.get('storage_path', vault_config.STORAGE_PATH))

    def get_chunk_size(self) -> int:
        return int(self.get('chunk_size', vault_config.DEFAULT_CHUNK_SIZE))

    def get_timeout(self) -> float:
        """
        Get request timeout in seconds.
        """
        return float(self.get('timeout', HTTP_TIMEOUT_SECONDS))

    def get_batch_size(self) -> int:
        return int(self.get('batch_size', UPLOAD_BATCH_SIZE))

    def get_rate_limit_budget(self) -> Optional[float]:
        budget = self.get('rate_limit_budget')
        return float(budget) if budget is not None else None

    def keep_staging(self) -> bool:
        return bool(self.get('keep_staging', True))
