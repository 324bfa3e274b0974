import os
from pathlib import Path
from string import Template
from typing import Any, Dict, Optional, Union

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from gravatar_client.models.config import ClientConfig, deep_merge, env_overrides

logger = structlog.get_logger()


class ConfigValidationError(Exception):
    """Configuration validation failed"""

    pass


class ConfigManager:
    """Loads ClientConfig from an optional YAML file and the environment.

    Precedence (lowest to highest): model defaults, YAML file,
    GRAVATAR_* environment variables.

    Example YAML:
        base_url: https://api.gravatar.com/v3
        api_key: ${GRAVATAR_API_KEY}
        cache:
          ttl_seconds: 600
        retry:
          max_attempts: 5
    """

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        env_prefix: str = "GRAVATAR_",
        load_env_file: bool = True,
    ):
        self.config_path = Path(config_path) if config_path else None
        self.env_prefix = env_prefix
        self.load_env_file = load_env_file
        self.env_loaded = False
        self._config: Optional[ClientConfig] = None

    def load_config(self) -> ClientConfig:
        """Load and validate configuration"""
        if self._config:
            return self._config

        # 1. Load environment
        if self.load_env_file and not self.env_loaded:
            load_dotenv()
            self.env_loaded = True

        # 2. Read YAML
        data: Dict[str, Any] = {}
        if self.config_path is not None:
            data = self._read_yaml(self.config_path)

        # 3. Environment overrides
        data = deep_merge(data, env_overrides(self.env_prefix))

        # 4. Validate with Pydantic
        try:
            self._config = ClientConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid configuration: {e}") from e

        logger.info(
            "config_loaded",
            source=str(self.config_path) if self.config_path else "environment",
            base_url=self._config.base_url,
            authenticated=self._config.api_key is not None,
        )
        return self._config

    def _read_yaml(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        try:
            raw_content = path.read_text()
        except OSError as e:
            raise ConfigValidationError(f"Failed to read config file: {e}") from e

        # ${VAR} placeholders; unknown variables are left as-is
        substituted = Template(raw_content).safe_substitute(os.environ)
        try:
            config_data = yaml.safe_load(substituted)
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}") from e

        if config_data is None:
            return {}
        if not isinstance(config_data, dict):
            raise ConfigValidationError(
                "Configuration root must be a mapping, "
                f"got {type(config_data).__name__}"
            )
        return config_data

    def reload(self) -> ClientConfig:
        """Discard the cached config and load again."""
        self._config = None
        return self.load_config()
