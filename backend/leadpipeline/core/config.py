"""
Configuration Management
Loads settings from YAML files and environment variables
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

from leadpipeline.domain.models.pipeline_config import PipelineConfig

load_dotenv()

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # API Settings
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = ["http://localhost:3000"]

    # Storage: "memory" or "supabase"
    storage_backend: str = "memory"
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


class ConfigManager:
    """Manages loading and merging configuration from multiple sources"""

    def __init__(self, env: str = "development", config_dir: Optional[Path] = None):
        self.env = env
        self.config_dir = config_dir or Path(__file__).parent.parent.parent / "config"
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration files in order of precedence"""
        default_path = self.config_dir / "default.yaml"
        if default_path.exists():
            self._config = self._load_yaml(default_path)

        env_path = self.config_dir / f"{self.env}.yaml"
        if env_path.exists():
            self._deep_merge(self._config, self._load_yaml(env_path))

        self._substitute_env_vars(self._config)

    def _load_yaml(self, path: Path) -> Dict:
        with open(path, 'r') as f:
            return yaml.safe_load(f) or {}

    def _substitute_env_vars(self, config: Dict) -> None:
        """Replace ${VAR_NAME} with environment variable values"""
        for key, value in config.items():
            if isinstance(value, dict):
                self._substitute_env_vars(value)
            elif isinstance(value, str) and value.startswith("${") and value.endswith("}"):
                env_var = value[2:-1]
                config[key] = os.getenv(env_var, value)

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Recursively merge override into base"""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation
        Example: config.get("pipeline.max_redistribution_attempts") -> 3
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_pipeline_config(self) -> PipelineConfig:
        """Build PipelineConfig from the `pipeline:` section (defaults when absent)."""
        return PipelineConfig.from_dict(self.get("pipeline"))


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging with the service-wide format."""
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format=LOG_FORMAT
    )


_settings: Optional[Settings] = None
_pipeline_config: Optional[PipelineConfig] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def get_pipeline_config() -> PipelineConfig:
    """Pipeline configuration for the current environment (cached)."""
    global _pipeline_config
    if _pipeline_config is None:
        _pipeline_config = ConfigManager(get_settings().environment).get_pipeline_config()
    return _pipeline_config
