"""
Configuration loader for LOINC search.

Settings come from, in increasing precedence: built-in defaults, an optional
YAML file, then environment variables.

Example config.yaml:
    data:
      dir: data
    loader:
      chunk_size: 10485760
      prefetch: false
    provider:
      base_url: http://localhost:11434
      embed_model: nomic-embed-text
      chat_model: llama3.2
    importer:
      batch_size: 100
      batch_delay_seconds: 0.1
    search:
      limit: 5
      workers: 1
"""

import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import yaml

from ..core.exceptions import ConfigError
from ..core.types import ProviderConfig
from ..corpus.reader import DEFAULT_CHUNK_SIZE
from ..corpus.records import LoaderConfig
from ..importer.batch_importer import ImporterConfig


logger = logging.getLogger(__name__)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


# Every environment variable the package reads: env var -> (dotted config key, converter)
ENV_OVERRIDES: Dict[str, Any] = {
    "LOINC_DATA_DIR": ("data.dir", str),
    "LOINC_CHUNK_SIZE": ("loader.chunk_size", int),
    "LOINC_MAX_BUFFER_CHARS": ("loader.max_buffer_chars", int),
    "LOINC_PREFETCH": ("loader.prefetch", _to_bool),
    "OLLAMA_BASE_URL": ("provider.base_url", str),
    "OLLAMA_EMBED_MODEL": ("provider.embed_model", str),
    "OLLAMA_CHAT_MODEL": ("provider.chat_model", str),
    "OLLAMA_TIMEOUT_SECONDS": ("provider.timeout_seconds", int),
    "LOINC_IMPORT_BATCH_SIZE": ("importer.batch_size", int),
    "LOINC_IMPORT_BATCH_DELAY_SECONDS": ("importer.batch_delay_seconds", float),
    "LOINC_IMPORT_OUTPUT": ("importer.output_path", str),
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


class SearchConfig:
    """
    Configuration for the loader, provider, importer and search.

    Loads YAML configuration files and applies environment overrides.
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file (optional)

        Raises:
            ConfigError: If the file is missing, unreadable or not a mapping
        """
        self.config_path = Path(config_path) if config_path else None
        self.config = self._default_config()
        if self.config_path:
            _merge(self.config, self._load_config())
        self._apply_env_overrides()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise ConfigError(f"Config file not found: {self.config_path}")

        logger.info(f"Loading config from: {self.config_path}")

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read config file {self.config_path}: {e}") from e

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigError(f"Config file {self.config_path} must hold a mapping")
        return config

    def _default_config(self) -> Dict[str, Any]:
        """Return default configuration."""
        return {
            "data": {
                "dir": "data",
                "codes_file": "loinc-codes.json",
                "vectors_file": "loinc-embeddings.json",
                "csv_file": "Loinc.csv",
            },
            "loader": {
                "chunk_size": DEFAULT_CHUNK_SIZE,
                "max_buffer_chars": None,
                "prefetch": False,
            },
            "provider": {
                "base_url": "http://localhost:11434",
                "embed_model": "nomic-embed-text",
                "chat_model": "llama3.2",
                "temperature": 0.3,
                "max_tokens": 150,
                "timeout_seconds": 120,
            },
            "importer": {
                "batch_size": 100,
                "batch_delay_seconds": 0.1,
                "output_path": None,
            },
            "search": {
                "limit": 5,
                "workers": 1,
            },
        }

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        for env_var, (key, convert) in ENV_OVERRIDES.items():
            raw = os.environ.get(env_var)
            if not raw:
                continue
            try:
                value = convert(raw)
            except ValueError as e:
                raise ConfigError(f"Invalid value for {env_var}: {raw!r}") from e
            self._set(key, value)

    def _set(self, key: str, value: Any) -> None:
        *parents, leaf = key.split(".")
        section = self.config
        for k in parents:
            section = section.setdefault(k, {})
        section[leaf] = value

    def _typed(self, key: str, convert: Callable[[Any], Any], default: Any = None) -> Any:
        value = self.get(key)
        if value is None:
            return default
        try:
            return convert(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value for {key}: {value!r}") from e

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key."""
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default

    def get_loader_config(self) -> LoaderConfig:
        """Build the typed loader configuration."""
        config = LoaderConfig(
            data_dir=str(self.get("data.dir", "data")),
            codes_file=str(self.get("data.codes_file", "loinc-codes.json")),
            vectors_file=str(self.get("data.vectors_file", "loinc-embeddings.json")),
            csv_file=str(self.get("data.csv_file", "Loinc.csv")),
            chunk_size=self._typed("loader.chunk_size", int, DEFAULT_CHUNK_SIZE),
            max_buffer_chars=self._typed("loader.max_buffer_chars", int),
            prefetch=self._typed("loader.prefetch", _to_bool, False),
        )
        config.validate()
        return config

    def get_provider_config(self) -> ProviderConfig:
        """Build the typed provider configuration."""
        return ProviderConfig(
            base_url=str(self.get("provider.base_url")),
            embed_model=str(self.get("provider.embed_model")),
            chat_model=str(self.get("provider.chat_model")),
            temperature=self._typed("provider.temperature", float, 0.3),
            max_tokens=self._typed("provider.max_tokens", int, 150),
            timeout_seconds=self._typed("provider.timeout_seconds", int, 120),
        )

    def get_importer_config(self) -> ImporterConfig:
        """Build the typed importer configuration; output defaults to the data dir."""
        output_path = self.get("importer.output_path") or self.get_loader_config().vectors_path
        config = ImporterConfig(
            batch_size=self._typed("importer.batch_size", int),
            batch_delay_seconds=self._typed("importer.batch_delay_seconds", float, 0.1),
            output_path=str(output_path),
        )
        config.validate()
        return config

    def get_search_limit(self) -> int:
        limit = self._typed("search.limit", int)
        if limit is None or limit <= 0:
            raise ConfigError(f"search.limit must be positive, got {limit!r}")
        return limit

    def get_search_workers(self) -> int:
        workers = self._typed("search.workers", int)
        if workers is None or workers < 1:
            raise ConfigError(f"search.workers must be positive, got {workers!r}")
        return workers
