"""
ragserve Configuration

Loads server settings from configs/ragserve.json (or an explicit path),
then applies RAGSERVE_<SECTION>__<KEY> environment overrides.

Lookup order:
    1. explicit path argument
    2. $RAGSERVE_CONFIG
    3. <project root>/configs/ragserve.json
    4. built-in defaults
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger("ragserve.config")

ENV_PREFIX = "RAGSERVE_"
PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "configs" / "ragserve.json"


@dataclass
class ModelConfig:
    """Language model to serve."""
    family: str = "mistral-7b-instruct-v0.2"
    model_path: str = ""
    tokenizer: str = "gpt2"
    device: str = "cpu"
    context_window: int = 4096


@dataclass
class EmbeddingConfig:
    model: str = "hashing"
    dim: int = 1024
    ngram_min: int = 2
    ngram_max: int = 5


@dataclass
class GenerationDefaults:
    """Defaults applied when a request leaves a sampling field unset."""
    temperature: float = 0.8
    seed: int = 299792458
    repeat_penalty: float = 1.1
    repeat_last_n: int = 64
    max_tokens: int = 128
    stream_delay_ms: int = 10


@dataclass
class StorageConfig:
    database_url: str = "sqlite:///data/ragserve.db"
    blob_dir: str = "data/files"
    vector_dir: str = "data/vectors"


@dataclass
class LoggingConfig:
    """Application logging configuration."""
    directory: str = "logs/app"
    log_to_file: bool = True
    debug: bool = False


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class AppConfig:
    """Complete server configuration."""
    model: ModelConfig = field(default_factory=ModelConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    generation: GenerationDefaults = field(default_factory=GenerationDefaults)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    config_path: Optional[Path] = None

    @classmethod
    def load(cls, config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """
        Load configuration from JSON file plus environment overrides.

        Args:
            config_path: Path to config file (see lookup order above)
            environ: Environment mapping, defaults to os.environ

        Returns:
            AppConfig instance
        """
        environ = os.environ if environ is None else environ
        if config_path is None:
            config_path = environ.get(f"{ENV_PREFIX}CONFIG") or DEFAULT_CONFIG_PATH
        path = Path(config_path)

        data: Dict[str, Any] = {}
        if path.exists():
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Failed to load config {path}: {e}. Using defaults")
                data = {}
            if not isinstance(data, dict):
                logger.warning(f"Config {path} is not a JSON object. Using defaults")
                data = {}
        else:
            logger.info(f"Config not found at {path}, using defaults")

        config = cls(config_path=path)
        for section in _sections(config):
            _merge(getattr(config, section), data.get(section, {}))
        config.apply_env(environ)
        return config

    def apply_env(self, environ: Mapping[str, str]) -> None:
        """Apply RAGSERVE_<SECTION>__<KEY>=value overrides."""
        for key, raw in environ.items():
            if not key.startswith(ENV_PREFIX) or "__" not in key:
                continue
            section, _, name = key[len(ENV_PREFIX):].lower().partition("__")
            if section not in _sections(self):
                continue
            target = getattr(self, section)
            if name not in {f.name for f in fields(target)}:
                continue
            try:
                setattr(target, name, _coerce(raw, getattr(target, name)))
            except ValueError:
                logger.warning(f"Ignoring {key}={raw!r}: expected {type(getattr(target, name)).__name__}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            section: {f.name: getattr(getattr(self, section), f.name) for f in fields(getattr(self, section))}
            for section in _sections(self)
        }


def _sections(config: AppConfig):
    return [f.name for f in fields(config) if f.name != "config_path"]


def _merge(target, values) -> None:
    if not isinstance(values, dict):
        return
    known = {f.name for f in fields(target)}
    for name, value in values.items():
        if name in known:
            setattr(target, name, value)


def _coerce(raw: str, current):
    if isinstance(current, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    return raw
