"""Configuration loader for embed_properties."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from common.config import ConfigSingleton, find_config_path, first_env, load_yaml

CONFIG_DIR = Path(__file__).parent / "configs"
MAX_DEFAULT_WORKERS = 4


def default_worker_count() -> int:
    """Use at most 4 workers to avoid overloading the embedding API."""
    return min(MAX_DEFAULT_WORKERS, os.cpu_count() or 1)


@dataclass
class StoreConfig:
    source_url: str = "sqlite:///properties.db"
    target_url: str = "sqlite:///properties_embeddings.db"
    source_table: str = "properties"
    target_table: str = "properties_embeddings"


@dataclass
class EmbeddingConfig:
    provider: str = "gemini"  # "gemini" or "sentence-transformers"
    model: str = "models/text-embedding-004"
    dimensions: int | None = 768
    max_retries: int = 5
    base_delay: float = 1.0
    api_key: str | None = None


@dataclass
class Config:
    workers: int = field(default_factory=default_worker_count)
    batch_size: int = 50
    store: StoreConfig = field(default_factory=StoreConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)


def load_config(config_name: str | None = None) -> Config:
    """Load configuration from YAML file, then apply environment overrides.

    Args:
        config_name: Name of config file (without .yaml extension).
                    If None, uses CONFIG_ENV env var or "prod".

    Returns:
        Loaded Config object

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the worker count or batch size is invalid.
    """
    config_path = find_config_path(config_name, CONFIG_DIR, env_var="CONFIG_ENV")
    data = load_yaml(config_path)
    config = _parse_config(data)
    _apply_env_overrides(config, os.environ)
    _validate(config)
    return config


def _parse_config(data: dict) -> Config:
    """Parse config dictionary into Config object."""
    store_data = data.get("store", {})
    embedding_data = data.get("embedding", {})

    store = StoreConfig(
        source_url=store_data.get("source_url", StoreConfig.source_url),
        target_url=store_data.get("target_url", StoreConfig.target_url),
        source_table=store_data.get("source_table", StoreConfig.source_table),
        target_table=store_data.get("target_table", StoreConfig.target_table),
    )

    embedding = EmbeddingConfig(
        provider=embedding_data.get("provider", EmbeddingConfig.provider),
        model=embedding_data.get("model", EmbeddingConfig.model),
        dimensions=embedding_data.get("dimensions", EmbeddingConfig.dimensions),
        max_retries=embedding_data.get("max_retries", EmbeddingConfig.max_retries),
        base_delay=embedding_data.get("base_delay", EmbeddingConfig.base_delay),
    )

    workers = data.get("workers")
    return Config(
        workers=default_worker_count() if workers is None else workers,
        batch_size=data.get("batch_size", 50),
        store=store,
        embedding=embedding,
    )


def _apply_env_overrides(config: Config, environ) -> None:
    """Apply store locations, worker count and credentials from the environment."""
    store = config.store
    store.source_url = first_env(environ, "SOURCE_DATABASE_URL", "DATABASE_URL", default=store.source_url)
    store.target_url = first_env(environ, "TARGET_DATABASE_URL", "DATABASE_URL", default=store.target_url)
    store.source_table = first_env(environ, "SOURCE_TABLE", default=store.source_table)
    store.target_table = first_env(environ, "TARGET_TABLE", default=store.target_table)

    workers = environ.get("EMBED_WORKERS")
    if workers:
        try:
            config.workers = int(workers)
        except ValueError as exc:
            raise ValueError(f"EMBED_WORKERS must be an integer, got {workers!r}") from exc

    embedding = config.embedding
    embedding.provider = first_env(environ, "EMBEDDING_PROVIDER", default=embedding.provider)
    embedding.model = first_env(environ, "EMBEDDING_MODEL", default=embedding.model)
    embedding.api_key = first_env(
        environ, "GOOGLE_GENERATIVE_AI_API_KEY", "GOOGLE_API_KEY", default=embedding.api_key
    )


def _validate(config: Config) -> None:
    if config.workers < 1:
        raise ValueError(f"workers must be at least 1, got {config.workers}")
    if config.batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {config.batch_size}")


_manager = ConfigSingleton(load_config)
get_config = _manager.get
set_config = _manager.set
