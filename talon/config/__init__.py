"""Configuration module: exports Settings, the loaders, and the frozen tuning tree."""

from talon.config.loader import load_config, load_talon_config
from talon.config.settings import Settings
from talon.config.tuning import (
    ChatConfig,
    ChunkingConfig,
    EmbeddingConfig,
    ExtractionConfig,
    IngestionConfig,
    RetrievalConfig,
    TalonConfig,
)

__all__ = [
    "ChatConfig",
    "ChunkingConfig",
    "EmbeddingConfig",
    "ExtractionConfig",
    "IngestionConfig",
    "RetrievalConfig",
    "Settings",
    "TalonConfig",
    "load_config",
    "load_talon_config",
]
