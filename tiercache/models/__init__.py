"""Pydantic models for tiercache."""

from tiercache.models.model_config import ChainConfig, StoreConfig

__all__ = [
    "ChainConfig",
    "StoreConfig",
]
