"""Configuration loading utilities."""

from mgnrega_ingest.config.loader import get_config, load_config_from_files, reload_config


__all__ = ["get_config", "load_config_from_files", "reload_config"]
