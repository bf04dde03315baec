#!/usr/bin/env python3
"""Modular configuration system for the popup engine

Configuration hierarchy:
- engine_config: Storage, page context and event settings for the engine
- logging_config: Logging configuration
"""
import os
from dotenv import load_dotenv
from .logging_config import LoggingConfig
from .engine_config import PopupEngineConfig

# Load environment file based on ENV
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
env_files = {
    "development": "deployment/environments/dev.env",
    "dev": "deployment/environments/dev.env",
    "testing": "deployment/environments/test.env",
    "test": "deployment/environments/test.env",
    "production": "deployment/environments/production.env",
}
env_file = os.path.join(PROJECT_ROOT, env_files.get(env, env_files["development"]))
load_dotenv(env_file, override=False)

# Create global settings instance
settings = PopupEngineConfig.from_env()

def get_settings() -> PopupEngineConfig:
    """Get global settings instance"""
    return settings

def reload_settings() -> PopupEngineConfig:
    """Reload settings from environment"""
    global settings
    settings = PopupEngineConfig.from_env()
    return settings

__all__ = [
    # Main config
    'PopupEngineConfig',
    'get_settings',
    'reload_settings',
    'settings',
    # Sub-configs
    'LoggingConfig',
]
