#!/usr/bin/env python3
"""Popup engine configuration

Storage namespace/backend, device breakpoint, locale and timezone defaults
for the popup targeting engine.
"""
import os
from dataclasses import dataclass, field

from .logging_config import LoggingConfig


def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class PopupEngineConfig:
    """Popup engine settings"""

    # ===========================================
    # Persistence
    # ===========================================
    # Prefix for the two JSON documents (display states, session counts)
    storage_namespace: str = "popup_engine"
    # memory | file
    storage_backend: str = "memory"
    # Directory for the file backend
    storage_dir: str = ".popup_state"

    # ===========================================
    # Page context
    # ===========================================
    mobile_breakpoint: int = 768
    default_language: str = "en"
    # IANA zone name for schedule windows; empty means system local time
    timezone: str = ""

    # ===========================================
    # Events
    # ===========================================
    event_source: str = "popup_service"

    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> 'PopupEngineConfig':
        """Load popup engine configuration from environment variables"""
        return cls(
            storage_namespace=os.getenv("POPUP_STORAGE_NAMESPACE", "popup_engine"),
            storage_backend=os.getenv("POPUP_STORAGE_BACKEND", "memory").lower(),
            storage_dir=os.getenv("POPUP_STORAGE_DIR", ".popup_state"),
            mobile_breakpoint=_int(os.getenv("POPUP_MOBILE_BREAKPOINT", "768"), 768),
            default_language=os.getenv("POPUP_DEFAULT_LANGUAGE", "en"),
            timezone=os.getenv("POPUP_TIMEZONE", ""),
            event_source=os.getenv("POPUP_EVENT_SOURCE", "popup_service"),
            logging=LoggingConfig.from_env(),
        )
