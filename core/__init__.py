#!/usr/bin/env python3
"""
Core Module for Microservices Architecture

Shared infrastructure for the popup engine services.

COMPONENTS:
    - config/: Environment-driven configuration (engine settings, logging)

USAGE:
    from core.config import get_settings

    settings = get_settings()
"""
