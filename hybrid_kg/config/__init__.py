"""
Configuration System

Manages configuration for HybridKG with a layered approach.

Configuration Priority (highest to lowest):
    1. Programmatic (passed to KGConfig())
    2. Environment variables (HYBRID_KG_* prefix)
    3. Config file (KGConfig.from_file)
    4. Built-in defaults

Modules:
    settings: KGConfig class
"""

from hybrid_kg.config.settings import KGConfig

__all__ = ["KGConfig"]
