"""
Configuration module for LOINC search.
"""

from .config_loader import SearchConfig

__all__ = ["SearchConfig"]
