"""
Local package for the WebFarm worker host.

This package provides the effective (default + override) configuration
through the `effective_settings` object and hosts the supervisor package.
"""

from .config import effective_settings

__all__ = ["effective_settings"]
