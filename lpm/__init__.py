"""
lpm - Lazypack unit management CLI tool.

This is the command-line interface for managing lazypack units.
Supports installation, removal, upgrade, and status queries.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
