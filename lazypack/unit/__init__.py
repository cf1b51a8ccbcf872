"""
Lazypack Unit System - Unit registry, ordering, and activation.

This package handles:
- Unit spec normalization
- Dependency resolution
- Lazy-loading triggers
- Activation and lifecycle hooks
- Installer delegation
"""

__all__ = []
