"""
Lazypack Core - Host environment integration.

This package contains:
- LocalHost: an in-process TriggerSink (events, commands, content types,
  key maps, readiness, deferred queue)
"""

__all__ = []
