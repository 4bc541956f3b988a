"""
Telemetry side channel for product analytics.
"""

from .emitter import LoggingEventEmitter, NullEventEmitter, create_event_emitter

__all__ = ["LoggingEventEmitter", "NullEventEmitter", "create_event_emitter"]
