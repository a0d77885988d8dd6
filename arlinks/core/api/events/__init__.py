"""Event emitter used for upload progress streams."""
from .event_emitter import EventEmitter

__all__ = ['EventEmitter']
