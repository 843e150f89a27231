"""Command relay over the simulation WebSocket"""
from .transport import TransportRelay, PendingCommand, COMMAND_TIMEOUT

__all__ = [
    'TransportRelay',
    'PendingCommand',
    'COMMAND_TIMEOUT',
]
