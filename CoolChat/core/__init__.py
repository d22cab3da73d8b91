from .message.protocol import Message, MessageKind

__all__ = ['Message', 'MessageKind']
