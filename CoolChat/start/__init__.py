"""
Startup entry points for CoolChat application.
"""

from . import client, server, users

__all__ = ['client', 'server', 'users']
