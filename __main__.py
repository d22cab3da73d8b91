"""
Entry point for CoolChat application.
This module provides a command-line interface to start either a server or client.
"""

from CoolChat.start.cli import main

if __name__ == '__main__':
    main()
