"""
Command-line interface for CoolChat application.
Starts either a server or a client, or manages accounts.
"""

import argparse
import sys

from CoolChat import __version__
from CoolChat.config import config
from CoolChat.core.logging import auto_configure, set_level
from CoolChat.start import client, server, users


def parse(argv=None):
    # Initialize argument parser for command line interface
    parser = argparse.ArgumentParser(prog='CoolChat', description='CoolChat starter')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--env', default=None,
                        help='Logging preset: development, production or testing (default: $COOLCHAT_ENV)')
    parser.add_argument('--log-level', default=None, type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Override the level of the logging preset')
    subparsers = parser.add_subparsers(dest='command', required=True, help='Available commands')

    # Setup server command line arguments
    server_parser = subparsers.add_parser('server', help='Startup SERVER')
    server_parser.add_argument('--host', default=config.DEFAULT_HOST,
                               help=f'SERVER listening address (default: {config.DEFAULT_HOST})')
    server_parser.add_argument('--port', type=int, default=config.DEFAULT_SERVER_PORT,
                               help=f'SERVER port (default: {config.DEFAULT_SERVER_PORT})')
    server_parser.add_argument('--no-web', action='store_true', help='Do not serve the status web app')
    server_parser.add_argument('--web-port', type=int, default=config.WEB_PORT,
                               help=f'Status web app port (default: {config.WEB_PORT})')

    # Setup client command line arguments
    client_parser = subparsers.add_parser('client', help='Startup CLIENT')
    client_parser.add_argument('--host', default=None,
                               help='SERVER address (default: scan the local network)')
    client_parser.add_argument('--port', type=int, default=config.DEFAULT_SERVER_PORT,
                               help=f'SERVER port (default: {config.DEFAULT_SERVER_PORT})')

    # Add 'adduser' command
    adduser_parser = subparsers.add_parser('adduser', help='Add an account')
    adduser_parser.add_argument('username', help='Name of the new account')
    adduser_parser.add_argument('--users', default=config.USER_DB_FILE,
                                help=f'Credential file (default: {config.USER_DB_FILE})')

    return parser.parse_args(argv)


def main(argv=None):
    args = parse(argv)
    auto_configure(args.env)
    if args.log_level:
        set_level(args.log_level)

    # Launch either server or client based on command line arguments
    if args.command == 'server':
        server.server(host=args.host, port=args.port, web=not args.no_web, web_port=args.web_port)
    elif args.command == 'client':
        client.client(host=args.host, port=args.port)
    elif args.command == 'adduser':
        sys.exit(users.adduser(args.username, user_db_file=args.users))
    else:
        raise ValueError(f'Unknown command: {args.command}')


if __name__ == '__main__':
    main()
