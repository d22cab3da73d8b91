"""
Account management for CoolChat application.
"""

import getpass
import logging

from CoolChat.config import config
from CoolChat.core.server.auth import CredentialStore
from CoolChat.core.server.exceptions import ChatServerError

logger = logging.getLogger(__name__)

__all__ = ['adduser']


def adduser(username, password=None, user_db_file=config.USER_DB_FILE):
    """
    Add an account to the credential file.

    Args:
        username (str): New username
        password (str): Password; prompted for when omitted
        user_db_file (str): Credential file path

    Returns:
        int: Process exit code
    """
    if password is None:
        password = getpass.getpass("Password: ")
        if getpass.getpass("Confirm password: ") != password:
            print("Incorrect confirm password.")
            return 1

    store = CredentialStore(user_db_file, config.BCRYPT_ROUNDS)
    store.load()
    try:
        store.add_user(username, password)
        store.flush()
    except ChatServerError as e:
        logger.error("Cannot add user %s: %s", username, e)
        print(f"Cannot add user: {e.message}")
        return 1

    print(f"User {username} added.")
    return 0
