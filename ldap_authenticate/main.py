"""
Command-line entry point for LDAP Authenticate.

Checks a configuration against the directory or authenticates a single user,
which is handy when setting up error message mappings for a new directory.
"""

import os
import sys
import json
import getpass
import logging
import argparse
from typing import List, Optional

from ldap_authenticate.config import load_config, ConfigurationError
from ldap_authenticate.directory import LDAPConnectionError
from ldap_authenticate.authenticator import LdapAuthenticator
from ldap_authenticate.request import Request
from ldap_authenticate.logging_setup import setup_logging, security_logger

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_AUTH_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_CONNECTION_ERROR = 3


def _read_password() -> str:
    password = os.getenv('LDAP_AUTH_PASSWORD')
    if password is None:
        password = getpass.getpass('Password: ')
    return password


def run(config_path: Optional[str] = None, username: Optional[str] = None, check: bool = False) -> int:
    """
    Load configuration and either check it or authenticate one user.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging(config.get('logging', {}))
    security_logger.log_configuration_access(config_path or os.getenv('LDAP_AUTH_CONFIG', 'config.yaml'))

    try:
        authenticator = LdapAuthenticator(config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except LDAPConnectionError as e:
        logger.error(f"LDAP connection error: {e}")
        print(f"LDAP connection error: {e}", file=sys.stderr)
        return EXIT_CONNECTION_ERROR

    with authenticator:
        if check or not username:
            print(f"Configuration OK: {authenticator.host}")
            return EXIT_SUCCESS

        request = Request({
            authenticator.username_field: username,
            authenticator.password_field: _read_password(),
        })
        user = authenticator.authenticate(request)

    if user is None:
        print("Authentication failed", file=sys.stderr)
        flash_key = authenticator.config['flash']['key']
        for message in request.session.consume(f"Flash.{flash_key}", []):
            print(f"  - {message['message']}", file=sys.stderr)
        return EXIT_AUTH_FAILED

    print(json.dumps(user, indent=2, default=str))
    return EXIT_SUCCESS


def main(argv: Optional[List[str]] = None):
    """Main entry point for the application."""
    parser = argparse.ArgumentParser(description='LDAP Authenticate')
    parser.add_argument('--config', '-c', help='Path to configuration file')
    parser.add_argument('--username', '-u', help='Username to authenticate')
    parser.add_argument('--check', action='store_true',
                        help='Only validate the configuration and connection settings')

    args = parser.parse_args(argv)
    sys.exit(run(config_path=args.config, username=args.username, check=args.check))


if __name__ == "__main__":
    main()
