"""
LDAP authentication strategy.

Verifies a username and password by binding to the directory as the user and,
on success, returns the user's directory entry. Directory diagnostics for a
failed bind are translated into configured user-facing flash messages.
"""

import logging
from typing import Dict, List, Any, Optional
from ldap3.utils.conv import escape_filter_chars
from ldap3.utils.dn import escape_rdn

from ldap_authenticate.base import BaseAuthenticator
from ldap_authenticate.config import ConfigurationError, resolve_host
from ldap_authenticate.directory import (
    Directory, Ldap3Directory, DirectoryError, LDAPConnectionError, capture
)
from ldap_authenticate.logging_setup import security_logger

logger = logging.getLogger(__name__)


class LdapAuthenticator(BaseAuthenticator):
    """
    Authentication strategy backed by an LDAP directory.

    The directory connection is opened when the authenticator is created and
    released by close(). One instance serves one request lifecycle; it is not
    safe for concurrent use.
    """

    name = 'ldap'

    default_config = {
        'host': None,
        'port': None,
        'options': {},
        'fields': {
            'username': 'username',
            'password': 'password'
        },
        'domain': None,
        'base_dn': '',
        'search': 'mail',
        'errors': {},
        'flash': {
            'key': 'flash',
            'element': 'error',
            'params': {}
        }
    }

    def __init__(self, config: Dict[str, Any], directory: Optional[Directory] = None):
        """
        Initialize the authenticator and open the directory connection.

        Args:
            config: The 'ldap' configuration section, or a full configuration containing one
            directory: Directory implementation to use (defaults to Ldap3Directory)

        Raises:
            ConfigurationError: If no host is configured
            LDAPConnectionError: If the connection cannot be opened
        """
        if isinstance(config.get('ldap'), dict):
            config = config['ldap']
        super().__init__(config)

        self.host = resolve_host(self.config.get('host'))
        self.port = self.config.get('port') or None

        fields = self.config['fields']
        self.username_field = str(fields.get('username') or 'username').strip()
        self.password_field = str(fields.get('password') or 'password').strip()

        self.directory = directory if directory is not None else Ldap3Directory()
        self._closed = False

        try:
            self.directory.connect(self.host, self.port, self.config.get('options') or {})
        except LDAPConnectionError:
            self._release()
            raise
        except Exception as e:
            self._release()
            raise LDAPConnectionError(f"Unable to connect to LDAP server {self.host}: {e}") from e

        logger.info(f"LDAP authenticator ready for {self.host}")

    def authenticate(self, request) -> Optional[Dict[str, Any]]:
        """
        Authenticate a user based on the request information.

        Args:
            request: Request exposing get(field) and a session

        Returns:
            The user's directory attributes on success, None on failure
        """
        username = request.get(self.username_field)
        password = request.get(self.password_field)
        if username is None or password is None:
            logger.debug("Request is missing username or password field")
            return None
        if not isinstance(username, str) or not isinstance(password, str):
            logger.debug("Request username or password field is not a string")
            return None

        return self.find_user(username, password, request)

    def qualify_username(self, username: str) -> str:
        """Append the default domain to a bare username."""
        domain = self.config.get('domain')
        if domain and username and '@' not in username:
            username = f"{username}@{domain}"
        return username

    def bind_dn(self, username: str) -> str:
        rdn_value = escape_rdn(username) if username else username
        return f"mail={rdn_value},{self.config['base_dn']}"

    def find_user(self, username: str, password: str, request=None) -> Optional[Dict[str, Any]]:
        """
        Find a user record using the username and password provided.

        Args:
            username: The username, qualified with the default domain if bare
            password: The password
            request: Request whose session receives flash messages on failure

        Returns:
            The user's directory attributes, or None on failure
        """
        if self._closed:
            raise LDAPConnectionError("Authenticator has been closed")

        username = self.qualify_username(username)
        user_dn = self.bind_dn(username)
        messages = []

        bound = capture('bind', self.directory.bind, user_dn, password)
        error = bound.error
        reason = 'bind rejected'
        if bound.ok and bound.value is True:
            search_filter = f"({self.config['search']}={escape_filter_chars(username)})"
            found = self._fetch_entry(user_dn, search_filter)
            if found.ok:
                if found.value is not None:
                    security_logger.log_authentication_attempt(self.name, True)
                    return found.value
                logger.warning("Bind succeeded but no directory entry matched the search filter")
                reason = 'no entry'
            error = found.error

        if error is not None:
            logger.info(str(error))
            reason = f"{error.operation} failed"
            messages = self._error_messages(error)
        security_logger.log_authentication_attempt(self.name, False, reason)

        if messages and request is not None:
            request.session.write(f"Flash.{self.config['flash']['key']}", messages)
        return None

    def _fetch_entry(self, base: str, search_filter: str):
        searched = capture('search', self.directory.search, base, search_filter)
        if not searched.ok:
            return searched
        entry = capture('first_entry', self.directory.first_entry, searched.value)
        if not entry.ok or entry.value is None:
            return entry
        return capture('attributes', self.directory.attributes, entry.value)

    def _error_messages(self, error: DirectoryError) -> List[Dict[str, Any]]:
        """Map the directory diagnostic message to configured flash messages."""
        diagnostic = capture('get_diagnostic', self.directory.get_diagnostic)
        text = diagnostic.value if diagnostic.ok else ''
        if not text:
            text = error.diagnostic
        if not text:
            return []

        flash = self.config['flash']
        messages = []
        for substring, message in (self.config.get('errors') or {}).items():
            if substring in text:
                messages.append({
                    'message': message,
                    'key': flash.get('key'),
                    'element': flash.get('element'),
                    'params': flash.get('params'),
                })
        return messages

    def _release(self):
        try:
            self.directory.unbind()
        except Exception as e:
            logger.debug(f"Error unbinding LDAP connection: {e}")
        try:
            self.directory.close()
        except Exception as e:
            logger.debug(f"Error closing LDAP connection: {e}")
        self._closed = True

    def close(self):
        """Unbind and close the directory connection. Errors are ignored."""
        if getattr(self, '_closed', True):
            return
        self._release()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def __del__(self):
        self.close()
