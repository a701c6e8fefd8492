"""
Directory access for LDAP authentication.

This module defines the directory capability the authenticator depends on,
an implementation backed by ldap3, and a small wrapper that turns directory
failures into result objects instead of exceptions.
"""

import ssl
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Any, Callable, Optional, Tuple
from ldap3 import Server, Connection, Tls, SUBTREE, SIMPLE, NONE, ALL_ATTRIBUTES
from ldap3.core.exceptions import LDAPException

logger = logging.getLogger(__name__)

# LDAP result codes that mean "nothing matched" rather than a failure
RESULT_SUCCESS = 0
RESULT_NO_SUCH_OBJECT = 32

OPTION_ALIASES = {
    'LDAP_OPT_PROTOCOL_VERSION': 'version',
    'LDAP_OPT_NETWORK_TIMEOUT': 'connect_timeout',
    'LDAP_OPT_TIMEOUT': 'receive_timeout',
    'LDAP_OPT_REFERRALS': 'auto_referrals',
}

SERVER_OPTIONS = ('use_ssl', 'connect_timeout', 'get_info')
CONNECTION_OPTIONS = ('version', 'receive_timeout', 'auto_referrals', 'read_only', 'client_strategy')
TLS_OPTIONS = ('start_tls', 'verify_ssl', 'ca_cert_file', 'cert_file', 'key_file')


class LDAPConnectionError(Exception):
    """Raised when the directory connection cannot be opened or is no longer usable."""
    pass


class DirectoryError(Exception):
    """Raised by directory operations; carries the server's result details."""

    def __init__(self, message: str, code: Optional[int] = None,
                 operation: Optional[str] = None, diagnostic: str = ''):
        super().__init__(message)
        self.message = message
        self.code = code
        self.operation = operation
        self.diagnostic = diagnostic

    def __str__(self):
        text = self.message
        if self.code is not None:
            text = f"{text} (code {self.code})"
        if self.operation:
            text = f"{self.operation}: {text}"
        return text


class DirectoryResult:
    """Outcome of a captured directory call: either a value or a DirectoryError."""

    def __init__(self, value: Any = None, error: Optional[DirectoryError] = None):
        self.value = value
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    def __repr__(self):
        if self.ok:
            return f"DirectoryResult(value={self.value!r})"
        return f"DirectoryResult(error={self.error!r})"


def capture(operation: str, func: Callable, *args, **kwargs) -> DirectoryResult:
    """
    Run a directory call and capture any directory failure as a result.

    Args:
        operation: Name of the operation, recorded on the error
        func: Directory method to call
        *args, **kwargs: Arguments for func

    Returns:
        DirectoryResult holding the return value, or the captured error
    """
    try:
        return DirectoryResult(value=func(*args, **kwargs))
    except DirectoryError as e:
        if e.operation is None:
            e.operation = operation
        return DirectoryResult(error=e)
    except LDAPException as e:
        return DirectoryResult(error=DirectoryError(str(e), operation=operation))


class Directory(ABC):
    """
    Abstract directory capability used by the authenticator.

    Implementations own a single connection; it is opened by connect() and
    must not be used again after close().
    """

    @abstractmethod
    def connect(self, host: str, port: Optional[int] = None, options: Optional[Dict[str, Any]] = None) -> None:
        """Open a connection to host:port applying options in order."""
        pass

    @abstractmethod
    def bind(self, dn: str, password: str) -> bool:
        """Bind as dn. Returns True on success, raises DirectoryError otherwise."""
        pass

    @abstractmethod
    def search(self, base: str, search_filter: str) -> Any:
        """Search below base and return an opaque result handle."""
        pass

    @abstractmethod
    def first_entry(self, result: Any) -> Any:
        """Return the first entry of a search result, or None."""
        pass

    @abstractmethod
    def attributes(self, entry: Any) -> Dict[str, Any]:
        """Return an entry's attributes, including its 'dn'."""
        pass

    @abstractmethod
    def get_diagnostic(self) -> str:
        """Return the diagnostic message of the last failed bind or search."""
        pass

    @abstractmethod
    def unbind(self) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


def build_connection_settings(host: str, options: Optional[Dict[str, Any]] = None) -> Tuple[Dict[str, Any], Dict[str, Any], Dict[str, Any]]:
    """
    Split configured options into ldap3 Server, Connection and TLS settings.

    Options are applied in mapping order, so a later key overrides an earlier
    alias of the same setting.

    Args:
        host: Directory host or URL, used to detect ldaps://
        options: Mapping of option name (or LDAP_OPT_* alias) to value

    Returns:
        Tuple of (server_kwargs, connection_kwargs, tls_settings)

    Raises:
        LDAPConnectionError: If an option is not supported
    """
    server_kwargs = {
        'use_ssl': host.lower().startswith('ldaps://'),
        'get_info': NONE,
    }
    connection_kwargs = {}
    tls_settings = {'start_tls': False, 'verify_ssl': True}

    for key, value in (options or {}).items():
        name = OPTION_ALIASES.get(str(key), str(key))
        if name in SERVER_OPTIONS:
            server_kwargs[name] = value
        elif name in CONNECTION_OPTIONS:
            if name == 'auto_referrals':
                value = bool(value)
            elif name == 'version':
                value = int(value)
            connection_kwargs[name] = value
        elif name in TLS_OPTIONS:
            tls_settings[name] = value
        else:
            raise LDAPConnectionError(f"Unsupported LDAP option: {key}")

    return server_kwargs, connection_kwargs, tls_settings


class Ldap3Directory(Directory):
    """Directory implementation on top of ldap3."""

    def __init__(self):
        self.server = None
        self.connection = None
        self.start_tls = False
        self.last_diagnostic = ''
        self._closed = False

    def connect(self, host: str, port: Optional[int] = None, options: Optional[Dict[str, Any]] = None) -> None:
        """
        Create the ldap3 server and connection objects.

        The socket is opened lazily by the first bind, matching how a bare
        LDAP connect only records the target.

        Raises:
            LDAPConnectionError: If the server or connection cannot be created
        """
        self._ensure_open()
        server_kwargs, connection_kwargs, tls_settings = build_connection_settings(host, options)
        self.start_tls = bool(tls_settings.pop('start_tls'))

        try:
            tls_config = self._create_tls_config(server_kwargs['use_ssl'] or self.start_tls, tls_settings)
            self.server = Server(host, port=port, tls=tls_config, **server_kwargs)
            self.connection = Connection(
                self.server,
                authentication=SIMPLE,
                auto_bind=False,
                raise_exceptions=False,
                **connection_kwargs
            )
        except LDAPException as e:
            self.server = None
            self.connection = None
            raise LDAPConnectionError(f"Unable to connect to LDAP server {host}: {e}") from e

        logger.debug(f"Created LDAP connection for {host} (port: {port}, SSL: {server_kwargs['use_ssl']}, StartTLS: {self.start_tls})")

    def _create_tls_config(self, enabled: bool, settings: Dict[str, Any]) -> Optional[Tls]:
        """
        Create TLS configuration for the LDAP connection.

        Returns:
            Tls configuration object or None if not needed
        """
        if not enabled:
            return None

        tls_config = {}

        if not settings.get('verify_ssl', True):
            tls_config['validate'] = ssl.CERT_NONE
            logger.warning("SSL certificate verification disabled")
        else:
            tls_config['validate'] = ssl.CERT_REQUIRED

        if settings.get('ca_cert_file'):
            tls_config['ca_certs_file'] = settings['ca_cert_file']
            logger.debug(f"Using CA certificate file: {settings['ca_cert_file']}")

        # Client certificate for mutual TLS
        if settings.get('cert_file') and settings.get('key_file'):
            tls_config['local_certificate_file'] = settings['cert_file']
            tls_config['local_private_key_file'] = settings['key_file']
            logger.debug("Client certificate configured for mutual TLS")

        try:
            return Tls(**tls_config)
        except LDAPException as e:
            raise LDAPConnectionError(f"Failed to create TLS configuration: {e}") from e

    def _ensure_open(self):
        if self._closed:
            raise LDAPConnectionError("LDAP connection has been closed")

    def _ensure_connected(self):
        self._ensure_open()
        if self.connection is None:
            raise LDAPConnectionError("Not connected to LDAP server")

    def _result_error(self, operation: str) -> DirectoryError:
        result = self.connection.result or {}
        self.last_diagnostic = result.get('message') or ''
        return DirectoryError(
            result.get('description') or f"{operation} failed",
            code=result.get('result'),
            operation=operation,
            diagnostic=result.get('message') or ''
        )

    def bind(self, dn: str, password: str) -> bool:
        self._ensure_connected()
        self.last_diagnostic = ''

        if self.start_tls and not self.connection.tls_started:
            if self.connection.closed:
                self.connection.open()
            if not self.connection.start_tls():
                raise self._result_error('start_tls')
            logger.debug("StartTLS negotiation successful")

        self.connection.user = dn
        self.connection.password = password
        if self.connection.bind() is True:
            return True
        raise self._result_error('bind')

    def search(self, base: str, search_filter: str) -> List[Any]:
        self._ensure_connected()
        self.last_diagnostic = ''

        success = self.connection.search(
            search_base=base,
            search_filter=search_filter,
            search_scope=SUBTREE,
            attributes=ALL_ATTRIBUTES
        )
        if not success:
            code = (self.connection.result or {}).get('result')
            if code not in (RESULT_SUCCESS, RESULT_NO_SUCH_OBJECT):
                raise self._result_error('search')
            return []
        return list(self.connection.entries)

    def first_entry(self, result: List[Any]) -> Any:
        return result[0] if result else None

    def attributes(self, entry: Any) -> Dict[str, Any]:
        attributes = {'dn': str(entry.entry_dn)}
        for name, values in entry.entry_attributes_as_dict.items():
            attributes[name] = list(values)
        return attributes

    def get_diagnostic(self) -> str:
        self._ensure_connected()
        return self.last_diagnostic

    def unbind(self) -> None:
        if self.connection is not None:
            self.connection.unbind()
            logger.debug("LDAP connection unbound")

    def close(self) -> None:
        self._closed = True
        self.connection = None
        self.server = None
