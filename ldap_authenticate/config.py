"""
Configuration loading and management for LDAP Authenticate.

This module handles loading configuration from YAML files and environment variables,
with validation and defaults.
"""

import os
import yaml
import logging
from typing import Dict, Any, Callable, Optional, Union

logger = logging.getLogger(__name__)

Host = Union[str, Callable[[], str]]

# Active Directory diagnostic sub-codes reported in the bind error message
DEFAULT_ERRORS = {
    'data 525': 'User not found',
    'data 52e': 'Invalid credentials',
    'data 530': 'Not permitted to logon at this time',
    'data 531': 'Not permitted to logon at this workstation',
    'data 532': 'Password expired',
    'data 533': 'Account disabled',
    'data 701': 'Account expired',
    'data 773': 'User must reset password',
    'data 775': 'User account locked',
}


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing required fields."""
    pass


def resolve_host(host: Optional[Host]) -> str:
    """
    Resolve the directory host to a concrete string.

    Args:
        host: Host name/URL, or a zero-argument callable returning one

    Returns:
        The resolved host with surrounding whitespace removed

    Raises:
        ConfigurationError: If the host is missing or empty after resolution, or the resolver fails
    """
    if callable(host):
        try:
            host = host()
        except Exception as e:
            raise ConfigurationError(f"Unable to resolve LDAP server: {e}") from e
    host = str(host).strip() if host is not None else ''
    if not host:
        raise ConfigurationError("LDAP server not specified")
    return host


class ConfigLoader:
    """Handles loading and validation of application configuration."""

    # Environment variable mappings for deployment-specific fields
    ENV_OVERRIDES = {
        'ldap.host': 'LDAP_AUTH_HOST',
        'ldap.port': 'LDAP_AUTH_PORT',
    }

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize config loader.

        Args:
            config_path: Path to config file. If None, uses LDAP_AUTH_CONFIG env var or 'config.yaml'
        """
        self.config_path = config_path or os.getenv('LDAP_AUTH_CONFIG', 'config.yaml')
        self.config = {}

    def load(self) -> Dict[str, Any]:
        """
        Load configuration from file and apply environment overrides.

        Returns:
            Parsed and validated configuration dictionary

        Raises:
            ConfigurationError: If config file not found or validation fails
        """
        try:
            with open(self.config_path, 'r') as f:
                self.config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")

        if not isinstance(self.config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {self.config_path}")

        self._apply_env_overrides()
        self._validate()
        self._apply_defaults()

        logger.info(f"Configuration loaded successfully from {self.config_path}")
        return self.config

    def _apply_env_overrides(self):
        """Apply environment variable overrides."""
        for config_key, env_var in self.ENV_OVERRIDES.items():
            env_value = os.getenv(env_var)
            if env_value:
                self._set_nested_value(self.config, config_key, env_value)
                logger.debug(f"Applied environment override for {config_key}")

    def _set_nested_value(self, config: Dict, key_path: str, value: Any):
        """Set a nested configuration value using dot notation."""
        keys = key_path.split('.')
        current = config
        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]
        current[keys[-1]] = value

    def _validate(self):
        """Validate required configuration fields."""
        errors = []

        ldap_config = self.config.get('ldap')
        if not isinstance(ldap_config, dict):
            raise ConfigurationError("Configuration validation failed:\n  - Missing 'ldap' section")

        for field in ['host', 'base_dn']:
            if not ldap_config.get(field):
                errors.append(f"Missing required LDAP field: {field}")

        port = ldap_config.get('port')
        if port not in (None, ''):
            try:
                ldap_config['port'] = int(port)
            except (TypeError, ValueError):
                errors.append(f"LDAP port must be an integer: {port!r}")

        for field in ['options', 'fields', 'errors', 'flash']:
            value = ldap_config.get(field)
            if value is not None and not isinstance(value, dict):
                errors.append(f"LDAP field {field} must be a mapping")

        if errors:
            raise ConfigurationError("Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors))

    def _apply_defaults(self):
        """Apply default values for optional configuration fields."""
        ldap_defaults = {
            'port': None,
            'options': {},
            'fields': {},
            'domain': None,
            'search': 'mail',
            'errors': dict(DEFAULT_ERRORS),
            'flash': {}
        }
        ldap_config = self.config['ldap']
        for key, value in ldap_defaults.items():
            if ldap_config.get(key) in (None, ''):
                ldap_config[key] = value

        fields = ldap_config['fields']
        fields.setdefault('username', 'username')
        fields.setdefault('password', 'password')

        flash = ldap_config['flash']
        flash.setdefault('key', 'flash')
        flash.setdefault('element', 'error')
        flash.setdefault('params', {})

        # Logging defaults
        logging_defaults = {
            'level': 'INFO',
            'log_dir': 'logs',
            'rotation': 'daily',
            'retention_days': 7
        }
        logging_config = self.config.setdefault('logging', {})
        for key, value in logging_defaults.items():
            logging_config.setdefault(key, value)


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Convenience function to load configuration.

    Args:
        config_path: Path to config file

    Returns:
        Loaded configuration dictionary
    """
    loader = ConfigLoader(config_path)
    return loader.load()
