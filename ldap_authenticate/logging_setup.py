"""
Logging setup and configuration for LDAP Authenticate.

This module provides centralized logging configuration for hosts embedding the
authenticator and for the command-line tool, with rotating log files and
scrubbing of credentials from log messages.
"""

import os
import re
import logging
import logging.handlers
from typing import Dict, Any, Optional

LOG_FILE_NAME = 'ldap_authenticate.log'


class SensitiveDataFilter(logging.Filter):
    """Filter to scrub credentials from log messages."""

    SENSITIVE_KEYWORDS = [
        'password', 'passwd', 'pwd', 'pass', 'secret', 'credential',
        'token', 'authorization', 'bearer'
    ]

    def filter(self, record):
        """Mask sensitive values in the formatted message."""
        if hasattr(record, 'msg'):
            msg = str(record.msg)
            if record.args:
                try:
                    msg = msg % record.args
                    record.args = ()
                except (TypeError, ValueError):
                    pass

            for keyword in self.SENSITIVE_KEYWORDS:
                # key=value
                msg = re.sub(rf'({keyword}\s*=\s*)[^\s,}}\]]+(\s|,|$)', r'\1****\2', msg, flags=re.IGNORECASE)
                # "key": "value"
                msg = re.sub(rf'("{keyword}"\s*:\s*")[^"]*(")', r'\1****\2', msg, flags=re.IGNORECASE)
                # 'key': 'value'
                msg = re.sub(rf"('{keyword}'\s*:\s*')[^']*(')", r'\1****\2', msg, flags=re.IGNORECASE)

            record.msg = msg

        return True


_configured = False


def _create_file_handler(log_dir: str, rotation: str, retention_days: int) -> logging.Handler:
    """Daily rotation keeps retention_days old files; any other rotation value writes one plain file."""
    log_file = os.path.join(log_dir, LOG_FILE_NAME)
    if str(rotation).lower() in ('daily', 'midnight'):
        handler = logging.handlers.TimedRotatingFileHandler(
            filename=log_file,
            when='midnight',
            backupCount=max(int(retention_days), 0),
            encoding='utf-8'
        )
        handler.suffix = '%Y-%m-%d'
        return handler
    return logging.FileHandler(log_file, encoding='utf-8')


def setup_logging(config: Optional[Dict[str, Any]]) -> None:
    """
    Install file and console handlers on the root logger.

    Only the first call has an effect until reset_logging() is called.

    Args:
        config: The 'logging' configuration section
    """
    global _configured
    if _configured:
        return

    config = config or {}
    log_level = getattr(logging, str(config.get('level', 'INFO')).upper(), logging.INFO)
    log_dir = config.get('log_dir') or 'logs'
    retention_days = config.get('retention_days', 7)
    console_enabled = config.get('console_output', True)
    console_level = getattr(logging, str(config.get('console_level', 'WARNING')).upper(), logging.WARNING)

    try:
        os.makedirs(log_dir, exist_ok=True)
    except OSError as e:
        print(f"Warning: Could not create log directory {log_dir}: {e}")
        log_dir = '.'

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    sensitive_filter = SensitiveDataFilter()

    file_handler = _create_file_handler(log_dir, config.get('rotation', 'daily'), retention_days)
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    file_handler.addFilter(sensitive_filter)
    root_logger.addHandler(file_handler)

    if console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(console_level)
        console_handler.setFormatter(logging.Formatter('%(asctime)s [%(levelname)s] %(message)s', datefmt='%H:%M:%S'))
        console_handler.addFilter(sensitive_filter)
        root_logger.addHandler(console_handler)

    _configured = True
    logging.getLogger(__name__).info(f"Logging configured: dir={log_dir}, retention={retention_days} days")


def reset_logging() -> None:
    """Remove installed handlers so logging can be configured again."""
    global _configured
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    _configured = False


class SecurityAuditLogger:
    """Special logger for security-related events. Never records usernames."""

    def __init__(self):
        self.logger = logging.getLogger('security')

    def log_authentication_attempt(self, strategy: str, success: bool, reason: str = ""):
        """Log the outcome of an authentication attempt."""
        status = "SUCCESS" if success else "FAILURE"
        message = f"Authentication {status}: strategy={strategy}"
        if reason:
            message += f" reason={reason}"
        self.logger.info(message)

    def log_configuration_access(self, config_file: str):
        """Log configuration file access."""
        self.logger.info(f"Configuration loaded: {config_file}")


# Global security logger instance
security_logger = SecurityAuditLogger()
