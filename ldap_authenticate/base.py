"""
Base authentication strategy interface.

This module defines the abstract base class that every authentication strategy
implements so that strategies can be swapped in a framework's login pipeline.
"""

import copy
import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


def merge_config(defaults: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Merge overrides on top of defaults, recursing into nested mappings.

    Neither argument is modified.
    """
    merged = copy.deepcopy(defaults)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


class BaseAuthenticator(ABC):
    """
    Abstract base class for authentication strategies.

    Subclasses declare their defaults in default_config and implement
    authenticate().
    """

    default_config: Dict[str, Any] = {}

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the strategy.

        Args:
            config: Strategy configuration, merged over default_config
        """
        self.config = merge_config(self.default_config, config)

    @abstractmethod
    def authenticate(self, request) -> Optional[Dict[str, Any]]:
        """
        Authenticate a user based on the request information.

        Args:
            request: Inbound request exposing get(field) and a session

        Returns:
            User data on success, None on failure
        """
        pass
