"""
Request and session collaborators for authentication strategies.

A framework adapter wraps its own request object in these (or provides objects
with the same methods) before handing it to an authenticator.
"""

from typing import Dict, Any, Optional

_MISSING = object()


class Session:
    """Dictionary-backed session storage addressed with dotted paths."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self.data = data if data is not None else {}

    def write(self, path: str, value: Any) -> None:
        """Write value at a dotted path, creating intermediate mappings."""
        keys = path.split('.')
        current = self.data
        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]
        current[keys[-1]] = value

    def read(self, path: str, default: Any = None) -> Any:
        current = self.data
        for key in path.split('.'):
            if not isinstance(current, dict) or key not in current:
                return default
            current = current[key]
        return current

    def delete(self, path: str) -> None:
        keys = path.split('.')
        parent = self.read('.'.join(keys[:-1])) if len(keys) > 1 else self.data
        if isinstance(parent, dict):
            parent.pop(keys[-1], None)

    def consume(self, path: str, default: Any = None) -> Any:
        """Read a value and remove it, the way flash messages are shown once."""
        value = self.read(path, _MISSING)
        if value is _MISSING:
            return default
        self.delete(path)
        return value


class Request:
    """
    Inbound request carrying submitted form fields and a session.

    Args:
        data: Submitted fields
        session: Session to deliver flash messages to
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None, session: Optional[Session] = None):
        self.data = data if data is not None else {}
        self.session = session if session is not None else Session()

    def get(self, field: str) -> Optional[Any]:
        """Return the submitted value for field, or None when it is absent."""
        return self.data.get(field)
