"""
Test doubles for the directory capability.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ldap_authenticate.directory import Directory


class RecordingDirectory(Directory):
    """Directory fake that records every call and replays canned outcomes."""

    def __init__(self, bind_result=True, bind_error=None, entries=None, diagnostic='',
                 connect_error=None, search_error=None, diagnostic_error=None,
                 unbind_error=None, close_error=None):
        self.calls = []
        self.bind_result = bind_result
        self.bind_error = bind_error
        self.entries = entries if entries is not None else []
        self.diagnostic = diagnostic
        self.connect_error = connect_error
        self.search_error = search_error
        self.diagnostic_error = diagnostic_error
        self.unbind_error = unbind_error
        self.close_error = close_error

    def operations(self):
        return [call[0] for call in self.calls]

    def connect(self, host, port=None, options=None):
        self.calls.append(('connect', host, port, options))
        if self.connect_error:
            raise self.connect_error

    def bind(self, dn, password):
        self.calls.append(('bind', dn))
        if self.bind_error:
            raise self.bind_error
        return self.bind_result

    def search(self, base, search_filter):
        self.calls.append(('search', base, search_filter))
        if self.search_error:
            raise self.search_error
        return list(self.entries)

    def first_entry(self, result):
        self.calls.append(('first_entry',))
        return result[0] if result else None

    def attributes(self, entry):
        self.calls.append(('attributes',))
        return entry

    def get_diagnostic(self):
        self.calls.append(('get_diagnostic',))
        if self.diagnostic_error:
            raise self.diagnostic_error
        return self.diagnostic

    def unbind(self):
        self.calls.append(('unbind',))
        if self.unbind_error:
            raise self.unbind_error

    def close(self):
        self.calls.append(('close',))
        if self.close_error:
            raise self.close_error
