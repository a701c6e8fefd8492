"""
LDAP Authenticate - Verify user credentials against an LDAP directory.

This package provides an authentication strategy that binds to an LDAP server
with the credentials from an inbound request and returns the user's directory
entry on success.
"""

__version__ = "1.0.0"
__author__ = "LDAP Authenticate Team"
