#!/usr/bin/env python3
"""
Validation script for LDAP Authenticate.

Checks that dependencies import, that the package modules load, and that an
authentication round trip works against an in-memory directory.
"""

import sys
import importlib
import subprocess


def check_dependency(package_name, import_name=None):
    """Check if a package/module can be imported."""
    if import_name is None:
        import_name = package_name

    try:
        importlib.import_module(import_name)
        return True, f"✓ {package_name} available"
    except ImportError as e:
        return False, f"✗ {package_name} missing: {e}"


def validate_modules():
    """Validate third-party dependencies and package modules."""
    print("=== Module Validation ===")

    modules = [
        ("ldap3", "ldap3"),
        ("PyYAML", "yaml"),
        ("ldap_authenticate.config", None),
        ("ldap_authenticate.directory", None),
        ("ldap_authenticate.authenticator", None),
        ("ldap_authenticate.main", None),
    ]

    all_ok = True
    for name, import_name in modules:
        ok, message = check_dependency(name, import_name)
        print(f"  {message}")
        all_ok = all_ok and ok
    return all_ok


def validate_functionality():
    """Authenticate against ldap3's offline mock server."""
    print("\n=== Functionality Validation ===")

    try:
        from ldap3 import MOCK_SYNC
        from ldap_authenticate.authenticator import LdapAuthenticator
        from ldap_authenticate.request import Request

        user_dn = 'mail=jdoe@example.com,ou=people,dc=example,dc=com'

        authenticator = LdapAuthenticator({
            'host': 'ldap.example.com',
            'options': {'client_strategy': MOCK_SYNC},
            'base_dn': 'ou=people,dc=example,dc=com',
            'domain': 'example.com',
        })
        authenticator.directory.connection.strategy.add_entry(user_dn, {
            'objectClass': 'inetOrgPerson',
            'mail': 'jdoe@example.com',
            'cn': 'John Doe',
            'userPassword': 'secret',
        })

        with authenticator:
            user = authenticator.authenticate(Request({'username': 'jdoe', 'password': 'secret'}))
            rejected = authenticator.authenticate(Request({'username': 'jdoe', 'password': 'wrong'}))

        if user and user['dn'] == user_dn and rejected is None:
            print("  ✓ Bind and search round trip")
            return True
        print(f"  ✗ Unexpected authentication result: {user!r} / {rejected!r}")
        return False

    except Exception as e:
        print(f"  ✗ Functionality test failed: {e}")
        return False


def validate_cli():
    """Validate command-line interface."""
    print("\n=== CLI Validation ===")

    result = subprocess.run([sys.executable, "-m", "ldap_authenticate.main", "--help"],
                            capture_output=True, text=True)
    if result.returncode == 0:
        print("  ✓ Help command working")
        return True
    print("  ✗ Help command failed")
    return False


def main():
    """Run all validations."""
    print("LDAP Authenticate - Installation Validation")
    print("=" * 50)

    all_validations = [
        validate_modules(),
        validate_functionality(),
        validate_cli(),
    ]

    print("\n=== Summary ===")
    if all(all_validations):
        print("✓ All validations passed!")
        print("\nNext steps:")
        print("  1. Copy config.example.yaml to config.yaml and set your directory details")
        print("  2. Check it with: ldap-authenticate --check")
        print("  3. Try a login with: ldap-authenticate --username <user>")
        return 0
    print("✗ Some validations failed!")
    return 1


if __name__ == "__main__":
    sys.exit(main())
