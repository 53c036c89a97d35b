"""
Test configuration package.

Holds marker registration and collection rules used by conftest.py.
"""
