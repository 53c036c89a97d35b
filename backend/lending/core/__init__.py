# Core package initialization
# Configuration, errors, logging and security helpers shared by every layer

from . import config, exceptions, security

__all__ = [
    "config",
    "exceptions",
    "security",
]
