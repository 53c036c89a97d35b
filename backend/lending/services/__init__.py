# Services package initialization
# This file makes the services directory a Python package
# and allows importing service modules

from . import loan_service

__all__ = [
    "loan_service",
]
