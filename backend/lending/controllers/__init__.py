# Controllers package initialization
# This file makes the controllers directory a Python package
# and allows importing controller modules

from . import health_controller, loan_controller

__all__ = [
    "health_controller",
    "loan_controller",
]
