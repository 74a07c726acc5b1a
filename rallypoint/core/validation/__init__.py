"""
Validation primitives shared by the service layer.

Re-exports are explicit via __all__ to keep the public API intentional.
"""

from rallypoint.core.validation.input_validator import InputValidator

__all__ = [
    "InputValidator",
]
