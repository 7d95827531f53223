"""Pure parameter validation against the capability catalogue."""

from .validator import validate

__all__ = ["validate"]
