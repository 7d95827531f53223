"""Permission subsystem.

``PermissionChecker`` decides, per invocation and without caching, whether a
caller may run a capability against the thread, message or user referenced
by its parameters. Any doubt is a denial.
"""

from .permission import PermissionChecker

__all__ = ["PermissionChecker"]
