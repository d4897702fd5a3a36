"""
Exception types raised by the lifecycle controller.
"""

from typing import Optional


class NodemanError(Exception):
    """Base class for controller errors."""


class ProviderError(NodemanError):
    """An external cloud API call failed."""

    def __init__(self, operation: str, resource: Optional[str] = None, cause: Optional[BaseException] = None):
        self.operation = operation
        self.resource = resource
        self.cause = cause
        target = f" on {resource}" if resource else ""
        detail = f": {cause}" if cause else ""
        super().__init__(f"{operation} failed{target}{detail}")


class PolicyTagError(NodemanError, ValueError):
    """A policy tag carries a value that cannot be interpreted."""

    def __init__(self, key: str, value: str, reason: str = "invalid format"):
        self.key = key
        self.value = value
        super().__init__(f"Tag {key}={value!r}: {reason}")
