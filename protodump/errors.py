"""Exception hierarchy for descriptor extraction."""

from __future__ import annotations


class ProtodumpError(Exception):
    """Base class for all fatal extraction errors."""


class DatabaseError(ProtodumpError):
    """Raised when encoded descriptor bytes cannot be added to the database."""


class PoolStateError(ProtodumpError):
    """Raised when descriptors are ingested after resolution has started."""


class ResolutionError(ProtodumpError):
    """Raised when a descriptor cannot be linked into the pool."""


class MissingDependencyError(ResolutionError):
    """Raised when an import is absent and unknown dependencies are not allowed."""

    def __init__(self, name: str, dependency: str):
        super().__init__(f"{name}: dependency '{dependency}' not found")
        self.name = name
        self.dependency = dependency


__all__ = [
    "ProtodumpError",
    "DatabaseError",
    "PoolStateError",
    "ResolutionError",
    "MissingDependencyError",
]
