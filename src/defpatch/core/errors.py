# src/defpatch/core/errors.py
"""
Exception types for the defpatch engine.

Document-level errors (MalformedDocumentError) are fatal and abort a run.
Operation-level errors (subclasses of PatchOperationError) are raised by the
operation handlers and converted into Failed outcomes by the engine, so they
never escape a run.
"""
from typing import Optional


class DefPatchError(Exception):
    """Base exception for all defpatch errors."""

    pass


class MalformedDocumentError(DefPatchError):
    """Raised when markup is not well-formed or violates sibling uniqueness."""

    def __init__(self, source: str, reason: str):
        """
        Args:
            source: File name or label of the offending document.
            reason: Why the document was rejected.
        """
        self.source = source
        self.reason = reason
        super().__init__(f"Malformed document '{source}': {reason}")


class PatchOperationError(DefPatchError):
    """Base class for errors local to a single operation."""

    def __init__(self, reason: str, path: Optional[str] = None):
        self.reason = reason
        self.path = path
        if path:
            super().__init__(f"{reason} (path: {path})")
        else:
            super().__init__(reason)


class EmptyTargetError(PatchOperationError):
    """The operation's path resolved to no targets."""

    def __init__(self, path: Optional[str] = None, reason: str = "path matched no targets"):
        super().__init__(reason, path)


class CollisionError(PatchOperationError):
    """Adding, inserting or renaming would duplicate a non-list sibling tag."""

    def __init__(self, tag: str, path: Optional[str] = None):
        self.tag = tag
        super().__init__(f"a non-list child <{tag}> already exists", path)


class PayloadError(PatchOperationError):
    """The operation's payload is missing, malformed, or unsupported."""

    pass


class InheritanceError(DefPatchError):
    """Raised when template inheritance cannot be resolved (e.g. a cycle)."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Cannot resolve inheritance for '{name}': {reason}")


class ConfigurationError(DefPatchError):
    """Raised when a user settings file cannot be loaded."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid settings file '{source}': {reason}")
