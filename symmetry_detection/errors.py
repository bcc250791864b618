"""Exceptions raised by the symmetry detection pipeline."""

from __future__ import annotations


class InvalidParameterError(ValueError):
    """Raised when a detection parameter is outside its valid range."""


class PreconditionError(RuntimeError):
    """Raised when a pipeline stage is invoked before its inputs exist.

    This is distinct from an empty result: a detection run that finds no
    symmetries completes normally, while calling :meth:`filter` on a session
    that never ran :meth:`detect` raises this error.
    """
