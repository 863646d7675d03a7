# -*- coding: utf-8 -*-
"""Exceptions raised by the warp field and its rigid-motion algebra."""

from __future__ import annotations


class WarpFieldError(Exception):
    """Base class for warp field errors."""


class UninitializedFieldError(WarpFieldError, RuntimeError):
    """Query or update attempted before `init` established at least one node."""


class InvalidSampleError(WarpFieldError, ValueError):
    """A non-finite sample position was met during observation intake."""

    def __init__(self, index: int):
        super().__init__(f"non-finite sample position at index {index}")
        self.index = index


class DegenerateBlendError(WarpFieldError, ArithmeticError):
    """Blended motion has zero weight or zero rotation magnitude."""
