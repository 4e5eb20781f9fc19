#!/usr/bin/env python3
"""
KUBECHARTER ERRORS
------------------
Exception hierarchy shared by the registry, the externalization engine
and the bundled transformation units.

Only InputRejectedError aborts the processing of a resource. Every other
failure is reported as data (an unprocessed result or an inline fallback).

Author: KubeCharter Team
Date: 2026-10-17
"""

from typing import Any, Dict, Optional


class KubeCharterError(Exception):
    """Base exception for all KubeCharter errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class InputRejectedError(KubeCharterError, ValueError):
    """A source object was None or empty."""


class ExternalizationError(KubeCharterError):
    """A classified value could not be persisted to the external file store."""


class RegistrySealedError(KubeCharterError, RuntimeError):
    """A unit was registered after dispatch had started."""


class ConfigError(KubeCharterError):
    """The engine configuration file is unreadable or holds invalid values."""
