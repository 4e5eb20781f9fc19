#!/usr/bin/env python3
"""
KUBECHARTER CORE MODELS
-----------------------
Defines the fundamental data structures used across the KubeCharter engine:
resource identities, classified payloads, externalized file references and
the per-resource processing result handed to the package assembler.

Author: KubeCharter Team
Date: 2026-10-17
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class DataType(str, Enum):
    """Closed set of payload types the value classifier can detect."""
    PLAIN = "plain"
    JSON = "json"
    YAML = "yaml"
    CREDENTIAL = "credential"
    BINARY = "binary"
    UNKNOWN = "unknown"

    @property
    def is_structured(self) -> bool:
        return self in (DataType.JSON, DataType.YAML)


@dataclass(frozen=True)
class GroupVersionKind:
    """Type identity of a resource object."""
    group: str
    version: str
    kind: str

    @classmethod
    def from_api_version(cls, api_version: str, kind: str) -> "GroupVersionKind":
        """Splits 'apps/v1' into ('apps', 'v1'); a bare 'v1' is the core group."""
        api_version = api_version or ""
        if "/" in api_version:
            group, version = api_version.split("/", 1)
        else:
            group, version = "", api_version
        return cls(group=group, version=version, kind=kind or "")

    @classmethod
    def of(cls, obj: Dict[str, Any]) -> "GroupVersionKind":
        return cls.from_api_version(str(obj.get("apiVersion") or ""), str(obj.get("kind") or ""))

    def __str__(self) -> str:
        if self.group:
            return f"{self.group}/{self.version}, Kind={self.kind}"
        return f"{self.version}, Kind={self.kind}"


@dataclass(frozen=True)
class ResourceKey:
    """
    Identity of a reference target. A lookup/edge descriptor only: holding a
    ResourceKey says nothing about the lifetime of the resource it names.
    """
    group: str
    kind: str
    namespace: str
    name: str

    def __str__(self) -> str:
        if not self.namespace:
            return f"{self.kind}/{self.name}"
        return f"{self.kind}/{self.namespace}/{self.name}"


@dataclass(frozen=True)
class ClassifiedValue:
    """Output of the value classifier for one key/payload pair."""
    key: str
    raw: bytes
    formatted_value: str
    detected_type: DataType
    checksum: str
    should_externalize: bool
    size: int = 0
    line_count: int = 0


@dataclass(frozen=True)
class ExternalFileRef:
    """
    A file in the content-addressed store. The path is stable for a given
    checksum; source_resource and source_key record the first producer and
    are not part of identity.
    """
    path: str
    checksum: str
    detected_type: DataType
    source_resource: str = field(default="", compare=False)
    source_key: str = field(default="", compare=False)


@dataclass(frozen=True)
class ProcessingResult:
    """
    The output contract of every transformation unit.

    An unprocessed result carries nothing but an optional error signal;
    a processed one always carries both destination paths. values and
    metadata are owned by the result and share nothing with the source
    object. Results compare by value but are not hashable.
    """
    # values/metadata are dicts; an explicit None keeps dataclass from
    # generating a __hash__ that fails on them
    __hash__ = None

    processed: bool
    service_name: str = ""
    template_path: str = ""
    values_path: str = ""
    values: Dict[str, Any] = field(default_factory=dict)
    dependencies: Tuple[ResourceKey, ...] = ()
    external_files: Tuple[ExternalFileRef, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)
    template: Optional[Any] = None
    processor: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self):
        # Sequences are frozen so a result cannot grow after construction
        object.__setattr__(self, "dependencies", tuple(self.dependencies))
        object.__setattr__(self, "external_files", tuple(self.external_files))

        if self.processed:
            if not self.template_path or not self.values_path:
                raise ValueError("processed results require template_path and values_path")
            return

        populated = [
            name for name in ("service_name", "template_path", "values_path",
                              "values", "dependencies", "external_files",
                              "metadata", "template", "processor")
            if getattr(self, name)
        ]
        if populated:
            raise ValueError(f"unprocessed results must not populate: {', '.join(populated)}")

    @classmethod
    def unprocessed(cls, error: Optional[str] = None) -> "ProcessingResult":
        return cls(processed=False, error=error)

    @property
    def failed(self) -> bool:
        return self.error is not None
