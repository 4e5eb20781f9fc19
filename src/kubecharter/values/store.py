#!/usr/bin/env python3
"""
KUBECHARTER EXTERNAL FILE STORE - The Vault
-------------------------------------------
Content-addressed storage for externalized payloads. The checksum is the
address: byte-identical content coming from different resources is stored
once and always answers with the same relative path.

The content-address map is the one piece of shared mutable state in the
engine. Lookup, persistence and insertion happen under a single lock so
two workers can never both treat the same checksum as a miss.

Author: KubeCharter Team
Date: 2026-10-17
"""

import logging
import os
import threading
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Tuple

from kubecharter.core.errors import ExternalizationError
from kubecharter.core.models import ClassifiedValue, DataType, ExternalFileRef
from kubecharter.core.naming import sanitize_path_segment

logger = logging.getLogger("kubecharter.store")

FILES_ROOT = "files"

# (checksum, detected type)
Address = Tuple[str, DataType]

HELPERS_TEMPLATE = """{{/*
Get file content with fallback
Usage: {{ include "<chart>.getFile" (dict "Files" .Files "path" "files/config.json" "default" "fallback") }}
*/}}
{{- define "<chart>.getFile" -}}
{{- $path := .path -}}
{{- $default := .default | default "" -}}
{{- .Files.Get $path | default $default -}}
{{- end -}}

{{/*
Get file content as base64
Usage: {{ include "<chart>.getFileBase64" (dict "Files" .Files "path" "files/data.bin") }}
*/}}
{{- define "<chart>.getFileBase64" -}}
{{- $path := .path -}}
{{- .Files.Get $path | b64enc -}}
{{- end -}}
"""

_EXTENSIONS = {
    DataType.JSON: ".json",
    DataType.YAML: ".yaml",
    DataType.CREDENTIAL: ".pem",
    DataType.BINARY: ".bin",
    DataType.PLAIN: ".txt",
    DataType.UNKNOWN: ".txt",
}


class MemoryWriter:
    """Keeps persisted payloads in a dict; the default for dry runs and tests."""

    def __init__(self):
        self.contents: Dict[str, bytes] = {}

    def write(self, path: str, content: bytes):
        self.contents[path] = content

    def read(self, path: str) -> Optional[bytes]:
        return self.contents.get(path)


class DirectoryWriter:
    """Persists payloads below a package root using temp-file-and-replace writes."""

    def __init__(self, root: str):
        self.root = Path(root).resolve()

    def write(self, path: str, content: bytes):
        target = self.root.joinpath(*PurePosixPath(path).parts)
        target.parent.mkdir(parents=True, exist_ok=True)
        temp_file = target.with_name(target.name + ".kubecharter.tmp")
        try:
            temp_file.write_bytes(content)
            os.replace(temp_file, target)
        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise IOError(f"Atomic write failed for {path}: {e}")

    def read(self, path: str) -> Optional[bytes]:
        target = self.root.joinpath(*PurePosixPath(path).parts)
        if not target.exists():
            return None
        return target.read_bytes()


class ExternalFileStore:
    """
    Deduplicating store keyed by content address: the checksum plus the
    detected type. A type is part of the address because it picks the file
    extension and the values reference; the number 5 and the string "5"
    hash alike but are stored apart.

    Paths are synthesized from the first source resource and key that
    produced a payload. When that path already belongs to different content
    a short checksum suffix is appended before the extension.
    """

    def __init__(self, writer=None, write_attempts: int = 2):
        self.writer = writer if writer is not None else MemoryWriter()
        self.write_attempts = max(1, write_attempts)
        self._lock = threading.Lock()
        self._by_address: Dict[Address, ExternalFileRef] = {}
        self._by_path: Dict[str, Address] = {}
        self._provenance: Dict[Address, List[str]] = {}

    def add_from_classified(self, source_resource: str, key: str,
                            classified: ClassifiedValue) -> ExternalFileRef:
        """
        Stores a classified payload, or returns the ref already holding its bytes.
        Raises ExternalizationError when persistence keeps failing; the caller
        is expected to inline the value instead.
        """
        address = (classified.checksum, classified.detected_type)
        with self._lock:
            existing = self._by_address.get(address)
            if existing is not None:
                self._provenance[address].append(source_resource)
                logger.debug(f"Reusing {existing.path} for {source_resource}:{key}")
                return existing

            path = self._claim_path(source_resource, key, classified)
            self._persist(path, classified)

            ref = ExternalFileRef(
                path=path,
                checksum=classified.checksum,
                detected_type=classified.detected_type,
                source_resource=source_resource,
                source_key=key,
            )
            self._by_address[address] = ref
            self._by_path[path] = address
            self._provenance[address] = [source_resource]
            return ref

    def _claim_path(self, source_resource: str, key: str, classified: ClassifiedValue) -> str:
        base = self.synthesize_path(source_resource, key, classified.detected_type)
        if base not in self._by_path:
            return base

        stem, dot, ext = base.rpartition(".")
        if not dot:
            stem, ext = base, ""
        # Lengthen the suffix until it is free; the type name settles a full-checksum tie
        suffixes = [classified.checksum[:width] for width in range(8, len(classified.checksum) + 1, 8)]
        suffixes.append(f"{classified.checksum}-{classified.detected_type.value}")
        for suffix in suffixes:
            candidate = f"{stem}-{suffix}.{ext}" if ext else f"{stem}-{suffix}"
            if candidate not in self._by_path:
                return candidate
        raise ExternalizationError(
            "No free path for payload",
            {"path": base, "checksum": classified.checksum},
        )

    def _persist(self, path: str, classified: ClassifiedValue):
        last_error = None
        for attempt in range(1, self.write_attempts + 1):
            try:
                self.writer.write(path, classified.raw)
                return
            except OSError as e:
                last_error = e
                logger.warning(f"Write attempt {attempt}/{self.write_attempts} failed for {path}: {e}")
        raise ExternalizationError(
            f"Failed to persist {path}",
            {"checksum": classified.checksum, "error": str(last_error)},
        )

    @staticmethod
    def synthesize_path(source_resource: str, key: str, detected_type: DataType) -> str:
        """files/<source>/<key><ext> with every segment reduced to safe characters."""
        source_segment = "-".join(
            sanitize_path_segment(part) for part in source_resource.split("/") if part
        ) or "resource"
        key_segment = sanitize_path_segment(key, fallback="value")
        if "." not in key_segment:
            key_segment += _EXTENSIONS.get(detected_type, ".txt")
        return f"{FILES_ROOT}/{source_segment}/{key_segment}"

    def files(self) -> List[ExternalFileRef]:
        with self._lock:
            return sorted(self._by_address.values(), key=lambda ref: ref.path)

    def provenance(self, checksum: str) -> List[str]:
        """Every source that produced content with this checksum, in arrival order."""
        with self._lock:
            sources: List[str] = []
            for (address_checksum, _), entries in self._provenance.items():
                if address_checksum == checksum:
                    sources.extend(entries)
            return sources

    def get(self, path: str) -> Optional[ExternalFileRef]:
        with self._lock:
            address = self._by_path.get(path)
            return self._by_address.get(address) if address else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_address)

    @staticmethod
    def values_reference(ref: ExternalFileRef) -> Dict[str, object]:
        """Values-tree stand-in for an externalized payload."""
        return {
            "externalFile": {
                "enabled": True,
                "path": ref.path,
                "checksum": ref.checksum,
                "type": ref.detected_type.value,
            }
        }

    def values_structure(self) -> Dict[str, object]:
        """
        The top-level 'externalFiles' values block listing every stored file
        by path, with the resource and key that first produced it. Empty
        when nothing was externalized.
        """
        refs = self.files()
        if not refs:
            return {}
        return {
            "externalFiles": {
                "enabled": True,
                "files": {
                    ref.path: {
                        "path": ref.path,
                        "source": ref.source_resource,
                        "key": ref.source_key,
                        "type": ref.detected_type.value,
                        "checksum": ref.checksum,
                    }
                    for ref in refs
                },
            }
        }

    @staticmethod
    def helm_helpers(chart_name: str) -> str:
        """_helpers.tpl definitions for reading stored files from templates."""
        return HELPERS_TEMPLATE.replace("<chart>", chart_name)

    @staticmethod
    def checksum_annotation(refs: Iterable[ExternalFileRef]) -> str:
        """'path:checksum,...' used to roll workloads when externalized content changes."""
        return ",".join(f"{ref.path}:{ref.checksum}" for ref in refs)
