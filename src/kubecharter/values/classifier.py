#!/usr/bin/env python3
"""
KUBECHARTER VALUE CLASSIFIER - The Assayer
------------------------------------------
Inspects configuration payloads (ConfigMap/Secret data, embedded documents)
and decides how they should travel into the package: inline in the values
tree, or as a content-addressed side file.

Detection runs in a fixed priority order:
  1. structured text  (JSON, then multi-line YAML documents)
  2. PEM credential material
  3. binary           (undecodable bytes or mostly non-printable text)
  4. plain text

The classifier holds only its thresholds, so one instance can be shared by
every worker thread. ruamel.yaml objects are not thread-safe, so a fresh
YAML instance is built per call.

Author: KubeCharter Team
Date: 2026-10-17
"""

import base64
import hashlib
import io
import json
import re
from typing import Any, Dict, Tuple

from ruamel.yaml import YAML, YAMLError

from kubecharter.core.models import ClassifiedValue, DataType

PEM_BLOCK = re.compile(r"-----BEGIN [A-Z0-9 ]+-----.*?-----END [A-Z0-9 ]+-----", re.DOTALL)

# Control characters that still count as printable text
_TEXT_WHITESPACE = frozenset("\n\r\t\f\v")


def _safe_yaml() -> YAML:
    return YAML(typ="safe", pure=True)


def _canonical_yaml() -> YAML:
    yaml = YAML(typ="rt")
    yaml.preserve_quotes = True
    # Same layout as rendered templates: 2-space maps, sequences offset 2
    yaml.indent(mapping=2, sequence=4, offset=2)
    yaml.width = 4096
    return yaml


class ValueClassifier:
    """
    Pure function object: classify(key, raw) depends only on its arguments
    and the thresholds fixed at construction.
    """

    def __init__(self, size_threshold: int = 1024, structured_size_threshold: int = 512,
                 line_threshold: int = 20, binary_ratio: float = 0.3):
        self.size_threshold = size_threshold
        self.structured_size_threshold = structured_size_threshold
        self.line_threshold = line_threshold
        self.binary_ratio = binary_ratio

    def classify(self, key: str, raw: Any) -> ClassifiedValue:
        """Detects, fingerprints and formats a single payload."""
        raw_bytes, text, detected = self._decode(raw)

        if detected is None:
            detected = self.detect_type(text)

        size = len(raw_bytes)
        line_count = len(text.splitlines()) if text else 0

        return ClassifiedValue(
            key=key,
            raw=raw_bytes,
            formatted_value=self._format(text, raw_bytes, detected),
            detected_type=detected,
            checksum=checksum_of(raw_bytes),
            should_externalize=self._should_externalize(detected, size, line_count),
            size=size,
            line_count=line_count,
        )

    def classify_many(self, data: Dict[str, Any]) -> Dict[str, ClassifiedValue]:
        return {key: self.classify(key, value) for key, value in data.items()}

    def detect_type(self, text: str) -> DataType:
        if not text:
            return DataType.PLAIN
        if self._looks_like_json(text):
            return DataType.JSON
        if self._looks_like_yaml(text):
            return DataType.YAML
        if PEM_BLOCK.search(text):
            return DataType.CREDENTIAL
        if self._non_printable_ratio(text) > self.binary_ratio:
            return DataType.BINARY
        return DataType.PLAIN

    def _decode(self, raw: Any) -> Tuple[bytes, str, Any]:
        """Returns (bytes, text, forced type or None)."""
        if isinstance(raw, bytes):
            try:
                return raw, raw.decode("utf-8"), None
            except UnicodeDecodeError:
                return raw, "", DataType.BINARY
        if isinstance(raw, str):
            return raw.encode("utf-8"), raw, None
        # Numbers, booleans, None: not a payload shape we understand
        text = "" if raw is None else str(raw)
        return text.encode("utf-8"), text, DataType.UNKNOWN

    def _looks_like_json(self, text: str) -> bool:
        stripped = text.strip()
        if not stripped or stripped[0] not in "{[":
            return False
        try:
            json.loads(stripped)
        except ValueError:
            return False
        return True

    def _looks_like_yaml(self, text: str) -> bool:
        # Any single line parses as a YAML scalar; only multi-line
        # documents that decode to a mapping or sequence count.
        if "\n" not in text.strip():
            return False
        try:
            doc = _safe_yaml().load(text)
        except (YAMLError, ValueError):
            return False
        return isinstance(doc, (dict, list)) and len(doc) > 0

    def _non_printable_ratio(self, text: str) -> float:
        unreadable = sum(1 for c in text if not c.isprintable() and c not in _TEXT_WHITESPACE)
        return unreadable / len(text)

    def _format(self, text: str, raw_bytes: bytes, detected: DataType) -> str:
        if detected == DataType.JSON:
            return json.dumps(json.loads(text), indent=2, ensure_ascii=False)
        if detected == DataType.YAML:
            return self._pretty_yaml(text)
        if detected == DataType.BINARY:
            return base64.b64encode(raw_bytes).decode("ascii")
        return text

    def _pretty_yaml(self, text: str) -> str:
        yaml = _canonical_yaml()
        try:
            doc = yaml.load(text)
            stream = io.StringIO()
            yaml.dump(doc, stream)
        except YAMLError:
            return text
        return stream.getvalue()

    def _should_externalize(self, detected: DataType, size: int, line_count: int) -> bool:
        if detected in (DataType.CREDENTIAL, DataType.BINARY):
            return True
        if size > self.size_threshold:
            return True
        if line_count > self.line_threshold:
            return True
        if detected.is_structured and size > self.structured_size_threshold:
            return True
        return False


def checksum_of(raw: bytes) -> str:
    """SHA-256 hex digest; the content address used by the file store."""
    return hashlib.sha256(raw).hexdigest()
