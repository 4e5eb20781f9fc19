#!/usr/bin/env python3
"""
KUBECHARTER NAMING
------------------
Service-name detection and the path conventions used to place a resource's
template and values subtree inside the package.
"""

import re
from typing import Any, Dict

from kubecharter.core.accessors import labels_of, name_of, namespace_of

# Checked in order; the first non-empty label wins
SERVICE_LABELS = (
    "app.kubernetes.io/name",
    "app.kubernetes.io/instance",
    "app",
    "name",
    "component",
)

_VALUES_KEYS = {
    "ConfigMap": "configMaps",
    "Secret": "secrets",
    "HorizontalPodAutoscaler": "hpa",
    "PodDisruptionBudget": "pdb",
    "PersistentVolumeClaim": "persistentVolumeClaims",
}

_FILE_NAMES = {
    "PersistentVolumeClaim": "pvc",
    "HorizontalPodAutoscaler": "hpa",
    "PodDisruptionBudget": "pdb",
}

_SEPARATORS = re.compile(r"[-_.]+")
_UNSAFE_PATH_CHARS = re.compile(r"[^a-z0-9._-]+")


def service_name_from_resource(obj: Dict[str, Any]) -> str:
    """Logical service grouping: well-known labels first, then the resource's own name."""
    labels = labels_of(obj)
    for label in SERVICE_LABELS:
        value = labels.get(label)
        if value:
            return value
    return name_of(obj)


def sanitize_key(name: str, fallback: str = "resource") -> str:
    """
    Converts a resource name into a values-file key: 'app-config.v2' becomes
    'appConfigV2'. Characters outside [A-Za-z0-9] are dropped.
    """
    parts = [p for p in _SEPARATORS.split(name or "") if p]
    words = []
    for part in parts:
        clean = "".join(c for c in part if c.isascii() and c.isalnum())
        if not clean:
            continue
        if not words:
            words.append(clean[0].lower() + clean[1:])
        else:
            words.append(clean[0].upper() + clean[1:])
    return "".join(words) or fallback


def sanitize_path_segment(text: str, fallback: str = "item") -> str:
    """Lowercases and strips a string down to a single safe relative path segment."""
    segment = _UNSAFE_PATH_CHARS.sub("-", (text or "").lower()).strip("-")
    # Leading dots would allow '.' and '..' segments
    segment = segment.lstrip(".").strip("-")
    return segment or fallback


def kind_values_key(kind: str) -> str:
    if kind in _VALUES_KEYS:
        return _VALUES_KEYS[kind]
    if not kind:
        return kind
    return kind[0].lower() + kind[1:]


def kind_file_name(kind: str) -> str:
    return _FILE_NAMES.get(kind, kind.lower())


def values_path(kind: str, service_name: str, resource_name: str) -> str:
    """services.<service>.<kindKey>.<name> - unique per resource within a service."""
    return ".".join((
        "services",
        sanitize_key(service_name, fallback="default"),
        kind_values_key(kind),
        sanitize_key(resource_name),
    ))


def template_path(kind: str, service_name: str, resource_name: str) -> str:
    return "templates/{}-{}-{}.yaml".format(
        sanitize_path_segment(service_name, fallback="default"),
        kind_file_name(kind),
        sanitize_path_segment(resource_name),
    )


def resource_id(obj: Dict[str, Any]) -> str:
    """'Kind/namespace/name' provenance string for a source object."""
    kind = str(obj.get("kind") or "Unknown")
    namespace = namespace_of(obj)
    if namespace:
        return f"{kind}/{namespace}/{name_of(obj)}"
    return f"{kind}/{name_of(obj)}"
