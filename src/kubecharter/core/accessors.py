#!/usr/bin/env python3
"""
KUBECHARTER ACCESSORS
---------------------
Typed readers over the generic property tree of a resource object.

Every accessor returns a (value, found) pair. A field that exists but has
the wrong type is reported as not found; values are never coerced.
"""

from typing import Any, Dict, List, Optional, Tuple

_MISSING = object()


def _walk(obj: Any, path: Tuple[str, ...]) -> Any:
    current = obj
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return _MISSING
        current = current[key]
    return current


def nested_field(obj: Dict[str, Any], *path: str) -> Tuple[Any, bool]:
    value = _walk(obj, path)
    if value is _MISSING:
        return None, False
    return value, True


def nested_string(obj: Dict[str, Any], *path: str) -> Tuple[str, bool]:
    value = _walk(obj, path)
    if isinstance(value, str):
        return value, True
    return "", False


def nested_bool(obj: Dict[str, Any], *path: str) -> Tuple[bool, bool]:
    value = _walk(obj, path)
    if isinstance(value, bool):
        return value, True
    return False, False


def nested_int(obj: Dict[str, Any], *path: str) -> Tuple[int, bool]:
    value = _walk(obj, path)
    # bool is an int subclass; a YAML 'true' is not a replica count
    if isinstance(value, int) and not isinstance(value, bool):
        return value, True
    return 0, False


def nested_map(obj: Dict[str, Any], *path: str) -> Tuple[Dict[str, Any], bool]:
    value = _walk(obj, path)
    if isinstance(value, dict):
        return value, True
    return {}, False


def nested_string_map(obj: Dict[str, Any], *path: str) -> Tuple[Dict[str, str], bool]:
    value = _walk(obj, path)
    if isinstance(value, dict) and all(isinstance(v, str) for v in value.values()):
        return {str(k): v for k, v in value.items()}, True
    return {}, False


def nested_list(obj: Dict[str, Any], *path: str) -> Tuple[List[Any], bool]:
    value = _walk(obj, path)
    if isinstance(value, list):
        return value, True
    return [], False


def string_of(mapping: Any, key: str) -> Optional[str]:
    """Reads a non-empty string entry from a dict-like item, else None."""
    if not isinstance(mapping, dict):
        return None
    value = mapping.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def labels_of(obj: Dict[str, Any]) -> Dict[str, str]:
    labels, _ = nested_string_map(obj, "metadata", "labels")
    return labels


def annotations_of(obj: Dict[str, Any]) -> Dict[str, str]:
    annotations, _ = nested_string_map(obj, "metadata", "annotations")
    return annotations


def name_of(obj: Dict[str, Any]) -> str:
    name, _ = nested_string(obj, "metadata", "name")
    return name


def namespace_of(obj: Dict[str, Any]) -> str:
    namespace, _ = nested_string(obj, "metadata", "namespace")
    return namespace
