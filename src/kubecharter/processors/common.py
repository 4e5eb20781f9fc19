#!/usr/bin/env python3
"""
Shared building blocks for the bundled transformation units: the values
every resource carries, and the metadata block of its template tree.
"""

from typing import Any, Dict, Optional

from kubecharter.core.accessors import annotations_of, labels_of, name_of, namespace_of
from kubecharter.core.context import ProcessingContext
from kubecharter.core.naming import service_name_from_resource, values_path
from kubecharter.dependencies.extractor import CLUSTER_SCOPED_KINDS
from kubecharter.rendering.template import Expr, TemplateDocument, ValueRef, enabled_guard


def values_path_of(obj: Dict[str, Any]) -> str:
    return values_path(str(obj.get("kind") or ""), service_name_from_resource(obj), name_of(obj))


def base_values(obj: Dict[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {"enabled": True}
    labels = labels_of(obj)
    if labels:
        values["labels"] = labels
    annotations = annotations_of(obj)
    if annotations:
        values["annotations"] = annotations
    return values


def copy_present(values: Dict[str, Any], source: Dict[str, Any], *fields: str):
    """Copies fields that exist in source; absent optional fields leave no key."""
    for field in fields:
        if field in source and source[field] is not None:
            values[field] = source[field]


def metadata_tree(ctx: ProcessingContext, obj: Dict[str, Any], vp: str,
                  values: Dict[str, Any]) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        "name": Expr("{{ include \"%s.fullname\" . }}-%s" % (ctx.chart_name, name_of(obj))),
    }
    if namespace_of(obj) and obj.get("kind") not in CLUSTER_SCOPED_KINDS:
        metadata["namespace"] = Expr("{{ .Release.Namespace }}")
    if "labels" in values:
        metadata["labels"] = ValueRef(f"{vp}.labels", structured=True)
    if "annotations" in values:
        metadata["annotations"] = ValueRef(f"{vp}.annotations", structured=True)
    return metadata


def document(ctx: ProcessingContext, obj: Dict[str, Any], vp: str, values: Dict[str, Any],
             content: Optional[Dict[str, Any]] = None) -> TemplateDocument:
    """A guarded template whose body is the resource header plus content."""
    body: Dict[str, Any] = {
        "apiVersion": obj.get("apiVersion"),
        "kind": obj.get("kind"),
        "metadata": metadata_tree(ctx, obj, vp, values),
    }
    body.update(content or {})
    return TemplateDocument(body=body, guard=enabled_guard(vp))


def structured_refs(vp: str, values: Dict[str, Any], *fields: str) -> Dict[str, ValueRef]:
    """ValueRefs for the given fields that made it into values."""
    return {field: ValueRef(f"{vp}.{field}", structured=True) for field in fields if field in values}
