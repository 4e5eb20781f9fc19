#!/usr/bin/env python3
"""
KUBECHARTER CONFIG PROCESSORS
-----------------------------
ConfigMaps and Secrets: the kinds whose payloads go through the value
classifier and, when large, binary or credential-shaped, out to the
external file store.

Author: KubeCharter Team
Date: 2026-10-17
"""

import base64
import binascii
from typing import Any, Dict

from kubecharter.core.accessors import nested_bool, nested_map, nested_string
from kubecharter.core.context import ProcessingContext
from kubecharter.core.models import ProcessingResult
from kubecharter.core.naming import resource_id
from kubecharter.core.processor import BaseProcessor, reject_empty
from kubecharter.processors.common import base_values, document, values_path_of
from kubecharter.rendering.template import Expr, ValueRef


def _decode_base64(value: Any) -> Any:
    """Secret data is base64; anything that does not decode is processed as given."""
    if not isinstance(value, str):
        return value
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return value


def _data_tree(vp: str, field: str, values: Dict[str, Any], base64_files: bool = False) -> Dict[str, Any]:
    """Template data block: external entries read their file, inline ones their value."""
    tree: Dict[str, Any] = {}
    for key, entry in values.get(field, {}).items():
        if isinstance(entry, dict) and "externalFile" in entry:
            expr = '.Files.Get "%s"' % entry["externalFile"]["path"]
            if base64_files:
                expr += " | b64enc"
            tree[key] = Expr("{{ " + expr + " }}")
        else:
            tree[key] = ValueRef(f"{vp}.{field}", keys=(key,), quote=True)
    return tree


class ConfigMapProcessor(BaseProcessor):

    def __init__(self):
        super().__init__("configmap", 100, [("", "v1", "ConfigMap")])

    def process(self, ctx: ProcessingContext, obj: Dict[str, Any]) -> ProcessingResult:
        reject_empty(obj, self.name)
        vp = values_path_of(obj)
        values = base_values(obj)
        files = []
        failures = []

        data, found = nested_map(obj, "data")
        if found and data:
            values["data"], placed, failed = self.place_data(ctx, obj, data)
            files.extend(placed)
            failures.extend(failed)

        binary_data, found = nested_map(obj, "binaryData")
        if found and binary_data:
            source = resource_id(obj)
            placed_values = {}
            for key in sorted(binary_data):
                encoded = binary_data[key]
                placement = ctx.place_value(source, key, _decode_base64(encoded))
                if placement.file is not None:
                    placed_values[key] = placement.values_entry()
                    if placement.file not in files:
                        files.append(placement.file)
                else:
                    # binaryData must stay base64 when inlined
                    placed_values[key] = encoded
                    if placement.error:
                        failures.append(key)
            values["binaryData"] = placed_values

        immutable, found = nested_bool(obj, "immutable")
        if found:
            values["immutable"] = immutable

        content: Dict[str, Any] = {}
        if "data" in values:
            content["data"] = _data_tree(vp, "data", values)
        if "binaryData" in values:
            content["binaryData"] = _data_tree(vp, "binaryData", values, base64_files=True)
        if "immutable" in values:
            content["immutable"] = ValueRef(f"{vp}.immutable")

        metadata = {}
        if failures:
            metadata["externalization_failures"] = failures
        if files:
            metadata["checksum_annotation"] = ctx.file_store.checksum_annotation(files)

        return self.build_result(
            obj, values,
            external_files=files,
            metadata=metadata,
            template=document(ctx, obj, vp, values, content),
        )


class SecretProcessor(BaseProcessor):
    """
    Secret payloads are decoded before classification so that certificates
    and keys are recognised. Inline entries keep their original encoding.
    """

    def __init__(self):
        super().__init__("secret", 100, [("", "v1", "Secret")])

    def process(self, ctx: ProcessingContext, obj: Dict[str, Any]) -> ProcessingResult:
        reject_empty(obj, self.name)
        vp = values_path_of(obj)
        values = base_values(obj)
        source = resource_id(obj)
        files = []
        failures = []
        sensitive = []

        secret_type, found = nested_string(obj, "type")
        values["type"] = secret_type if found and secret_type else "Opaque"

        for field, decode in (("data", True), ("stringData", False)):
            entries, found = nested_map(obj, field)
            if not found or not entries:
                continue
            placed_values = {}
            for key in sorted(entries):
                raw = entries[key]
                placement = ctx.place_value(source, key, _decode_base64(raw) if decode else raw)
                sensitive.append(key)
                if placement.file is not None:
                    placed_values[key] = placement.values_entry()
                    if placement.file not in files:
                        files.append(placement.file)
                else:
                    placed_values[key] = raw
                    if placement.error:
                        failures.append(key)
            values[field] = placed_values

        immutable, found = nested_bool(obj, "immutable")
        if found:
            values["immutable"] = immutable

        content: Dict[str, Any] = {"type": ValueRef(f"{vp}.type", quote=True)}
        if "data" in values:
            content["data"] = _data_tree(vp, "data", values, base64_files=True)
        if "stringData" in values:
            content["stringData"] = _data_tree(vp, "stringData", values)
        if "immutable" in values:
            content["immutable"] = ValueRef(f"{vp}.immutable")

        metadata: Dict[str, Any] = {"sensitive": True, "sensitive_fields": sensitive}
        if failures:
            metadata["externalization_failures"] = failures
        if files:
            metadata["checksum_annotation"] = ctx.file_store.checksum_annotation(files)

        return self.build_result(
            obj, values,
            external_files=files,
            metadata=metadata,
            template=document(ctx, obj, vp, values, content),
        )
