#!/usr/bin/env python3
"""
KUBECHARTER TRANSFORMATION UNITS
--------------------------------
Base class for the per-kind units ("processors") held by the registry.

A unit declares the Group/Version/Kind triples it understands and a
priority, and turns one source object into one ProcessingResult.
"""

import copy
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from kubecharter.core.accessors import name_of, namespace_of
from kubecharter.core.context import Placement, ProcessingContext
from kubecharter.core.errors import InputRejectedError
from kubecharter.core.models import ExternalFileRef, GroupVersionKind, ProcessingResult, ResourceKey
from kubecharter.core.naming import resource_id, service_name_from_resource, template_path, values_path

GVKLike = Union[GroupVersionKind, Tuple[str, str, str]]


def as_gvk(value: GVKLike) -> GroupVersionKind:
    if isinstance(value, GroupVersionKind):
        return value
    group, version, kind = value
    return GroupVersionKind(group=group, version=version, kind=kind)


def reject_empty(obj: Any, unit_name: str = "registry"):
    """Fail fast on the one input that aborts a resource: nothing to process."""
    if obj is None:
        raise InputRejectedError(f"{unit_name}: source object is None")
    if not isinstance(obj, dict):
        raise InputRejectedError(
            f"{unit_name}: source object must be a mapping",
            {"type": type(obj).__name__},
        )
    if not obj:
        raise InputRejectedError(f"{unit_name}: source object is empty")


class BaseProcessor:
    """
    Common plumbing for transformation units. Subclasses implement
    process() and usually call build_result() at the end.
    """

    def __init__(self, name: str, priority: int, gvks: Sequence[GVKLike]):
        self.name = name
        self.priority = priority
        self._gvks = [as_gvk(g) for g in gvks]

    def supports(self) -> List[GroupVersionKind]:
        return list(self._gvks)

    def process(self, ctx: ProcessingContext, obj: Dict[str, Any]) -> ProcessingResult:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} priority={self.priority}>"

    def build_result(self, obj: Dict[str, Any], values: Dict[str, Any],
                     dependencies: Iterable[ResourceKey] = (),
                     external_files: Iterable[ExternalFileRef] = (),
                     metadata: Optional[Dict[str, Any]] = None,
                     template: Any = None) -> ProcessingResult:
        """values and metadata are deep-copied: the result never aliases obj."""
        kind = str(obj.get("kind") or "")
        name = name_of(obj)
        service_name = service_name_from_resource(obj)

        base_metadata = {"name": name, "namespace": namespace_of(obj)}
        base_metadata.update(copy.deepcopy(metadata or {}))

        return ProcessingResult(
            processed=True,
            service_name=service_name,
            template_path=template_path(kind, service_name, name),
            values_path=values_path(kind, service_name, name),
            values=copy.deepcopy(values),
            dependencies=tuple(dependencies),
            external_files=tuple(external_files),
            metadata=base_metadata,
            template=template,
            processor=self.name,
        )

    def place_data(self, ctx: ProcessingContext, obj: Dict[str, Any],
                   data: Dict[str, Any]) -> Tuple[Dict[str, Any], List[ExternalFileRef], List[str]]:
        """
        Runs every entry of a data map through the classifier and store.
        Returns (values, files, failed keys); failed keys were inlined.
        """
        source = resource_id(obj)
        values: Dict[str, Any] = {}
        files: List[ExternalFileRef] = []
        failures: List[str] = []

        for key in sorted(data):
            placement: Placement = ctx.place_value(source, key, data[key])
            values[key] = placement.values_entry()
            if placement.file is not None and placement.file not in files:
                files.append(placement.file)
            if placement.error:
                failures.append(key)

        return values, files, failures
