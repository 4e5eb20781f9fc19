#!/usr/bin/env python3
"""
KUBECHARTER NETWORKING PROCESSORS
---------------------------------
Services and Ingresses. A Service's selector is matched against workload
names heuristically; see infer_owners_from_selector for what that edge
is worth.

Author: KubeCharter Team
Date: 2026-10-17
"""

from typing import Any, Dict

from kubecharter.core.accessors import nested_map, nested_string_map
from kubecharter.core.context import ProcessingContext
from kubecharter.core.models import ProcessingResult
from kubecharter.core.processor import BaseProcessor, reject_empty
from kubecharter.dependencies.extractor import DependencyExtractor, ingress_rule, selector_rule
from kubecharter.processors.common import base_values, copy_present, document, structured_refs, values_path_of
from kubecharter.rendering.template import ValueRef

SERVICE_FIELDS = (
    "ports", "clusterIP", "externalName", "externalTrafficPolicy",
    "internalTrafficPolicy", "sessionAffinity", "loadBalancerIP",
    "loadBalancerSourceRanges", "publishNotReadyAddresses", "ipFamilyPolicy",
)

INGRESS_FIELDS = ("ingressClassName", "defaultBackend", "rules", "tls")


class ServiceProcessor(BaseProcessor):

    def __init__(self):
        super().__init__("service", 100, [("", "v1", "Service")])
        self.extractor = DependencyExtractor([selector_rule])

    def process(self, ctx: ProcessingContext, obj: Dict[str, Any]) -> ProcessingResult:
        reject_empty(obj, self.name)
        vp = values_path_of(obj)
        values = base_values(obj)
        spec, _ = nested_map(obj, "spec")

        values["type"] = spec.get("type") or "ClusterIP"
        copy_present(values, spec, *SERVICE_FIELDS)
        selector, found = nested_string_map(obj, "spec", "selector")
        if found and selector:
            values["selector"] = selector

        dependencies = self.extractor.extract(obj)
        metadata = {}
        if dependencies:
            metadata["selector_inferred"] = True

        content = {"spec": {"type": ValueRef(f"{vp}.type", quote=True)}}
        content["spec"].update(structured_refs(vp, values, "selector", *SERVICE_FIELDS))

        return self.build_result(
            obj, values,
            dependencies=dependencies,
            metadata=metadata,
            template=document(ctx, obj, vp, values, content),
        )


class IngressProcessor(BaseProcessor):

    def __init__(self):
        super().__init__("ingress", 100, [
            ("networking.k8s.io", "v1", "Ingress"),
            ("networking.k8s.io", "v1beta1", "Ingress"),
            ("extensions", "v1beta1", "Ingress"),
        ])
        self.extractor = DependencyExtractor([ingress_rule])

    def process(self, ctx: ProcessingContext, obj: Dict[str, Any]) -> ProcessingResult:
        reject_empty(obj, self.name)
        vp = values_path_of(obj)
        values = base_values(obj)
        spec, _ = nested_map(obj, "spec")
        copy_present(values, spec, *INGRESS_FIELDS)

        hosts = sorted({
            rule["host"] for rule in values.get("rules") or []
            if isinstance(rule, dict) and isinstance(rule.get("host"), str)
        })

        return self.build_result(
            obj, values,
            dependencies=self.extractor.extract(obj),
            metadata={"hosts": hosts} if hosts else None,
            template=document(ctx, obj, vp, values, {"spec": structured_refs(vp, values, *INGRESS_FIELDS)}),
        )
