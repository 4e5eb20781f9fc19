#!/usr/bin/env python3
"""
KUBECHARTER AUTOSCALING PROCESSORS
----------------------------------
HorizontalPodAutoscalers and KEDA ScaledObjects. Both point at the
workload they drive through spec.scaleTargetRef.

Author: KubeCharter Team
Date: 2026-10-17
"""

from typing import Any, Dict

from kubecharter.core.accessors import nested_int, nested_map
from kubecharter.core.context import ProcessingContext
from kubecharter.core.models import ProcessingResult
from kubecharter.core.processor import BaseProcessor, reject_empty
from kubecharter.dependencies.extractor import (
    KEDA_GROUP, DependencyExtractor, scale_target_rule, trigger_authentication_rule,
)
from kubecharter.processors.common import base_values, copy_present, document, structured_refs, values_path_of
from kubecharter.rendering.template import ValueRef

HPA_FIELDS = ("scaleTargetRef", "metrics", "behavior", "targetCPUUtilizationPercentage")

SCALED_OBJECT_FIELDS = (
    "scaleTargetRef", "pollingInterval", "cooldownPeriod", "idleReplicaCount",
    "fallback", "advanced", "triggers",
)


class HPAProcessor(BaseProcessor):

    def __init__(self):
        super().__init__("hpa", 100, [
            ("autoscaling", "v2", "HorizontalPodAutoscaler"),
            ("autoscaling", "v2beta2", "HorizontalPodAutoscaler"),
            ("autoscaling", "v1", "HorizontalPodAutoscaler"),
        ])
        self.extractor = DependencyExtractor([scale_target_rule])

    def process(self, ctx: ProcessingContext, obj: Dict[str, Any]) -> ProcessingResult:
        reject_empty(obj, self.name)
        vp = values_path_of(obj)
        values = base_values(obj)
        spec, _ = nested_map(obj, "spec")

        min_replicas, found = nested_int(obj, "spec", "minReplicas")
        values["minReplicas"] = min_replicas if found else 1
        max_replicas, found = nested_int(obj, "spec", "maxReplicas")
        if found:
            values["maxReplicas"] = max_replicas
        copy_present(values, spec, *HPA_FIELDS)

        content = {"spec": {"minReplicas": ValueRef(f"{vp}.minReplicas")}}
        if "maxReplicas" in values:
            content["spec"]["maxReplicas"] = ValueRef(f"{vp}.maxReplicas")
        content["spec"].update(structured_refs(vp, values, *HPA_FIELDS))

        return self.build_result(
            obj, values,
            dependencies=self.extractor.extract(obj),
            template=document(ctx, obj, vp, values, content),
        )


class ScaledObjectProcessor(BaseProcessor):

    def __init__(self):
        super().__init__("scaledobject", 100, [(KEDA_GROUP, "v1alpha1", "ScaledObject")])
        self.extractor = DependencyExtractor([scale_target_rule, trigger_authentication_rule])

    def process(self, ctx: ProcessingContext, obj: Dict[str, Any]) -> ProcessingResult:
        reject_empty(obj, self.name)
        vp = values_path_of(obj)
        values = base_values(obj)
        spec, _ = nested_map(obj, "spec")

        copy_present(values, spec, *SCALED_OBJECT_FIELDS)
        metadata = {}
        for field in ("minReplicaCount", "maxReplicaCount"):
            count, found = nested_int(obj, "spec", field)
            if found:
                values[field] = count
        if values.get("minReplicaCount") == 0:
            metadata["scale_to_zero"] = True
        triggers = values.get("triggers") or []
        trigger_types = sorted({t["type"] for t in triggers if isinstance(t, dict) and isinstance(t.get("type"), str)})
        if trigger_types:
            metadata["trigger_types"] = trigger_types

        content = {"spec": structured_refs(vp, values, *SCALED_OBJECT_FIELDS)}
        for field in ("minReplicaCount", "maxReplicaCount"):
            if field in values:
                content["spec"][field] = ValueRef(f"{vp}.{field}")

        return self.build_result(
            obj, values,
            dependencies=self.extractor.extract(obj),
            metadata=metadata,
            template=document(ctx, obj, vp, values, content),
        )
