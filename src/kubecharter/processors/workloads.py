#!/usr/bin/env python3
"""
KUBECHARTER WORKLOAD PROCESSORS
-------------------------------
Deployments, StatefulSets, DaemonSets, Jobs and CronJobs. They share one
pod-template extraction; only the wrapper around the pod template differs.

Dependencies come from the pod spec (env sources, volumes, service
account, pull secrets) and, for StatefulSets, the governing Service.

Author: KubeCharter Team
Date: 2026-10-17
"""

from typing import Any, Dict, List, Tuple

from kubecharter.core.accessors import nested_int, nested_map, nested_string_map
from kubecharter.core.context import ProcessingContext
from kubecharter.core.models import ProcessingResult
from kubecharter.core.processor import BaseProcessor, reject_empty
from kubecharter.dependencies.extractor import DependencyExtractor, pod_spec_of, pod_template_rule, stateful_service_rule
from kubecharter.processors.common import base_values, copy_present, document, structured_refs, values_path_of
from kubecharter.rendering.template import ValueRef

POD_FIELDS = (
    "initContainers", "volumes", "serviceAccountName", "nodeSelector",
    "tolerations", "affinity", "securityContext", "priorityClassName",
    "imagePullSecrets", "restartPolicy", "topologySpreadConstraints",
)

CONTAINER_FIELDS = (
    "command", "args", "ports", "env", "envFrom", "resources", "volumeMounts",
    "livenessProbe", "readinessProbe", "startupProbe", "securityContext",
)

SPEC_FIELDS = {
    "Deployment": ("strategy", "revisionHistoryLimit", "minReadySeconds"),
    "StatefulSet": ("serviceName", "podManagementPolicy", "updateStrategy", "volumeClaimTemplates"),
    "DaemonSet": ("updateStrategy", "minReadySeconds"),
    "Job": ("backoffLimit", "completions", "parallelism", "activeDeadlineSeconds", "ttlSecondsAfterFinished"),
    "CronJob": ("schedule", "concurrencyPolicy", "suspend", "successfulJobsHistoryLimit",
                "failedJobsHistoryLimit", "startingDeadlineSeconds", "timeZone"),
}


def split_image(image: str) -> Dict[str, str]:
    """'registry:5000/app:1.2@sha256:..' -> repository/tag/digest parts."""
    repository, digest = image, ""
    if "@" in repository:
        repository, digest = repository.split("@", 1)
    tag = ""
    last_segment = repository.rsplit("/", 1)[-1]
    if ":" in last_segment:
        repository, tag = repository.rsplit(":", 1)
    parts = {"repository": repository, "tag": tag or "latest"}
    if digest:
        parts["digest"] = digest
    return parts


def container_values(container: Dict[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {"name": container.get("name", "")}
    image = container.get("image")
    if isinstance(image, str) and image:
        values["image"] = split_image(image)
        if container.get("imagePullPolicy"):
            values["image"]["pullPolicy"] = container["imagePullPolicy"]
    copy_present(values, container, *CONTAINER_FIELDS)
    return values


class WorkloadProcessor(BaseProcessor):

    def __init__(self):
        super().__init__("workload", 100, [
            ("apps", "v1", "Deployment"),
            ("apps", "v1", "StatefulSet"),
            ("apps", "v1", "DaemonSet"),
            ("batch", "v1", "Job"),
            ("batch", "v1", "CronJob"),
        ])
        self.extractor = DependencyExtractor([pod_template_rule, stateful_service_rule])

    def process(self, ctx: ProcessingContext, obj: Dict[str, Any]) -> ProcessingResult:
        reject_empty(obj, self.name)
        kind = obj.get("kind", "")
        vp = values_path_of(obj)
        values = base_values(obj)

        spec, _ = nested_map(obj, "spec")
        replicas, found = nested_int(obj, "spec", "replicas")
        if found:
            values["replicas"] = replicas
        copy_present(values, spec, *SPEC_FIELDS.get(kind, ()))

        selector, found = nested_string_map(obj, "spec", "selector", "matchLabels")
        if found:
            values["selector"] = selector

        pod_values, pod_metadata = self._pod_values(obj)
        values.update(pod_values)
        if pod_metadata.get("labels"):
            values["podLabels"] = pod_metadata["labels"]
        if pod_metadata.get("annotations"):
            values["podAnnotations"] = pod_metadata["annotations"]

        metadata = {}
        if "podLabels" not in values and "selector" in values:
            metadata["pod_labels_missing"] = True

        return self.build_result(
            obj, values,
            dependencies=self.extractor.extract(obj),
            metadata=metadata,
            template=document(ctx, obj, vp, values, {"spec": self._spec_tree(kind, vp, values)}),
        )

    def _pod_values(self, obj: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        pod_spec = pod_spec_of(obj) or {}
        values: Dict[str, Any] = {}

        containers: List[Dict[str, Any]] = [
            container_values(c) for c in pod_spec.get("containers") or [] if isinstance(c, dict)
        ]
        if containers:
            values["containers"] = containers
        copy_present(values, pod_spec, *POD_FIELDS)

        template_path = ("spec", "jobTemplate", "spec", "template") if obj.get("kind") == "CronJob" \
            else ("spec", "template")
        pod_metadata: Dict[str, Any] = {}
        labels, found = nested_string_map(obj, *template_path, "metadata", "labels")
        if found:
            pod_metadata["labels"] = labels
        annotations, found = nested_string_map(obj, *template_path, "metadata", "annotations")
        if found:
            pod_metadata["annotations"] = annotations
        return values, pod_metadata

    def _spec_tree(self, kind: str, vp: str, values: Dict[str, Any]) -> Dict[str, Any]:
        pod_metadata: Dict[str, Any] = {}
        if "podLabels" in values:
            pod_metadata["labels"] = ValueRef(f"{vp}.podLabels", structured=True)
        if "podAnnotations" in values:
            pod_metadata["annotations"] = ValueRef(f"{vp}.podAnnotations", structured=True)

        pod_spec = structured_refs(vp, values, "containers", *POD_FIELDS)
        pod_template = {"metadata": pod_metadata, "spec": pod_spec}

        spec: Dict[str, Any] = structured_refs(vp, values, *SPEC_FIELDS.get(kind, ()))
        if kind == "CronJob":
            spec["jobTemplate"] = {"spec": {"template": pod_template}}
            return spec

        if "replicas" in values:
            spec["replicas"] = ValueRef(f"{vp}.replicas", default=1)
        if "selector" in values:
            spec["selector"] = {"matchLabels": ValueRef(f"{vp}.selector", structured=True)}
        spec["template"] = pod_template
        return spec
