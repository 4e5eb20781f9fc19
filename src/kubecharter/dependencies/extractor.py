#!/usr/bin/env python3
"""
KUBECHARTER DEPENDENCY EXTRACTOR - The Cartographer
---------------------------------------------------
Recovers the implicit reference graph between resources: who mounts which
Secret, which Role a binding grants, which workload an autoscaler drives,
which pods a Service fronts.

Edges are ResourceKeys: lookup descriptors with no ownership attached.
Nothing here is deduplicated; the package assembler folds duplicates when
it builds the graph.

Like the rule list of a policy engine, a DependencyExtractor is a list of
reference rules. Each transformation unit picks the rules that match the
reference fields its kind actually carries.

Author: KubeCharter Team
Date: 2026-10-17
"""

from typing import Any, Callable, Dict, List, Optional, Sequence

from kubecharter.core.accessors import (
    nested_list, nested_map, nested_string, nested_string_map, namespace_of, string_of,
)
from kubecharter.core.models import ResourceKey

RBAC_GROUP = "rbac.authorization.k8s.io"
APPS_GROUP = "apps"
NETWORKING_GROUP = "networking.k8s.io"
KEDA_GROUP = "keda.sh"

# Kinds that never live in a namespace, whatever the referrer says
CLUSTER_SCOPED_KINDS = frozenset({
    "Namespace", "Node", "PersistentVolume", "StorageClass",
    "ClusterRole", "ClusterRoleBinding", "CustomResourceDefinition",
    "PriorityClass", "IngressClass", "ClusterIssuer",
    "ClusterTriggerAuthentication", "MutatingWebhookConfiguration",
    "ValidatingWebhookConfiguration", "APIService",
})

# Labels whose value conventionally equals the owning workload's name
OWNER_HINT_LABELS = ("app", "app.kubernetes.io/name")

Rule = Callable[[Dict[str, Any], str], List[ResourceKey]]


# --- Primitives -------------------------------------------------------------

def inherit_namespace(kind: str, explicit: Optional[str], referrer_namespace: str) -> str:
    """Explicit namespace wins, then the referrer's; cluster-scoped kinds get none."""
    if kind in CLUSTER_SCOPED_KINDS:
        return ""
    return explicit or referrer_namespace or ""


def group_of(ref: Dict[str, Any]) -> Optional[str]:
    """Group named by a reference record, or None when it names none."""
    for field in ("apiGroup", "group"):
        if isinstance(ref.get(field), str):
            return ref[field]
    api_version = string_of(ref, "apiVersion")
    if api_version:
        return api_version.split("/", 1)[0] if "/" in api_version else ""
    return None


def named_key(kind: str, name: str, namespace: str, group: str = "") -> ResourceKey:
    return ResourceKey(
        group=group,
        kind=kind,
        namespace=inherit_namespace(kind, None, namespace),
        name=name,
    )


def reference_key(ref: Any, namespace: str, default_kind: str = "",
                  default_group: str = "") -> Optional[ResourceKey]:
    """
    Resolves a {kind, name[, apiGroup|group|apiVersion][, namespace]} record.
    Missing group falls back to default_group (the core group unless the
    caller knows better), missing kind to default_kind. Records without a
    name, or without any kind, yield no edge.
    """
    if not isinstance(ref, dict):
        return None
    name = string_of(ref, "name")
    kind = string_of(ref, "kind") or default_kind
    if not name or not kind:
        return None

    group = group_of(ref)
    if group is None:
        group = default_group

    return ResourceKey(
        group=group,
        kind=kind,
        namespace=inherit_namespace(kind, string_of(ref, "namespace"), namespace),
        name=name,
    )


def infer_owners_from_selector(selector: Dict[str, str], namespace: str,
                               kind: str = "Deployment", group: str = APPS_GROUP) -> List[ResourceKey]:
    """
    Best-effort owner guess for a label selector.

    This is an approximation, not a lookup: the value of an 'app' or
    'app.kubernetes.io/name' label is taken as the name of a workload of the
    given kind. The guessed key may match nothing in the source set, or a
    different kind of workload may be the real owner. Consumers must treat
    these edges as hints.
    """
    keys = []
    for label in OWNER_HINT_LABELS:
        value = selector.get(label)
        if value:
            keys.append(named_key(kind, value, namespace, group))
    return keys


def env_references(container: Dict[str, Any], namespace: str) -> List[ResourceKey]:
    """ConfigMaps/Secrets a container pulls environment values from."""
    keys = []
    for env in container.get("env") or []:
        value_from = env.get("valueFrom") if isinstance(env, dict) else None
        if not isinstance(value_from, dict):
            continue
        for field, kind in (("configMapKeyRef", "ConfigMap"), ("secretKeyRef", "Secret")):
            name = string_of(value_from.get(field), "name")
            if name:
                keys.append(named_key(kind, name, namespace))

    for source in container.get("envFrom") or []:
        if not isinstance(source, dict):
            continue
        for field, kind in (("configMapRef", "ConfigMap"), ("secretRef", "Secret")):
            name = string_of(source.get(field), "name")
            if name:
                keys.append(named_key(kind, name, namespace))
    return keys


def volume_references(volumes: Sequence[Any], namespace: str) -> List[ResourceKey]:
    """ConfigMaps, Secrets and claims mounted as pod volumes."""
    keys = []
    for volume in volumes:
        if not isinstance(volume, dict):
            continue
        name = string_of(volume.get("configMap"), "name")
        if name:
            keys.append(named_key("ConfigMap", name, namespace))
        name = string_of(volume.get("secret"), "secretName")
        if name:
            keys.append(named_key("Secret", name, namespace))
        name = string_of(volume.get("persistentVolumeClaim"), "claimName")
        if name:
            keys.append(named_key("PersistentVolumeClaim", name, namespace))

        projected = volume.get("projected")
        if isinstance(projected, dict):
            for source in projected.get("sources") or []:
                if not isinstance(source, dict):
                    continue
                name = string_of(source.get("configMap"), "name")
                if name:
                    keys.append(named_key("ConfigMap", name, namespace))
                name = string_of(source.get("secret"), "name")
                if name:
                    keys.append(named_key("Secret", name, namespace))
    return keys


def pod_spec_references(pod_spec: Dict[str, Any], namespace: str) -> List[ResourceKey]:
    keys = []
    for field in ("initContainers", "containers", "ephemeralContainers"):
        for container in pod_spec.get(field) or []:
            if isinstance(container, dict):
                keys.extend(env_references(container, namespace))

    keys.extend(volume_references(pod_spec.get("volumes") or [], namespace))

    service_account = string_of(pod_spec, "serviceAccountName")
    if service_account:
        keys.append(named_key("ServiceAccount", service_account, namespace))

    for secret in pod_spec.get("imagePullSecrets") or []:
        name = string_of(secret, "name")
        if name:
            keys.append(named_key("Secret", name, namespace))
    return keys


def pod_spec_of(obj: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """The pod spec embedded in a workload, CronJob or bare Pod."""
    for path in (("spec", "template", "spec"),
                 ("spec", "jobTemplate", "spec", "template", "spec")):
        spec, found = nested_map(obj, *path)
        if found:
            return spec
    if obj.get("kind") == "Pod":
        spec, found = nested_map(obj, "spec")
        if found:
            return spec
    return None


# --- Reference rules ---------------------------------------------------------

def pod_template_rule(obj: Dict[str, Any], namespace: str) -> List[ResourceKey]:
    pod_spec = pod_spec_of(obj)
    if pod_spec is None:
        return []
    return pod_spec_references(pod_spec, namespace)


def role_ref_rule(obj: Dict[str, Any], namespace: str) -> List[ResourceKey]:
    role_ref, found = nested_map(obj, "roleRef")
    if not found:
        return []
    key = reference_key(role_ref, namespace, default_kind="Role", default_group=RBAC_GROUP)
    return [key] if key else []


def subjects_rule(obj: Dict[str, Any], namespace: str) -> List[ResourceKey]:
    subjects, _ = nested_list(obj, "subjects")
    keys = []
    for subject in subjects:
        # Users and Groups are identities, not resources
        if string_of(subject, "kind") != "ServiceAccount":
            continue
        key = reference_key(subject, namespace)
        if key:
            keys.append(key)
    return keys


def scale_target_rule(obj: Dict[str, Any], namespace: str) -> List[ResourceKey]:
    target, found = nested_map(obj, "spec", "scaleTargetRef")
    if not found:
        return []
    key = reference_key(target, namespace, default_kind="Deployment")
    return [key] if key else []


def selector_rule(obj: Dict[str, Any], namespace: str) -> List[ResourceKey]:
    """Service-style flat selectors only; workloads' matchLabels select themselves."""
    selector, found = nested_string_map(obj, "spec", "selector")
    if not found:
        return []
    return infer_owners_from_selector(selector, namespace)


def _backend_service(backend: Any, namespace: str) -> List[ResourceKey]:
    if not isinstance(backend, dict):
        return []
    # networking.k8s.io/v1 shape first, then the legacy serviceName field
    name = string_of(backend.get("service"), "name") or string_of(backend, "serviceName")
    if name:
        return [named_key("Service", name, namespace)]
    resource = backend.get("resource")
    if isinstance(resource, dict):
        key = reference_key(resource, namespace)
        return [key] if key else []
    return []


def ingress_rule(obj: Dict[str, Any], namespace: str) -> List[ResourceKey]:
    keys = []
    class_name, found = nested_string(obj, "spec", "ingressClassName")
    if found and class_name:
        keys.append(named_key("IngressClass", class_name, namespace, NETWORKING_GROUP))

    default_backend, _ = nested_map(obj, "spec", "defaultBackend")
    keys.extend(_backend_service(default_backend, namespace))

    rules, _ = nested_list(obj, "spec", "rules")
    for rule in rules:
        paths, _ = nested_list(rule, "http", "paths") if isinstance(rule, dict) else ([], False)
        for path in paths:
            if isinstance(path, dict):
                keys.extend(_backend_service(path.get("backend"), namespace))

    tls, _ = nested_list(obj, "spec", "tls")
    for entry in tls:
        name = string_of(entry, "secretName")
        if name:
            keys.append(named_key("Secret", name, namespace))
    return keys


def stateful_service_rule(obj: Dict[str, Any], namespace: str) -> List[ResourceKey]:
    name, found = nested_string(obj, "spec", "serviceName")
    if found and name:
        return [named_key("Service", name, namespace)]
    return []


def trigger_authentication_rule(obj: Dict[str, Any], namespace: str) -> List[ResourceKey]:
    triggers, _ = nested_list(obj, "spec", "triggers")
    keys = []
    for trigger in triggers:
        if not isinstance(trigger, dict):
            continue
        key = reference_key(trigger.get("authenticationRef"), namespace,
                            default_kind="TriggerAuthentication", default_group=KEDA_GROUP)
        if key:
            keys.append(key)
    return keys


def service_account_secrets_rule(obj: Dict[str, Any], namespace: str) -> List[ResourceKey]:
    keys = []
    for field in ("secrets", "imagePullSecrets"):
        entries, _ = nested_list(obj, field)
        for entry in entries:
            name = string_of(entry, "name")
            if name:
                keys.append(named_key("Secret", name, namespace))
    return keys


DEFAULT_RULES: List[Rule] = [
    pod_template_rule,
    role_ref_rule,
    subjects_rule,
    scale_target_rule,
    selector_rule,
    ingress_rule,
    stateful_service_rule,
    trigger_authentication_rule,
]


class DependencyExtractor:
    """Runs a fixed list of reference rules against one object."""

    def __init__(self, rules: Optional[Sequence[Rule]] = None):
        self.rules: List[Rule] = list(rules) if rules is not None else list(DEFAULT_RULES)

    def extract(self, obj: Dict[str, Any]) -> List[ResourceKey]:
        namespace = namespace_of(obj)
        keys: List[ResourceKey] = []
        for rule in self.rules:
            keys.extend(rule(obj, namespace))
        return keys
