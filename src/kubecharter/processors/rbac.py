#!/usr/bin/env python3
"""
KUBECHARTER RBAC PROCESSORS
---------------------------
ServiceAccounts, Roles and their bindings. Bindings carry the edges that
matter most when assembling a chart: the role they grant and the service
accounts they grant it to.

Author: KubeCharter Team
Date: 2026-10-17
"""

from typing import Any, Dict

from kubecharter.core.accessors import nested_bool, nested_list, nested_map, string_of
from kubecharter.core.context import ProcessingContext
from kubecharter.core.models import ProcessingResult
from kubecharter.core.processor import BaseProcessor, reject_empty
from kubecharter.dependencies.extractor import (
    RBAC_GROUP, DependencyExtractor, role_ref_rule, service_account_secrets_rule, subjects_rule,
)
from kubecharter.processors.common import base_values, copy_present, document, structured_refs, values_path_of
from kubecharter.rendering.template import ValueRef


class ServiceAccountProcessor(BaseProcessor):

    def __init__(self):
        super().__init__("serviceaccount", 100, [("", "v1", "ServiceAccount")])
        self.extractor = DependencyExtractor([service_account_secrets_rule])

    def process(self, ctx: ProcessingContext, obj: Dict[str, Any]) -> ProcessingResult:
        reject_empty(obj, self.name)
        vp = values_path_of(obj)
        values = base_values(obj)
        copy_present(values, obj, "secrets", "imagePullSecrets")
        automount, found = nested_bool(obj, "automountServiceAccountToken")
        if found:
            values["automountServiceAccountToken"] = automount

        content: Dict[str, Any] = structured_refs(vp, values, "secrets", "imagePullSecrets")
        if found:
            content["automountServiceAccountToken"] = ValueRef(f"{vp}.automountServiceAccountToken")

        return self.build_result(
            obj, values,
            dependencies=self.extractor.extract(obj),
            template=document(ctx, obj, vp, values, content),
        )


class RoleProcessor(BaseProcessor):

    def __init__(self):
        super().__init__("role", 100, [
            (RBAC_GROUP, "v1", "Role"),
            (RBAC_GROUP, "v1", "ClusterRole"),
        ])

    def process(self, ctx: ProcessingContext, obj: Dict[str, Any]) -> ProcessingResult:
        reject_empty(obj, self.name)
        vp = values_path_of(obj)
        values = base_values(obj)
        rules, found = nested_list(obj, "rules")
        values["rules"] = rules if found else []
        copy_present(values, obj, "aggregationRule")

        metadata = {}
        if any("*" in (rule.get("verbs") or []) for rule in values["rules"] if isinstance(rule, dict)):
            metadata["wildcard_verbs"] = True

        return self.build_result(
            obj, values,
            metadata=metadata,
            template=document(ctx, obj, vp, values, structured_refs(vp, values, "rules", "aggregationRule")),
        )


class RoleBindingProcessor(BaseProcessor):

    def __init__(self):
        super().__init__("rolebinding", 100, [
            (RBAC_GROUP, "v1", "RoleBinding"),
            (RBAC_GROUP, "v1", "ClusterRoleBinding"),
        ])
        self.extractor = DependencyExtractor([role_ref_rule, subjects_rule])

    def process(self, ctx: ProcessingContext, obj: Dict[str, Any]) -> ProcessingResult:
        reject_empty(obj, self.name)
        vp = values_path_of(obj)
        values = base_values(obj)

        role_ref, found = nested_map(obj, "roleRef")
        if found:
            values["roleRef"] = role_ref
        subjects, found = nested_list(obj, "subjects")
        if found:
            values["subjects"] = subjects

        metadata = {}
        if found:
            metadata["subject_kinds"] = sorted({
                string_of(s, "kind") for s in subjects if string_of(s, "kind")
            })

        return self.build_result(
            obj, values,
            dependencies=self.extractor.extract(obj),
            metadata=metadata,
            template=document(ctx, obj, vp, values, structured_refs(vp, values, "roleRef", "subjects")),
        )
