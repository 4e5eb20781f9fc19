#!/usr/bin/env python3
"""
The transformation units shipped with KubeCharter, in registration order.
"""

from typing import List

from kubecharter.core.processor import BaseProcessor
from kubecharter.core.registry import ProcessorRegistry
from kubecharter.processors.autoscaling import HPAProcessor, ScaledObjectProcessor
from kubecharter.processors.config import ConfigMapProcessor, SecretProcessor
from kubecharter.processors.networking import IngressProcessor, ServiceProcessor
from kubecharter.processors.rbac import RoleBindingProcessor, RoleProcessor, ServiceAccountProcessor
from kubecharter.processors.workloads import WorkloadProcessor


def bundled_units() -> List[BaseProcessor]:
    return [
        ConfigMapProcessor(),
        SecretProcessor(),
        WorkloadProcessor(),
        ServiceProcessor(),
        IngressProcessor(),
        ServiceAccountProcessor(),
        RoleProcessor(),
        RoleBindingProcessor(),
        HPAProcessor(),
        ScaledObjectProcessor(),
    ]


def register_all(registry: ProcessorRegistry) -> ProcessorRegistry:
    for unit in bundled_units():
        registry.register(unit)
    return registry
