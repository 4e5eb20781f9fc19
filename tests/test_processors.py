import base64

import pytest

from kubecharter.core.errors import InputRejectedError
from kubecharter.core.models import ResourceKey
from kubecharter.processors.autoscaling import HPAProcessor, ScaledObjectProcessor
from kubecharter.processors.bundled import bundled_units
from kubecharter.processors.config import ConfigMapProcessor, SecretProcessor
from kubecharter.processors.networking import IngressProcessor, ServiceProcessor
from kubecharter.processors.rbac import RoleBindingProcessor, RoleProcessor, ServiceAccountProcessor
from kubecharter.processors.workloads import WorkloadProcessor, split_image


def configmap(data, name="web-config", labels=None):
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": name, "namespace": "shop", "labels": labels or {"app": "web"}},
        "data": data,
    }


@pytest.mark.parametrize("unit", bundled_units(), ids=lambda u: u.name)
@pytest.mark.parametrize("bad", [None, {}])
def test_every_unit_rejects_empty_input(ctx, unit, bad):
    with pytest.raises(InputRejectedError):
        unit.process(ctx, bad)


def test_configmap_small_values_stay_inline(ctx):
    result = ConfigMapProcessor().process(ctx, configmap({"LOG_LEVEL": "debug"}))

    assert result.processed
    assert result.service_name == "web"
    assert result.values_path == "services.web.configMaps.webConfig"
    assert result.template_path == "templates/web-configmap-web-config.yaml"
    assert result.values["data"] == {"LOG_LEVEL": "debug"}
    assert result.external_files == ()
    assert result.processor == "configmap"


def test_configmap_large_values_are_externalized(ctx):
    big = "x" * 4096
    result = ConfigMapProcessor().process(ctx, configmap({"blob.txt": big, "small": "ok"}))

    entry = result.values["data"]["blob.txt"]["externalFile"]
    assert entry["path"] == "files/configmap-shop-web-config/blob.txt"
    assert result.values["data"]["small"] == "ok"
    assert [f.path for f in result.external_files] == [entry["path"]]
    assert result.metadata["checksum_annotation"] == f"{entry['path']}:{entry['checksum']}"


def test_configmap_binary_data_inline_keeps_base64(ctx):
    encoded = base64.b64encode(b"tiny").decode()
    obj = configmap({})
    obj["binaryData"] = {"raw": encoded}

    result = ConfigMapProcessor().process(ctx, obj)
    # 'tiny' is plain text below every threshold
    assert result.values["binaryData"] == {"raw": encoded}


def test_externalization_failure_falls_back_inline(ctx, monkeypatch, pem):
    def broken(path, content):
        raise OSError("read-only")
    monkeypatch.setattr(ctx.file_store.writer, "write", broken)

    result = ConfigMapProcessor().process(ctx, configmap({"ca.crt": pem}))

    assert result.processed
    assert result.values["data"]["ca.crt"] == pem
    assert result.external_files == ()
    assert result.metadata["externalization_failures"] == ["ca.crt"]


def test_secret_certificate_is_externalized_and_marked_sensitive(ctx, pem):
    secret = {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": "web-tls", "namespace": "shop"},
        "type": "kubernetes.io/tls",
        "data": {
            "tls.crt": base64.b64encode(pem.encode()).decode(),
            "mode": base64.b64encode(b"strict").decode(),
        },
    }

    result = SecretProcessor().process(ctx, secret)

    assert result.values["type"] == "kubernetes.io/tls"
    assert "externalFile" in result.values["data"]["tls.crt"]
    assert result.values["data"]["mode"] == secret["data"]["mode"]
    assert result.metadata["sensitive"] is True
    assert sorted(result.metadata["sensitive_fields"]) == ["mode", "tls.crt"]
    assert ctx.file_store.writer.read(result.external_files[0].path) == pem.encode()


def test_secret_type_defaults_to_opaque(ctx):
    result = SecretProcessor().process(ctx, {
        "apiVersion": "v1", "kind": "Secret", "metadata": {"name": "s"}, "stringData": {"k": "v"},
    })
    assert result.values["type"] == "Opaque"
    assert result.values["stringData"] == {"k": "v"}


def test_same_certificate_in_two_secrets_shares_a_file(ctx, pem):
    encoded = base64.b64encode(pem.encode()).decode()
    unit = SecretProcessor()
    a = unit.process(ctx, {"apiVersion": "v1", "kind": "Secret", "metadata": {"name": "a"},
                           "data": {"ca.crt": encoded}})
    b = unit.process(ctx, {"apiVersion": "v1", "kind": "Secret", "metadata": {"name": "b"},
                           "data": {"ca.crt": encoded}})

    assert a.external_files[0].path == b.external_files[0].path
    assert len(ctx.file_store) == 1


def deployment():
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": "web", "namespace": "shop", "labels": {"app": "web"}},
        "spec": {
            "replicas": 3,
            "selector": {"matchLabels": {"app": "web"}},
            "template": {
                "metadata": {"labels": {"app": "web"}},
                "spec": {
                    "serviceAccountName": "web-sa",
                    "containers": [{
                        "name": "app",
                        "image": "registry.local:5000/shop/web:1.4.2",
                        "envFrom": [{"configMapRef": {"name": "web-config"}}],
                    }],
                },
            },
        },
    }


def test_deployment_values_and_dependencies(ctx):
    result = WorkloadProcessor().process(ctx, deployment())

    assert result.values_path == "services.web.deployment.web"
    assert result.values["replicas"] == 3
    assert result.values["containers"][0]["image"] == {
        "repository": "registry.local:5000/shop/web", "tag": "1.4.2",
    }
    assert result.values["podLabels"] == {"app": "web"}
    assert set(result.dependencies) == {
        ResourceKey("", "ConfigMap", "shop", "web-config"),
        ResourceKey("", "ServiceAccount", "shop", "web-sa"),
    }


def test_deployment_without_replicas_omits_the_key(ctx):
    obj = deployment()
    del obj["spec"]["replicas"]
    assert "replicas" not in WorkloadProcessor().process(ctx, obj).values


@pytest.mark.parametrize("image,expected", [
    ("nginx", {"repository": "nginx", "tag": "latest"}),
    ("nginx:1.25", {"repository": "nginx", "tag": "1.25"}),
    ("localhost:5000/app", {"repository": "localhost:5000/app", "tag": "latest"}),
    ("app@sha256:abc", {"repository": "app", "tag": "latest", "digest": "sha256:abc"}),
])
def test_split_image(image, expected):
    assert split_image(image) == expected


def test_statefulset_depends_on_its_service(ctx):
    obj = deployment()
    obj["kind"] = "StatefulSet"
    obj["spec"]["serviceName"] = "web-headless"

    result = WorkloadProcessor().process(ctx, obj)
    assert result.values["serviceName"] == "web-headless"
    assert ResourceKey("", "Service", "shop", "web-headless") in result.dependencies


def test_cronjob_schedule_and_pod_spec(ctx):
    cronjob = {
        "apiVersion": "batch/v1",
        "kind": "CronJob",
        "metadata": {"name": "nightly"},
        "spec": {
            "schedule": "0 3 * * *",
            "jobTemplate": {"spec": {"template": {"spec": {
                "restartPolicy": "OnFailure",
                "containers": [{"name": "job", "image": "busybox"}],
            }}}},
        },
    }

    result = WorkloadProcessor().process(ctx, cronjob)
    assert result.values["schedule"] == "0 3 * * *"
    assert result.values["restartPolicy"] == "OnFailure"
    assert "jobTemplate" in result.template.body["spec"]


def test_service_selector_is_an_inferred_dependency(ctx):
    service = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": "web", "namespace": "shop"},
        "spec": {"selector": {"app": "web"}, "ports": [{"port": 80}]},
    }

    result = ServiceProcessor().process(ctx, service)
    assert result.values["type"] == "ClusterIP"
    assert result.dependencies == (ResourceKey("apps", "Deployment", "shop", "web"),)
    assert result.metadata["selector_inferred"] is True


def test_ingress_records_hosts(ctx):
    ingress = {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": {"name": "edge"},
        "spec": {"rules": [{"host": "b.example"}, {"host": "a.example"}]},
    }
    assert IngressProcessor().process(ctx, ingress).metadata["hosts"] == ["a.example", "b.example"]


def test_role_binding_dependencies(ctx):
    binding = {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "RoleBinding",
        "metadata": {"name": "read-pods", "namespace": "default"},
        "roleRef": {"apiGroup": "rbac.authorization.k8s.io", "kind": "Role", "name": "pod-reader"},
        "subjects": [{"kind": "ServiceAccount", "name": "reader"}, {"kind": "User", "name": "jane"}],
    }

    result = RoleBindingProcessor().process(ctx, binding)
    assert result.dependencies == (
        ResourceKey("rbac.authorization.k8s.io", "Role", "default", "pod-reader"),
        ResourceKey("", "ServiceAccount", "default", "reader"),
    )
    assert result.metadata["subject_kinds"] == ["ServiceAccount", "User"]


def test_cluster_role_with_wildcards(ctx):
    role = {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "ClusterRole",
        "metadata": {"name": "admin"},
        "rules": [{"apiGroups": ["*"], "resources": ["*"], "verbs": ["*"]}],
    }
    result = RoleProcessor().process(ctx, role)
    assert result.metadata["wildcard_verbs"] is True
    assert "namespace" not in result.template.body["metadata"]


def test_service_account(ctx):
    sa = {"apiVersion": "v1", "kind": "ServiceAccount", "metadata": {"name": "web-sa"},
          "automountServiceAccountToken": False, "imagePullSecrets": [{"name": "pull"}]}
    result = ServiceAccountProcessor().process(ctx, sa)

    assert result.values["automountServiceAccountToken"] is False
    assert result.dependencies == (ResourceKey("", "Secret", "", "pull"),)


def test_hpa_scale_target(ctx):
    hpa = {
        "apiVersion": "autoscaling/v2",
        "kind": "HorizontalPodAutoscaler",
        "metadata": {"name": "web", "namespace": "shop"},
        "spec": {
            "scaleTargetRef": {"apiVersion": "apps/v1", "kind": "Deployment", "name": "web"},
            "maxReplicas": 5,
        },
    }
    result = HPAProcessor().process(ctx, hpa)

    assert result.values_path == "services.web.hpa.web"
    assert result.values["minReplicas"] == 1
    assert result.values["maxReplicas"] == 5
    assert result.dependencies == (ResourceKey("apps", "Deployment", "shop", "web"),)


def test_scaled_object_scale_to_zero(ctx):
    scaled = {
        "apiVersion": "keda.sh/v1alpha1",
        "kind": "ScaledObject",
        "metadata": {"name": "worker", "namespace": "jobs"},
        "spec": {
            "scaleTargetRef": {"name": "worker"},
            "minReplicaCount": 0,
            "triggers": [{"type": "rabbitmq", "authenticationRef": {"name": "rabbit-auth"}}],
        },
    }
    result = ScaledObjectProcessor().process(ctx, scaled)

    assert result.metadata["scale_to_zero"] is True
    assert result.metadata["trigger_types"] == ["rabbitmq"]
    assert result.dependencies == (
        ResourceKey("", "Deployment", "jobs", "worker"),
        ResourceKey("keda.sh", "TriggerAuthentication", "jobs", "rabbit-auth"),
    )


def test_scaled_object_with_replicas_is_not_scale_to_zero(ctx):
    scaled = {"apiVersion": "keda.sh/v1alpha1", "kind": "ScaledObject", "metadata": {"name": "w"},
              "spec": {"minReplicaCount": 1}}
    assert "scale_to_zero" not in ScaledObjectProcessor().process(ctx, scaled).metadata


def test_result_is_independent_of_the_source_object(ctx):
    role = {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "Role",
        "metadata": {"name": "reader", "namespace": "default", "labels": {"app": "web"}},
        "rules": [{"apiGroups": [""], "resources": ["pods"], "verbs": ["get"]}],
    }
    result = RoleProcessor().process(ctx, role)

    role["rules"][0]["verbs"].append("delete")
    role["metadata"]["labels"]["app"] = "changed"

    assert result.values["rules"] == [{"apiGroups": [""], "resources": ["pods"], "verbs": ["get"]}]
    assert result.values["labels"] == {"app": "web"}


def test_workload_containers_do_not_alias_the_pod_spec(ctx):
    obj = deployment()
    result = WorkloadProcessor().process(ctx, obj)

    result.values["containers"][0]["envFrom"].append({"secretRef": {"name": "extra"}})
    assert obj["spec"]["template"]["spec"]["containers"][0]["envFrom"] == [
        {"configMapRef": {"name": "web-config"}},
    ]


def test_results_are_unhashable_but_comparable(ctx):
    unit = ServiceAccountProcessor()
    sa = {"apiVersion": "v1", "kind": "ServiceAccount", "metadata": {"name": "sa"}}

    first, second = unit.process(ctx, sa), unit.process(ctx, sa)
    assert first == second
    with pytest.raises(TypeError):
        hash(first)
