import base64

import pytest

from kubecharter.config import EngineConfig
from kubecharter.core.engine import ChartEngine, values_path_collisions
from kubecharter.core.processor import BaseProcessor
from kubecharter.core.registry import ProcessorRegistry
from kubecharter.values.store import MemoryWriter


def manifests(pem):
    encoded = base64.b64encode(pem.encode()).decode()
    return [
        {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "cfg", "namespace": "shop"},
         "data": {"mode": "fast"}},
        {"apiVersion": "v1", "kind": "Secret", "metadata": {"name": "tls-a", "namespace": "shop"},
         "data": {"ca.crt": encoded}},
        {"apiVersion": "example.com/v1", "kind": "Widget", "metadata": {"name": "w"}},
        {"apiVersion": "v1", "kind": "Secret", "metadata": {"name": "tls-b", "namespace": "shop"},
         "data": {"ca.crt": encoded}},
        {},
    ]


class ExplodingProcessor(BaseProcessor):
    def __init__(self):
        super().__init__("exploding", 100, [("", "v1", "ConfigMap")])

    def process(self, ctx, obj):
        raise KeyError("boom")


def test_batch_keeps_input_order_and_isolates_failures(pem):
    engine = ChartEngine(EngineConfig(chart_name="shop", workers=4), writer=MemoryWriter())
    results = engine.process_batch(manifests(pem))

    assert [r.processor for r in results] == ["configmap", "secret", None, "secret", None]
    assert results[2].processed is False and results[2].error is None
    assert results[4].processed is False and "empty" in results[4].error
    assert results[1].external_files == results[3].external_files
    assert len(engine.external_files()) == 1


def test_summary_counts(pem):
    engine = ChartEngine(writer=MemoryWriter())
    summary = engine.generate_summary(engine.process_batch(manifests(pem)))

    assert summary["total_resources"] == 5
    assert summary["processed"] == 3
    assert summary["skipped"] == 1
    assert summary["errors"] == 1
    assert summary["external_files"] == 1
    assert summary["by_processor"] == {"configmap": 1, "secret": 2}


def test_empty_batch():
    engine = ChartEngine(writer=MemoryWriter())
    assert engine.process_batch([]) == []
    assert engine.generate_summary([])["total_resources"] == 0


def test_unit_exception_becomes_error_result():
    registry = ProcessorRegistry()
    registry.register(ExplodingProcessor())
    engine = ChartEngine(registry=registry, writer=MemoryWriter())

    result = engine.process({"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "c"}})
    assert result.processed is False
    assert result.error.startswith("KeyError")


def test_progress_callback_sees_every_object(pem):
    calls = []
    engine = ChartEngine(writer=MemoryWriter())
    engine.process_batch(manifests(pem), workers=2, progress_callback=lambda done, total: calls.append((done, total)))

    assert sorted(calls) == [(i, 5) for i in range(1, 6)]


def test_engines_do_not_share_stores(pem):
    first = ChartEngine(writer=MemoryWriter())
    second = ChartEngine(writer=MemoryWriter())
    first.process_batch(manifests(pem))

    assert len(first.external_files()) == 1
    assert second.external_files() == []


def test_write_templates_to_output_dir(tmp_path, pem):
    engine = ChartEngine(EngineConfig(chart_name="shop", output_dir=str(tmp_path)))
    results = engine.process_batch(manifests(pem), workers=1)
    written = engine.write_templates(results)

    assert "templates/cfg-configmap-cfg.yaml" in written
    rendered = (tmp_path / "templates" / "cfg-configmap-cfg.yaml").read_text()
    assert rendered.startswith("{{- if .Values.services.cfg.configMaps.cfg.enabled }}")
    # The certificate went to disk through the same output directory
    assert (tmp_path / "files" / "secret-shop-tls-a" / "ca.crt").exists()


def test_write_templates_needs_output_dir():
    engine = ChartEngine(writer=MemoryWriter())
    with pytest.raises(ValueError):
        engine.write_templates([])


def test_values_path_collisions_are_reported():
    def cm(name):
        return {"apiVersion": "v1", "kind": "ConfigMap",
                "metadata": {"name": name, "labels": {"app": "web"}}, "data": {"k": "v"}}

    engine = ChartEngine(writer=MemoryWriter())
    results = engine.process_batch([cm("app-config"), cm("app.config"), cm("other")])

    assert values_path_collisions(results) == {
        "services.web.configMaps.appConfig": [
            "templates/web-configmap-app-config.yaml",
            "templates/web-configmap-app.config.yaml",
        ],
    }
    assert engine.generate_summary(results)["values_path_collisions"] == 1
