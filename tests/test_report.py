from rich.console import Console

from kubecharter.core.engine import ChartEngine
from kubecharter.report.formatter import ReportFormatter
from kubecharter.values.store import MemoryWriter


def test_report_lists_resources_files_and_summary(pem):
    sources = [
        {"apiVersion": "v1", "kind": "Secret", "metadata": {"name": "tls"}, "stringData": {"ca.crt": pem}},
        {"apiVersion": "example.com/v1", "kind": "Widget", "metadata": {"name": "w"}},
    ]
    engine = ChartEngine(writer=MemoryWriter())
    results = engine.process_batch(sources)

    console = Console(record=True, width=200)
    formatter = ReportFormatter(console=console)
    formatter.print_results_table(results, sources)
    formatter.print_external_files(engine.external_files())
    formatter.print_summary(engine.generate_summary(results))

    output = console.export_text()
    assert "Secret/tls" in output
    assert "Widget/w" in output
    assert "files/secret-tls/ca.crt" in output
    assert "credential" in output
    assert "Run Summary" in output
    assert "50%" in output


def test_no_external_files_prints_nothing():
    console = Console(record=True)
    ReportFormatter(console=console).print_external_files([])
    assert console.export_text() == ""
