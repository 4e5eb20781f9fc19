# src/kubecharter/report/formatter.py
from typing import Any, Dict, List, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from kubecharter.core.models import ExternalFileRef, ProcessingResult


class ReportFormatter:
    """
    ReportFormatter: terminal view of a conversion run.
    Renders per-resource results, the externalized files and the run summary.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_results_table(self, results: Sequence[ProcessingResult],
                            sources: Optional[Sequence[Any]] = None):
        """
        One row per result. When the source objects are passed alongside,
        their Kind/name fills the first column.
        """
        table = Table(title="KubeCharter Conversion Report", show_header=True, header_style="bold magenta")
        table.add_column("Resource", style="dim")
        table.add_column("Processor")
        table.add_column("Template")
        table.add_column("Deps", justify="right")
        table.add_column("Files", justify="right")
        table.add_column("Result", justify="center")

        for index, r in enumerate(results):
            table.add_row(
                self._label(sources, index),
                r.processor or "-",
                r.template_path or "-",
                str(len(r.dependencies)),
                str(len(r.external_files)),
                self._status(r),
            )

        self.console.print(table)

    def print_external_files(self, files: List[ExternalFileRef]):
        if not files:
            return

        table = Table(title="Externalized Files", show_header=True, header_style="bold cyan")
        table.add_column("Path")
        table.add_column("Type")
        table.add_column("Checksum", style="dim")
        table.add_column("First Source")

        for ref in files:
            table.add_row(ref.path, ref.detected_type.value, ref.checksum[:12], ref.source_resource)

        self.console.print(table)

    def print_summary(self, summary: Dict[str, Any]):
        lines = [
            f"Resources:      {summary.get('total_resources', 0)}",
            f"Processed:      {summary.get('processed', 0)}",
            f"Skipped:        {summary.get('skipped', 0)}",
            f"Errors:         {summary.get('errors', 0)}",
            f"External files: {summary.get('external_files', 0)}",
            f"Success rate:   {summary.get('success_rate', 0):.0%}",
        ]
        border = "red" if summary.get("errors") else "green"
        self.console.print(Panel("\n".join(lines), title="Run Summary", border_style=border))

    def _label(self, sources: Optional[Sequence[Any]], index: int) -> str:
        if sources is None or index >= len(sources) or not isinstance(sources[index], dict):
            return f"#{index + 1}"
        obj = sources[index]
        name = (obj.get("metadata") or {}).get("name", "?")
        return f"{obj.get('kind', '?')}/{name}"

    def _status(self, result: ProcessingResult) -> str:
        if result.failed:
            return "❌"
        if result.processed:
            return "✅"
        return "➖"
