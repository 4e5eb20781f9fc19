#!/usr/bin/env python3
"""
KUBECHARTER ENGINE - The High Orchestrator
------------------------------------------
The ChartEngine drives a collection of Kubernetes objects through the
registry: one dispatch per object, fanned out over a worker pool, with
every per-resource failure isolated into its own result.

Each engine owns its registry, classifier and file store, so two engines
never share state.

Author: KubeCharter Team
Date: 2026-10-17
"""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, List, Optional, Sequence

from kubecharter.config import EngineConfig
from kubecharter.core.context import ProcessingContext
from kubecharter.core.errors import InputRejectedError
from kubecharter.core.models import ExternalFileRef, ProcessingResult
from kubecharter.core.naming import resource_id
from kubecharter.core.registry import ProcessorRegistry
from kubecharter.processors.bundled import register_all
from kubecharter.rendering.template import TemplateRenderer
from kubecharter.values.store import ExternalFileStore

# Setup standardized logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("kubecharter.engine")


def values_path_collisions(results: Sequence[ProcessingResult]) -> Dict[str, List[str]]:
    """
    values paths claimed by more than one template. Key sanitization folds
    names like 'app-config' and 'app.config' together; merged values for
    such resources would overwrite each other.
    """
    claims: Dict[str, List[str]] = {}
    for r in results:
        if r.processed and r.template_path not in claims.get(r.values_path, []):
            claims.setdefault(r.values_path, []).append(r.template_path)
    return {path: templates for path, templates in claims.items() if len(templates) > 1}


class ChartEngine:
    """
    Principal orchestrator for manifest-to-chart conversion.
    """

    def __init__(self, config: Optional[EngineConfig] = None,
                 registry: Optional[ProcessorRegistry] = None, writer=None):
        self.config = config or EngineConfig()
        self.registry = registry if registry is not None else register_all(ProcessorRegistry())
        self.file_store = ExternalFileStore(
            writer=writer if writer is not None else self.config.writer(),
            write_attempts=self.config.write_attempts,
        )
        self.context = ProcessingContext(
            chart_name=self.config.chart_name,
            classifier=self.config.classifier(),
            file_store=self.file_store,
        )
        self.renderer = TemplateRenderer()
        # Sealed up front so workers only ever read the table
        self.registry.seal()

    def process(self, obj: Any) -> ProcessingResult:
        """Dispatches one object. Never raises: failures come back as results."""
        try:
            return self.registry.dispatch(obj, self.context)
        except InputRejectedError as e:
            logger.error(f"Rejected input: {e}")
            return ProcessingResult.unprocessed(error=str(e))
        except Exception as e:
            label = resource_id(obj) if isinstance(obj, dict) else type(obj).__name__
            logger.error(f"Error processing {label}: {str(e)}")
            return ProcessingResult.unprocessed(error=f"{type(e).__name__}: {e}")

    def process_batch(self, objects: Sequence[Any], workers: Optional[int] = None,
                      progress_callback: Optional[Callable[[int, int], None]] = None) -> List[ProcessingResult]:
        """
        Processes objects concurrently. Results come back in input order,
        whatever order the workers finish in.
        """
        items = list(objects)
        total = len(items)
        results: List[Optional[ProcessingResult]] = [None] * total
        if not items:
            return []

        max_workers = max(1, workers or self.config.workers)
        processed = 0
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = {pool.submit(self.process, obj): index for index, obj in enumerate(items)}
            for future in as_completed(futures):
                results[futures[future]] = future.result()
                processed += 1
                if progress_callback:
                    progress_callback(processed, total)

        for path, templates in values_path_collisions(results).items():
            logger.warning(f"values path {path} is shared by {len(templates)} templates: {', '.join(templates)}")
        return results

    def render(self, result: ProcessingResult) -> Optional[str]:
        if not result.processed or result.template is None:
            return None
        return self.renderer.render(result.template)

    def external_files(self) -> List[ExternalFileRef]:
        return self.file_store.files()

    def write_templates(self, results: Sequence[ProcessingResult]) -> List[str]:
        """Writes rendered templates below output_dir; returns the paths written."""
        if not self.config.output_dir:
            raise ValueError("write_templates requires output_dir to be configured")

        root = Path(self.config.output_dir).resolve()
        written = []
        for result in results:
            content = self.render(result)
            if content is None:
                continue
            target = root.joinpath(*PurePosixPath(result.template_path).parts)
            target.parent.mkdir(parents=True, exist_ok=True)
            self._atomic_write(target, content)
            written.append(result.template_path)
        return written

    def generate_summary(self, results: Sequence[ProcessingResult]) -> Dict[str, Any]:
        """Run-level counters for the report."""
        if not results:
            return {
                "total_resources": 0, "processed": 0, "skipped": 0,
                "errors": 0, "success_rate": 0, "external_files": len(self.file_store),
                "values_path_collisions": 0,
            }

        total = len(results)
        processed = sum(1 for r in results if r.processed)
        errors = sum(1 for r in results if r.failed)
        per_processor: Dict[str, int] = {}
        for r in results:
            if r.processor:
                per_processor[r.processor] = per_processor.get(r.processor, 0) + 1

        return {
            "total_resources": total,
            "processed": processed,
            "skipped": total - processed - errors,
            "errors": errors,
            "success_rate": processed / total,
            "dependencies": sum(len(r.dependencies) for r in results),
            "external_files": len(self.file_store),
            "by_processor": per_processor,
            "values_path_collisions": len(values_path_collisions(results)),
            "summary_timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
        }

    def _atomic_write(self, target_path: Path, content: str):
        temp_file = target_path.with_suffix('.kubecharter.tmp')
        try:
            temp_file.write_text(content, encoding='utf-8')
            os.replace(temp_file, target_path)
        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise IOError(f"Atomic write failed: {str(e)}")
