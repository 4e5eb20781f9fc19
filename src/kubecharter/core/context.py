#!/usr/bin/env python3
"""
KUBECHARTER PROCESSING CONTEXT
------------------------------
The read-only bundle of collaborators threaded into every transformation
call. It carries no per-resource state: every run builds its own context,
so concurrent runs never share a file store.

Author: KubeCharter Team
Date: 2026-10-17
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from kubecharter.core.errors import ExternalizationError
from kubecharter.core.models import ClassifiedValue, ExternalFileRef
from kubecharter.values.classifier import ValueClassifier
from kubecharter.values.store import ExternalFileStore

logger = logging.getLogger("kubecharter.context")


@dataclass(frozen=True)
class Placement:
    """Where one payload ended up after classification."""
    classified: ClassifiedValue
    file: Optional[ExternalFileRef] = None
    error: Optional[str] = None

    @property
    def external(self) -> bool:
        return self.file is not None

    def values_entry(self) -> Any:
        """The value to write into the values tree for this payload."""
        if self.file is not None:
            return ExternalFileStore.values_reference(self.file)
        return self.classified.formatted_value


@dataclass(frozen=True)
class ProcessingContext:
    chart_name: str
    classifier: ValueClassifier
    file_store: ExternalFileStore

    def place_value(self, source_resource: str, key: str, raw: Any) -> Placement:
        """
        Classifies a payload and externalizes it when advised. A store failure
        downgrades to an inline placement; it never fails the resource.
        """
        classified = self.classifier.classify(key, raw)
        if not classified.should_externalize:
            return Placement(classified=classified)

        try:
            ref = self.file_store.add_from_classified(source_resource, key, classified)
        except ExternalizationError as e:
            logger.warning(f"Inlining {source_resource}:{key} after externalization failure: {e}")
            return Placement(classified=classified, error=str(e))
        return Placement(classified=classified, file=ref)
