#!/usr/bin/env python3
"""
KUBECHARTER PROCESSOR REGISTRY - The Dispatcher
-----------------------------------------------
Maps a resource's Group/Version/Kind onto exactly one transformation unit.

Resolution is a total order: highest priority first, then registration
order. The table is filled before processing starts and sealed by the first
resolve/dispatch, after which it is read-only and safe to share across
worker threads without locking.

Author: KubeCharter Team
Date: 2026-10-17
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from kubecharter.core.context import ProcessingContext
from kubecharter.core.errors import RegistrySealedError
from kubecharter.core.models import GroupVersionKind, ProcessingResult
from kubecharter.core.processor import BaseProcessor, reject_empty

logger = logging.getLogger("kubecharter.registry")


class ProcessorRegistry:
    """
    An explicitly constructed registry. Each run (and each test) owns its
    own instance; there is no module-level table.
    """

    def __init__(self):
        self._units: List[BaseProcessor] = []
        # gvk -> [(priority, registration index, unit)] kept in resolution order
        self._by_gvk: Dict[GroupVersionKind, List[Tuple[int, int, BaseProcessor]]] = {}
        self._sealed = False

    def register(self, unit: BaseProcessor):
        if self._sealed:
            raise RegistrySealedError(
                "Cannot register after dispatch has started",
                {"unit": getattr(unit, "name", repr(unit))},
            )

        supported = unit.supports()
        if not supported:
            raise ValueError(f"Processor '{unit.name}' declares no supported kinds")

        index = len(self._units)
        self._units.append(unit)

        for gvk in dict.fromkeys(supported):
            entries = self._by_gvk.setdefault(gvk, [])
            entries.append((int(unit.priority), index, unit))
            entries.sort(key=lambda entry: (-entry[0], entry[1]))

        logger.debug(f"Registered {unit.name} (priority {unit.priority}) for {len(supported)} kind(s)")

    def seal(self):
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def resolve(self, obj: Dict[str, Any]) -> Optional[BaseProcessor]:
        """The single applicable unit for obj, or None when its kind is unsupported."""
        reject_empty(obj)
        self._sealed = True
        entries = self._by_gvk.get(GroupVersionKind.of(obj))
        if not entries:
            return None
        return entries[0][2]

    def dispatch(self, obj: Dict[str, Any], ctx: ProcessingContext) -> ProcessingResult:
        unit = self.resolve(obj)
        if unit is None:
            logger.debug(f"No processor for {GroupVersionKind.of(obj)}; skipping")
            return ProcessingResult.unprocessed()

        result = unit.process(ctx, obj)
        if result is None:
            return ProcessingResult.unprocessed()
        return result

    def candidates(self, gvk: GroupVersionKind) -> List[BaseProcessor]:
        """All units declaring gvk, in resolution order."""
        return [unit for _, _, unit in self._by_gvk.get(gvk, [])]

    def units(self) -> List[BaseProcessor]:
        return list(self._units)

    def supported_gvks(self) -> List[GroupVersionKind]:
        return sorted(self._by_gvk, key=lambda g: (g.group, g.version, g.kind))

    def __len__(self) -> int:
        return len(self._units)
