#!/usr/bin/env python3
"""
KUBECHARTER TEMPLATE TREE - Structured Templates
------------------------------------------------
Templates are built as manifest trees whose leaves may point into the
values file, instead of being concatenated as text. The tree can be checked
for well-formedness on its own; render_template() turns it into template
text without ever executing it.

Author: KubeCharter Team
Date: 2026-10-17
"""

import io
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

_TOKEN = re.compile(r"(['\"]?)__kcref_(\d+)__\1")

PREFERRED_ORDER = ["apiVersion", "kind", "metadata", "spec", "data", "stringData", "status"]


@dataclass(frozen=True)
class ValueRef:
    """
    A leaf that reads the values tree at render time. Map keys that are not
    template identifiers (ConfigMap keys such as 'app.conf') go in keys and
    are looked up with 'index'.
    """
    path: str
    keys: Tuple[str, ...] = ()
    structured: bool = False
    quote: bool = False
    default: Any = None

    def reference(self) -> str:
        ref = f".Values.{self.path}"
        if self.keys:
            ref = "(index " + ref + " " + " ".join(json.dumps(k) for k in self.keys) + ")"
        return ref

    def expression(self) -> str:
        ref = self.reference()
        if self.structured:
            return "{{ toJson " + ref + " }}"
        if self.default is not None:
            ref += f" | default {json.dumps(self.default)}"
        if self.quote:
            ref += " | quote"
        return "{{ " + ref + " }}"


@dataclass(frozen=True)
class Expr:
    """A leaf emitted verbatim as a template action, e.g. an include or .Files.Get."""
    text: str

    def expression(self) -> str:
        return self.text


@dataclass
class TemplateDocument:
    """One template file: a manifest tree, optionally guarded by an 'enabled' flag."""
    body: Dict[str, Any]
    guard: Optional[str] = None

    def value_refs(self) -> List[ValueRef]:
        refs: List[ValueRef] = []
        _collect_refs(self.body, refs)
        return refs

    def check(self) -> List[str]:
        """Structural problems that would make the template unusable."""
        problems = []
        for required in ("apiVersion", "kind", "metadata"):
            if required not in self.body:
                problems.append(f"missing top-level field '{required}'")
        for ref in self.value_refs():
            if not ref.path or ref.path.startswith(".") or ref.path.endswith(".") or ".." in ref.path \
                    or not all(ref.keys):
                problems.append(f"malformed values path '{ref.path}'")
        return problems


def _collect_refs(node: Any, refs: List[ValueRef]):
    if isinstance(node, ValueRef):
        refs.append(node)
    elif isinstance(node, dict):
        for value in node.values():
            _collect_refs(value, refs)
    elif isinstance(node, list):
        for item in node:
            _collect_refs(item, refs)


class TemplateRenderer:
    """
    Dumps a TemplateDocument through ruamel.yaml with Kubernetes key order,
    then swaps each ValueRef or Expr placeholder for its template action.
    """

    def __init__(self):
        self.yaml = YAML(typ='rt')
        self.yaml.indent(mapping=2, sequence=4, offset=2)
        self.yaml.width = 4096
        self.preferred_order = PREFERRED_ORDER

    def _ordered(self, data: Any, refs: List[Any]) -> Any:
        if isinstance(data, (ValueRef, Expr)):
            refs.append(data)
            return f"__kcref_{len(refs) - 1}__"
        if isinstance(data, list):
            return [self._ordered(item, refs) for item in data]
        if not isinstance(data, dict):
            return data

        keys = list(data.keys())

        def sort_logic(key):
            if key in self.preferred_order:
                return self.preferred_order.index(key)
            # Unknown keys keep their relative original position
            return len(self.preferred_order) + keys.index(key)

        ordered = CommentedMap()
        for key in sorted(keys, key=sort_logic):
            ordered[key] = self._ordered(data[key], refs)
        return ordered

    def render(self, doc: TemplateDocument) -> str:
        refs: List[Any] = []
        body = self._ordered(doc.body, refs)

        stream = io.StringIO()
        self.yaml.dump(body, stream)
        text = _TOKEN.sub(lambda m: refs[int(m.group(2))].expression(), stream.getvalue())

        parts: List[str] = []
        if doc.guard:
            parts.append("{{- if " + doc.guard + " }}\n")
        parts.append(text)
        if doc.guard:
            parts.append("{{- end }}\n")
        return "".join(parts)


def render_template(doc: TemplateDocument) -> str:
    return TemplateRenderer().render(doc)


def enabled_guard(values_path: str) -> str:
    return f".Values.{values_path}.enabled"
