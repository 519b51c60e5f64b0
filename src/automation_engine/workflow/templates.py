"""Template expressions: `{{identifier(.prop|[index])*}}`.

Expressions may appear anywhere in a step's input tree, either as a whole
string (the raw value is substituted, type preserved) or interpolated into
surrounding text (the value is rendered as text).

Namespaces:
- `trigger.*`    the trigger payload
- `credential.*` the run's credentials (canonical)
- `user.*`       deprecated alias of `credential.*`
- anything else  an output declared by an earlier step
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from automation_engine.errors import ResolutionError, TemplateSyntaxError
from automation_engine.workflow.context import RunContext

logger = logging.getLogger(__name__)

TRIGGER_NAMESPACE = "trigger"
CREDENTIAL_NAMESPACE = "credential"
LEGACY_CREDENTIAL_NAMESPACE = "user"
CREDENTIAL_NAMESPACES = frozenset({CREDENTIAL_NAMESPACE, LEGACY_CREDENTIAL_NAMESPACE})
RESERVED_NAMESPACES = frozenset({TRIGGER_NAMESPACE}) | CREDENTIAL_NAMESPACES

TEMPLATE_PATTERN = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)
_ROOT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_SEGMENT = re.compile(r"\.([A-Za-z0-9_\-]+)|\[(\d+)\]")

Segment = str | int


@dataclass(frozen=True, slots=True)
class Expression:
    source: str
    root: str
    path: tuple[Segment, ...] = ()

    @property
    def is_reference(self) -> bool:
        """True when the root names a step output rather than a namespace."""
        return self.root not in RESERVED_NAMESPACES


def parse_expression(source: str) -> Expression:
    text = source.strip()
    match = _ROOT.match(text)
    if match is None:
        raise TemplateSyntaxError(source, "expected an identifier")
    pos = match.end()
    path: list[Segment] = []
    while pos < len(text):
        seg = _SEGMENT.match(text, pos)
        if seg is None:
            raise TemplateSyntaxError(source, f"unexpected {text[pos:]!r}")
        prop, index = seg.groups()
        path.append(int(index) if index is not None else prop)
        pos = seg.end()
    return Expression(source=text, root=match.group(0), path=tuple(path))


def find_expressions(value: Any) -> Iterator[Expression]:
    """Every expression in a nested input tree, in document order."""
    if isinstance(value, str):
        for match in TEMPLATE_PATTERN.finditer(value):
            yield parse_expression(match.group(1))
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from find_expressions(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from find_expressions(item)


def referenced_names(value: Any) -> set[str]:
    """Leading identifiers that must be provided by other steps."""
    return {expr.root for expr in find_expressions(value) if expr.is_reference}


def render_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    return json.dumps(value, ensure_ascii=False, default=str)


def _segment_label(segment: Segment) -> str:
    return f"[{segment}]" if isinstance(segment, int) else segment


class VariableResolver:
    """Resolves template expressions against one run context."""

    def __init__(self, context: RunContext, *, step_id: str | None = None) -> None:
        self.context = context
        self.step_id = step_id

    def _fail(self, expression: Expression, segment: Segment | str, reason: str) -> ResolutionError:
        return ResolutionError(
            step_id=self.step_id,
            expression=expression.source,
            segment=_segment_label(segment) if not isinstance(segment, str) else segment,
            reason=reason,
        )

    def _root_value(self, expression: Expression) -> Any:
        root = expression.root
        if root == TRIGGER_NAMESPACE:
            return self.context.trigger
        if root in CREDENTIAL_NAMESPACES:
            if root == LEGACY_CREDENTIAL_NAMESPACE and root not in self.context.deprecation_warnings:
                self.context.deprecation_warnings.add(root)
                logger.warning(
                    "'{{user.*}}' is deprecated; use '{{credential.*}}'",
                    extra={"step_id": self.step_id, "expression": expression.source},
                )
            return self.context.credentials
        if not self.context.has_output(root):
            raise self._fail(expression, root, f"no earlier step declared output {root!r}")
        return self.context.get_output(root)

    def _walk(self, expression: Expression, value: Any, segment: Segment) -> Any:
        if isinstance(value, BaseModel):
            value = value.model_dump()

        if isinstance(value, Mapping):
            if segment in value:
                return value[segment]
            if isinstance(segment, int) and str(segment) in value:
                return value[str(segment)]
            raise self._fail(expression, segment, "key not found")

        if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            if segment == "length":
                return len(value)
            index = segment if isinstance(segment, int) else None
            if isinstance(segment, str) and segment.isdigit():
                index = int(segment)
            if index is None:
                raise self._fail(expression, segment, "lists only support numeric indices")
            if index >= len(value):
                raise self._fail(
                    expression, segment, f"index out of bounds (length {len(value)})"
                )
            return value[index]

        if isinstance(value, str) and segment == "length":
            return len(value)

        kind = "null" if value is None else type(value).__name__
        raise self._fail(expression, segment, f"cannot access a property of {kind}")

    def resolve_expression(self, expression: Expression | str) -> Any:
        if isinstance(expression, str):
            expression = parse_expression(expression)
        value = self._root_value(expression)
        for segment in expression.path:
            value = self._walk(expression, value, segment)
        return value

    def resolve_string(self, text: str) -> Any:
        matches = list(TEMPLATE_PATTERN.finditer(text))
        if not matches:
            return text
        if len(matches) == 1 and matches[0].span() == (0, len(text)):
            return self.resolve_expression(parse_expression(matches[0].group(1)))

        def _replace(match: re.Match[str]) -> str:
            return render_text(self.resolve_expression(parse_expression(match.group(1))))

        return TEMPLATE_PATTERN.sub(_replace, text)

    def resolve(self, value: Any) -> Any:
        """Resolve a whole input tree; non-string leaves pass through unchanged."""
        if isinstance(value, str):
            return self.resolve_string(value)
        if isinstance(value, Mapping):
            return {key: self.resolve(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self.resolve(item) for item in value]
        if isinstance(value, tuple):
            return tuple(self.resolve(item) for item in value)
        return value
