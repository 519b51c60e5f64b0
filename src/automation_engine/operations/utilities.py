"""General-purpose utility operations: strings, arrays, JSON, dates, math."""

from __future__ import annotations

import ast
import json
import operator
import statistics
from datetime import UTC, datetime
from typing import Any

from automation_engine.registry import operation, param

_BINARY_OPS: dict[type[ast.operator], Any] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS: dict[type[ast.unaryop], Any] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}
_MAX_EXPONENT = 100


def _eval_node(node: ast.AST) -> float | int:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(
        node.value, bool
    ):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _eval_node(node.left)
        right = _eval_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
            raise ValueError("Exponent too large")
        return _BINARY_OPS[type(node.op)](left, right)  # type: ignore[no-any-return]
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))  # type: ignore[no-any-return]
    raise ValueError(f"Unsupported expression element: {type(node).__name__}")


@operation(
    "utilities.math.evaluate",
    description="Evaluate an arithmetic expression (+ - * / // % ** and parentheses)",
    params=(param("expression", "string", "Arithmetic expression, e.g. '2 + 2 * 3'"),),
    example='evaluate({ expression: "2 + 2" })',
)
def evaluate(expression: str) -> float | int:
    try:
        tree = ast.parse(expression, mode="eval")
    except SyntaxError as e:
        raise ValueError(f"Invalid expression: {expression!r}") from e
    result = _eval_node(tree)
    if isinstance(result, float) and result.is_integer():
        return int(result)
    return result


@operation(
    "utilities.math.sum",
    description="Sum a list of numbers",
    params=(param("values", "array", "Numbers to add", items="number"),),
)
def sum_values(values: list[float]) -> float:
    return sum(values)


@operation(
    "utilities.math.average",
    description="Arithmetic mean of a list of numbers",
    params=(param("values", "array", "Numbers to average", items="number"),),
)
def average(values: list[float]) -> float:
    if not values:
        raise ValueError("Cannot average an empty list")
    return statistics.fmean(values)


@operation(
    "utilities.string.upper",
    description="Convert text to uppercase",
    params=(param("text", "string", "Text to convert"),),
    example='upper({ text: "{{trigger.message}}" })',
)
def upper(text: str) -> str:
    return text.upper()


@operation(
    "utilities.string.lower",
    description="Convert text to lowercase",
    params=(param("text", "string", "Text to convert"),),
)
def lower(text: str) -> str:
    return text.lower()


@operation(
    "utilities.string.truncate",
    description="Truncate text to a maximum length, appending a suffix when cut",
    params=(
        param("text", "string", "Text to truncate"),
        param("max_length", "integer", "Maximum length including the suffix"),
        param("suffix", "string", "Appended when text is cut", required=False, default="..."),
    ),
)
def truncate(text: str, max_length: int, suffix: str = "...") -> str:
    if max_length < 0:
        raise ValueError("max_length must be non-negative")
    if len(text) <= max_length:
        return text
    if len(suffix) >= max_length:
        return text[:max_length]
    return text[: max_length - len(suffix)] + suffix


@operation(
    "utilities.string.split",
    description="Split text on a separator",
    params=(
        param("text", "string", "Text to split"),
        param("separator", "string", "Separator", required=False, default=","),
    ),
)
def split(text: str, separator: str = ",") -> list[str]:
    return [part.strip() for part in text.split(separator)]


@operation(
    "utilities.string.join",
    description="Join a list of values into a single string",
    params=(
        param("items", "array", "Values to join"),
        param("separator", "string", "Separator", required=False, default=", "),
    ),
)
def join(items: list[Any], separator: str = ", ") -> str:
    return separator.join(str(item) for item in items)


@operation(
    "utilities.json.parse",
    description="Parse a JSON string; markdown code fences are stripped first",
    params=(param("text", "string", "JSON text"),),
)
def parse_json(text: str) -> Any:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        cleaned = cleaned.rsplit("```", 1)[0]
    return json.loads(cleaned)


@operation(
    "utilities.json.stringify",
    description="Serialize a value to a JSON string",
    params=(
        param("value", "any", "Value to serialize"),
        param("indent", "integer", "Indentation width", required=False),
    ),
)
def stringify(value: Any, indent: int | None = None) -> str:
    return json.dumps(value, indent=indent, ensure_ascii=False, default=str)


@operation(
    "utilities.array.first",
    description="First element of a list, or null when empty",
    params=(param("items", "array", "List"),),
)
def first(items: list[Any]) -> Any:
    return items[0] if items else None


@operation(
    "utilities.array.pluck",
    description="Collect one field from every object in a list",
    params=(
        param("items", "array", "List of objects", items="object"),
        param("key", "string", "Field to collect"),
    ),
)
def pluck(items: list[dict[str, Any]], key: str) -> list[Any]:
    return [item.get(key) for item in items if isinstance(item, dict)]


@operation(
    "utilities.array.deduplicate",
    description="Remove duplicates, optionally by an object field, keeping first occurrences",
    params=(
        param("items", "array", "List to deduplicate"),
        param("key", "string", "Object field used as identity", required=False),
    ),
)
def deduplicate(items: list[Any], key: str | None = None) -> list[Any]:
    seen: set[str] = set()
    out: list[Any] = []
    for item in items:
        identity = item.get(key) if key and isinstance(item, dict) else item
        marker = json.dumps(identity, sort_keys=True, default=str)
        if marker in seen:
            continue
        seen.add(marker)
        out.append(item)
    return out


@operation(
    "utilities.array.count",
    description="Number of elements in a list",
    params=(param("items", "array", "List"),),
)
def count(items: list[Any]) -> int:
    return len(items)


@operation(
    "utilities.datetime.now",
    description="Current UTC time as an ISO-8601 string",
)
def now() -> str:
    return datetime.now(tz=UTC).isoformat()


@operation(
    "utilities.datetime.to_iso",
    description="Convert a UNIX timestamp (seconds) to an ISO-8601 UTC string",
    params=(param("timestamp", "number", "Seconds since the epoch"),),
)
def to_iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=UTC).isoformat()
