"""
Read-only dotted-path view over decoded JSON payloads.

Bilibili responses are deeply nested and loosely typed (numbers sometimes
arrive as strings, optional sub-objects are simply absent). Sources never
index raw dicts directly; they query a JsonView, which answers missing or
mistyped paths with safe defaults instead of raising.

Paths are dot separated; integer segments index into arrays:

    view.string("modules.module_author.name")
    view.string("modules.module_dynamic.major.article.covers.0")
"""

import json
from typing import Any

_MISSING = object()


class JsonView:
    """Wraps one node of a JSON tree."""

    __slots__ = ("_value",)

    def __init__(self, value: Any = _MISSING):
        self._value = value

    @classmethod
    def parse(cls, raw: bytes | str) -> "JsonView":
        """
        Decode a JSON document.

        Raises:
            ValueError: If ``raw`` is not valid JSON
        """
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return cls(json.loads(raw))

    def _resolve(self, path: str | None) -> Any:
        node = self._value
        if not path:
            return node
        for segment in path.split("."):
            if isinstance(node, dict):
                node = node.get(segment, _MISSING)
            elif isinstance(node, list) and segment.isdigit():
                index = int(segment)
                node = node[index] if index < len(node) else _MISSING
            else:
                return _MISSING
            if node is _MISSING:
                return _MISSING
        return node

    def get(self, path: str) -> "JsonView":
        """Return the sub-view at ``path`` (a missing view if absent)."""
        return JsonView(self._resolve(path))

    def exists(self, path: str | None = None) -> bool:
        """True if ``path`` (or this node) is present; JSON null counts as present."""
        return self._resolve(path) is not _MISSING

    @property
    def value(self) -> Any:
        """The raw decoded value, or None if missing."""
        return None if self._value is _MISSING else self._value

    def array(self, path: str | None = None) -> list["JsonView"]:
        """Return the elements at ``path``, or an empty list if it is not an array."""
        node = self._resolve(path)
        if not isinstance(node, list):
            return []
        return [JsonView(item) for item in node]

    def string(self, path: str | None = None, default: str = "") -> str:
        node = self._resolve(path)
        if node is _MISSING or node is None:
            return default
        if isinstance(node, str):
            return node
        if isinstance(node, bool):
            return "true" if node else "false"
        if isinstance(node, (int, float)):
            return str(node)
        return json.dumps(node, ensure_ascii=False)

    def integer(self, path: str | None = None, default: int = 0) -> int:
        """
        Integer at ``path``.

        Numeric strings are converted, floats truncated, booleans map to
        0/1; anything else yields ``default``.
        """
        node = self._resolve(path)
        if isinstance(node, bool):
            return int(node)
        if isinstance(node, int):
            return node
        try:
            if isinstance(node, float):
                return int(node)
            if isinstance(node, str):
                text = node.strip()
                return int(text) if text.lstrip("-").isdigit() else int(float(text))
        except (ValueError, OverflowError):
            return default
        return default

    def boolean(self, path: str | None = None, default: bool = False) -> bool:
        node = self._resolve(path)
        if isinstance(node, bool):
            return node
        if isinstance(node, (int, float)):
            return node != 0
        if isinstance(node, str):
            return node.strip().lower() in {"1", "true", "yes"}
        return default

    def __repr__(self) -> str:
        if self._value is _MISSING:
            return "JsonView(<missing>)"
        return f"JsonView({self._value!r})"
