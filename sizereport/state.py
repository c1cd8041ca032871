from __future__ import annotations

from typing import Callable, Iterable
from urllib.parse import parse_qsl, urlencode


TYPE_STATE_KEY = "types"
BYTE_UNITS = {
    "B": 1,
    "KiB": 1024,
    "MiB": 1024**2,
    "GiB": 1024**3,
}
DEFAULT_BYTE_UNIT = "KiB"

Listener = Callable[["ViewState", str], None]


class ViewState:
    """Display settings shared by the tree builder and the info cards.

    Values are strings keyed like query-string parameters; flags such as
    ``diff_mode`` or ``gzip`` are present or absent. ``types`` holds the
    one-character symbol types to show, any number of times.
    Listeners are told about every change with the key that changed.
    """

    def __init__(self, params: Iterable[tuple[str, str]] = ()) -> None:
        self._params: list[tuple[str, str]] = []
        self._listeners: list[Listener] = []
        for key, value in params:
            if key == TYPE_STATE_KEY:
                self._params.extend((key, t) for t in value)
            else:
                self._params.append((key, value))

    @classmethod
    def from_query_string(cls, query: str) -> "ViewState":
        return cls(parse_qsl(query.lstrip("?"), keep_blank_values=True))

    def get(self, key: str) -> str | None:
        for name, value in self._params:
            if name == key:
                return value
        return None

    def get_all(self, key: str) -> list[str]:
        return [value for name, value in self._params if name == key]

    def has(self, key: str) -> bool:
        return any(name == key for name, _ in self._params)

    def set(self, key: str, value: str | None) -> None:
        self._params = [(name, v) for name, v in self._params if name != key]
        if value is not None:
            if key == TYPE_STATE_KEY:
                self._params.extend((key, t) for t in value)
            else:
                self._params.append((key, value))
        self._notify(key)

    def set_flag(self, key: str, enabled: bool) -> None:
        self.set(key, "on" if enabled else None)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, key: str) -> None:
        for listener in list(self._listeners):
            listener(self, key)

    @property
    def diff_mode(self) -> bool:
        return self.has("diff_mode")

    @property
    def gzip(self) -> bool:
        return self.has("gzip")

    @property
    def byte_unit(self) -> str:
        unit = self.get("byteunit")
        return unit if unit in BYTE_UNITS else DEFAULT_BYTE_UNIT

    @property
    def types(self) -> frozenset[str] | None:
        """Symbol types to show, or None when every type is shown."""
        selected = self.get_all(TYPE_STATE_KEY)
        return frozenset(selected) if selected else None

    def to_query_string(self) -> str:
        params = [(name, value) for name, value in self._params if name != TYPE_STATE_KEY]
        types = list(dict.fromkeys(self.get_all(TYPE_STATE_KEY)))
        if types:
            params.append((TYPE_STATE_KEY, "".join(types)))
        query = urlencode(params)
        return f"?{query}" if query else ""

    def __str__(self) -> str:
        return self.to_query_string()
