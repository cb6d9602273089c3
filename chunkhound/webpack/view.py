"""
CHUNKHOUND Runtime View

The boundary between the engine and whatever host exposes a page's
JavaScript globals (a headless browser, an extension content script, a
saved snapshot). The host hands over plain Python stand-ins for the JS
objects it found; the engine only ever reads them.

JS arrays become ``JsArray`` (a list that remembers the source of its
``push`` method), JS functions become ``JsFunction`` (source text plus an
optional Python callable), and ``__webpack_require__`` becomes a
``RequireFunction`` carrying whichever of its well-known attachments the
host could read.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence

REQUIRE_NAME = "__webpack_require__"
MODULES_NAME = "__webpack_modules__"


class JsArray(list):
    """A JS array, optionally carrying the source of a patched ``push``"""

    def __init__(self, items: Sequence[Any] = (), push_source: str = ""):
        super().__init__(items)
        self.push_source = push_source or ""


@dataclass
class JsFunction:
    """A JS function: its source text and, optionally, a way to call it"""
    source: str = ""
    impl: Optional[Callable[..., Any]] = None

    def __call__(self, *args):
        if self.impl is None:
            raise TypeError("function is not callable from this host")
        return self.impl(*args)

    def __str__(self) -> str:
        return self.source


@dataclass
class RequireFunction(JsFunction):
    """
    ``__webpack_require__`` and its attachments.

    p: public path, m: module table, e: async chunk loader,
    u: chunk id -> filename function, v: runtime version string.
    """
    p: Optional[str] = None
    m: Any = None
    e: Any = None
    u: Any = None
    v: Optional[str] = None


@dataclass
class ScriptTag:
    src: Optional[str] = None
    text: str = ""

    @property
    def is_inline(self) -> bool:
        return not self.src


def is_js_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def is_js_function(value: Any) -> bool:
    return isinstance(value, JsFunction) or callable(value)


def function_source(value: Any) -> str:
    """Serialized text of a function-like module value"""
    if isinstance(value, JsFunction):
        return value.source
    if isinstance(value, str):
        return value
    return str(value)


class RuntimeView:
    """
    Read-only, absent-tolerant view over a host's globals and scripts.

    Every accessor swallows host errors: an unreadable global is simply
    absent. Views are borrowed for one analysis pass and must not be kept.
    """

    def __init__(
        self,
        bindings: Optional[Mapping[str, Any]] = None,
        scripts: Optional[Sequence[ScriptTag]] = None,
        env: Optional[Mapping[str, Any]] = None,
        location: Optional[str] = None,
    ):
        self._globals = bindings if bindings is not None else {}
        self._scripts = scripts if scripts is not None else []
        self._env = env
        self.location = location

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def keys(self) -> List[str]:
        try:
            return [str(k) for k in list(self._globals.keys())]
        except Exception:
            return []

    def get(self, name: str) -> Any:
        try:
            return self._globals.get(name)
        except Exception:
            return None

    def items(self) -> Iterator:
        for key in self.keys():
            yield key, self.get(key)

    @property
    def scripts(self) -> List[ScriptTag]:
        try:
            return list(self._scripts)
        except Exception:
            return []

    @property
    def inline_scripts(self) -> List[ScriptTag]:
        return [s for s in self.scripts if s.is_inline]

    @property
    def external_scripts(self) -> List[ScriptTag]:
        return [s for s in self.scripts if not s.is_inline]

    @property
    def env(self) -> Mapping[str, Any]:
        """``process.env`` as exposed by the host, or an empty mapping"""
        try:
            if self._env is not None:
                return self._env
            process = self.get("process")
            if isinstance(process, Mapping) and isinstance(process.get("env"), Mapping):
                return process["env"]
        except Exception:
            pass
        return {}

    @property
    def require(self) -> Optional[JsFunction]:
        value = self.get(REQUIRE_NAME)
        return value if isinstance(value, JsFunction) else None

    @property
    def modules(self) -> Any:
        return self.get(MODULES_NAME)

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Any]) -> "RuntimeView":
        """
        Build a view from a JSON snapshot.

        Tagged values: ``{"type": "array", "items": [...], "push": "..."}``,
        ``{"type": "function", "source": "..."}`` and
        ``{"type": "require", "p": ..., "m": {...}, "e": ..., "u": ..., "v": ...}``.
        Anything else is taken as plain data.
        """
        data = data or {}
        bindings = {name: _thaw(value) for name, value in (data.get("globals") or {}).items()}
        scripts = [
            ScriptTag(src=s.get("src") or None, text=s.get("text") or "")
            for s in (data.get("scripts") or [])
            if isinstance(s, Mapping)
        ]
        env = data.get("env")
        return cls(
            bindings=bindings,
            scripts=scripts,
            env=dict(env) if isinstance(env, Mapping) else None,
            location=data.get("location"),
        )


def _thaw(value: Any) -> Any:
    if isinstance(value, list):
        return [_thaw(v) for v in value]
    if not isinstance(value, Mapping):
        return value

    kind = value.get("type")
    if kind == "array":
        return JsArray([_thaw(v) for v in value.get("items") or []], value.get("push") or "")
    if kind == "function":
        return JsFunction(source=value.get("source") or "")
    if kind == "require":
        return RequireFunction(
            source=value.get("source") or "",
            p=value.get("p"),
            m=_thaw(value.get("m")) if value.get("m") is not None else None,
            e=_thaw_callable(value.get("e")),
            u=_thaw_callable(value.get("u")),
            v=value.get("v"),
        )
    return {k: _thaw(v) for k, v in value.items()}


def _thaw_callable(value: Any) -> Optional[JsFunction]:
    """Snapshot form of e/u: source text, or for u a recorded id -> filename table"""
    if value is None:
        return None
    if isinstance(value, str):
        return JsFunction(source=value)
    if isinstance(value, Mapping) and value.get("type") == "function":
        return JsFunction(source=value.get("source") or "")
    if isinstance(value, Mapping):
        table: Dict[str, Any] = {str(k): v for k, v in value.items()}
        return JsFunction(
            source="",
            impl=lambda chunk_id: table.get(str(chunk_id)),
        )
    return None


__all__ = [
    "JsArray",
    "JsFunction",
    "RequireFunction",
    "RuntimeView",
    "ScriptTag",
    "function_source",
    "is_js_array",
    "is_js_function",
]
