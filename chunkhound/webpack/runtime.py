"""
CHUNKHOUND Runtime Analyzer

Pulls the module table, chunk-loading characteristics and public path out
of a Webpack runtime, either from a live runtime view / handle or from the
runtime's source text.
"""

from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Union

from chunkhound.core.types import (
    ChunkLoadingInfo,
    ModuleInfo,
    ModuleKind,
    ModuleMap,
    RuntimeHandle,
)
from chunkhound.utils import patterns
from chunkhound.webpack.base import Component
from chunkhound.webpack.view import (
    MODULES_NAME,
    REQUIRE_NAME,
    JsFunction,
    RuntimeView,
    function_source,
    is_js_function,
)

# Case-sensitive pairs; a body hitting two of these reads as configuration
CONFIG_KEYWORDS = (
    "apiUrl", "API_URL", "baseUrl", "BASE_URL",
    "apiKey", "API_KEY", "secretKey", "SECRET_KEY",
    "config", "CONFIG", "settings", "SETTINGS",
    "endpoint", "ENDPOINT", "token", "TOKEN",
)

DEFAULT_KEYWORD_THRESHOLD = 2

Source = Union[RuntimeView, RuntimeHandle, str, None]


def count_config_keywords(source: str) -> int:
    """Number of distinct configuration keywords present in ``source``"""
    if not source:
        return 0
    return sum(1 for keyword in CONFIG_KEYWORDS if keyword in source)


def extract_dependencies(source: str) -> List[str]:
    """``__webpack_require__(id)`` targets, deduplicated in order"""
    seen: Dict[str, None] = {}
    for match in patterns.REQUIRE_CALL.finditer(source or ""):
        seen.setdefault(match.group(1), None)
    return list(seen)


def count_exports(source: str) -> int:
    names = set()
    for match in patterns.EXPORT_SITE.finditer(source or ""):
        names.add(match.group(1) or match.group(2))
    return len(names)


class RuntimeAnalyzer(Component):
    """
    Module table and chunk-loading extraction.

    Holds the ModuleMap of the last ``extract_module_map`` call. The map is
    rebuilt from scratch on every call and cleared only explicitly.
    """

    name = "runtime"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.keyword_threshold = int(
            self.config.get("config_keyword_threshold", DEFAULT_KEYWORD_THRESHOLD)
        )
        self.modules: ModuleMap = {}

    # =========================================================================
    # MODULE MAP
    # =========================================================================

    def extract_module_map(self, source: Source) -> ModuleMap:
        """Rebuild the module map from a runtime view or handle"""
        self.modules = {}
        try:
            table = self._locate_module_table(source)
            if table is None:
                return self.modules

            if isinstance(table, Mapping) or hasattr(table, "items"):
                entries = [(str(key), value) for key, value in table.items()]
            else:
                entries = [(str(index), value) for index, value in enumerate(table)]

            for module_id, value in entries:
                if not value:
                    continue
                self.modules[module_id] = self._describe_module(module_id, value)

            self.log(f"extracted {len(self.modules)} modules", "debug")
        except Exception as e:
            self.fail("module map extraction failed", e)
        return self.modules

    def _locate_module_table(self, source: Source) -> Any:
        if isinstance(source, RuntimeHandle):
            if source.modules is not None:
                return source.modules
            return getattr(source.require_function, "m", None)

        if isinstance(source, RuntimeView):
            modules = source.get(MODULES_NAME)
            if modules:
                return modules
            require = source.get(REQUIRE_NAME)
            return getattr(require, "m", None) if require is not None else None

        return None

    def _describe_module(self, module_id: str, value: Any) -> ModuleInfo:
        try:
            if isinstance(value, Mapping):
                return ModuleInfo(id=module_id, kind=ModuleKind.OBJECT)

            if isinstance(value, (JsFunction, str)) or is_js_function(value):
                body = function_source(value)
                return ModuleInfo(
                    id=module_id,
                    dependencies=extract_dependencies(body),
                    is_config_like=self.is_config_like(body),
                    export_count=count_exports(body),
                    size_bytes=len(body),
                    kind=ModuleKind.FUNCTION,
                )

            return ModuleInfo(id=module_id)
        except Exception as e:
            self.fail(f"module {module_id} could not be parsed", e, module_id=module_id)
            return ModuleInfo(id=module_id, kind=ModuleKind.UNKNOWN)

    def is_config_like(self, body: str) -> bool:
        return count_config_keywords(body) >= self.keyword_threshold

    def get_all_modules(self) -> List[ModuleInfo]:
        return list(self.modules.values())

    def get_config_modules(self) -> List[ModuleInfo]:
        return [m for m in self.modules.values() if m.is_config_like]

    def clear(self) -> None:
        self.modules = {}

    # =========================================================================
    # CHUNK LOADING
    # =========================================================================

    def analyze_chunk_loading(self, source: Source) -> ChunkLoadingInfo:
        try:
            if isinstance(source, str):
                return self._chunk_loading_from_text(source)
            return self._chunk_loading_from_runtime(source)
        except Exception as e:
            self.fail("chunk loading analysis failed", e)
            return ChunkLoadingInfo()

    def _chunk_loading_from_runtime(self, source: Source) -> ChunkLoadingInfo:
        require = self._require_of(source)
        info = ChunkLoadingInfo()
        if require is None:
            return info

        info.has_async_loading = getattr(require, "e", None) is not None
        info.naming_template = self._probe_template(getattr(require, "u", None))
        return info

    def _probe_template(self, filename_fn: Any) -> Optional[str]:
        if filename_fn is None or not callable(filename_fn):
            return None
        try:
            filename = filename_fn(0)
        except Exception as e:
            self.fail("chunk filename probe failed", e)
            return None
        if not isinstance(filename, str):
            return None
        return patterns.infer_template(filename)

    def _chunk_loading_from_text(self, code: str) -> ChunkLoadingInfo:
        info = ChunkLoadingInfo(has_async_loading=patterns.has_async_loading(code))

        for group in patterns.CHUNK_HASH_GROUP.finditer(code):
            for item in patterns.CHUNK_HASH_ITEM.finditer(group.group(0)):
                chunk_id, chunk_hash = item.group(1), item.group(2)
                if chunk_id not in info.chunk_hash_map:
                    info.chunk_ids.append(chunk_id)
                info.chunk_hash_map[chunk_id] = chunk_hash

        literal = patterns.extract_chunk_filename(code)
        if literal:
            info.naming_template = patterns.normalise_template(literal)
        return info

    # =========================================================================
    # PUBLIC PATH
    # =========================================================================

    def extract_public_path(self, source: Source) -> str:
        try:
            if isinstance(source, str):
                return patterns.extract_public_path(source) or ""

            if isinstance(source, RuntimeHandle) and source.public_path:
                return source.public_path

            require = self._require_of(source)
            path = getattr(require, "p", None) if require is not None else None
            return path if isinstance(path, str) else ""
        except Exception as e:
            self.fail("public path extraction failed", e)
            return ""

    @staticmethod
    def _require_of(source: Source) -> Any:
        if isinstance(source, RuntimeHandle):
            return source.require_function
        if isinstance(source, RuntimeView):
            require = source.get(REQUIRE_NAME)
            return require if is_js_function(require) else None
        return None
