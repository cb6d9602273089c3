"""
CHUNKHOUND Webpack Detector

Decides whether a page runs a Webpack bundle, and if so which major
version and build mode, by probing the runtime view for the globals the
Webpack runtime leaves behind:

1. webpackJsonp arrays           -> Webpack 4
2. webpackChunk* arrays          -> Webpack 5
3. __webpack_require__           -> either (or a patched chunk-array push)
4. __webpack_modules__           -> either
5. sourceMappingURL in scripts   -> informational only

Each probe is independent and read-only. A probe that cannot complete
counts as negative; ``detect`` itself never raises.
"""

from typing import Any, Dict, Optional

from chunkhound.core.types import (
    BuildMode,
    DetectionResult,
    FeatureFlags,
    RuntimeHandle,
    WebpackVersion,
)
from chunkhound.utils import patterns
from chunkhound.webpack.base import Component
from chunkhound.webpack.view import (
    MODULES_NAME,
    REQUIRE_NAME,
    RequireFunction,
    RuntimeView,
    is_js_array,
    is_js_function,
)

JSONP_NAMES = ("webpackJsonp", "webpackJsonpCallback")
JSONP_SUBSTRING = "webpackJsonp"
CHUNK_PREFIX = "webpackChunk"
PATCHED_PUSH_MARKER = "webpackJsonpCallback"

# Inline runtime text longer than this with line comments reads as unminified
UNMINIFIED_MIN_LENGTH = 10000


class WebpackDetector(Component):
    """
    Webpack presence/version/build-mode detector.

    Usage:
        detector = WebpackDetector()
        result = detector.detect(view)
        if result.detected:
            handle = result.runtime_handle
    """

    name = "detector"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.enabled = self.config.get("enabled", True) is not False

    # =========================================================================
    # MAIN ENTRY POINTS
    # =========================================================================

    def detect(self, view: RuntimeView) -> DetectionResult:
        """Run all probes against a runtime view"""
        if not self.enabled:
            return DetectionResult()

        try:
            features = self._detect_features(view)
            if not features.any_runtime:
                return DetectionResult(detected=False, features=features)

            result = DetectionResult(
                detected=True,
                version=self.detect_version(view),
                build_mode=self.detect_build_mode(view),
                features=features,
                runtime_handle=self.get_runtime_handle(view),
            )
            if self.debug:
                self.log(f"detected Webpack {result.version.value} ({result.build_mode.value})", "debug")
            return result
        except Exception as e:
            diagnostic = self.fail("detection failed", e)
            return DetectionResult(detected=False, error=diagnostic.message)

    def detect_from_code(self, code: str) -> DetectionResult:
        """Offline detection over raw bundle or runtime text"""
        if not self.enabled:
            return DetectionResult()

        try:
            code = code or ""
            features = FeatureFlags(
                has_jsonp_array=JSONP_SUBSTRING in code,
                has_chunk_array=CHUNK_PREFIX in code,
                has_require=REQUIRE_NAME in code,
                has_module_table=MODULES_NAME in code,
                has_source_map=patterns.extract_source_map_url(code) is not None,
            )
            if not patterns.is_webpack_runtime(code):
                return DetectionResult(detected=False, features=features)

            if features.has_chunk_array or features.has_module_table:
                version = WebpackVersion.V5
            elif features.has_jsonp_array:
                version = WebpackVersion.V4
            else:
                version = WebpackVersion.UNKNOWN

            mode_match = patterns.NODE_ENV_VALUE.search(code)
            build_mode = BuildMode.from_env(mode_match.group(1)) if mode_match else BuildMode.UNKNOWN

            return DetectionResult(
                detected=True,
                version=version,
                build_mode=build_mode,
                features=features,
                runtime_handle=RuntimeHandle(public_path=patterns.extract_public_path(code)),
            )
        except Exception as e:
            diagnostic = self.fail("text detection failed", e)
            return DetectionResult(detected=False, error=diagnostic.message)

    # =========================================================================
    # PROBES
    # =========================================================================

    def _detect_features(self, view: RuntimeView) -> FeatureFlags:
        return FeatureFlags(
            has_jsonp_array=self._probe(self._check_jsonp, view),
            has_chunk_array=self._probe(self._check_chunk_array, view),
            has_require=self._probe(self._check_require, view),
            has_module_table=self._probe(self._check_module_table, view),
            has_source_map=self._probe(self._check_source_map, view),
        )

    def _probe(self, check, view: RuntimeView) -> bool:
        try:
            return bool(check(view))
        except Exception as e:
            self.fail(f"probe {check.__name__} failed", e)
            return False

    @staticmethod
    def _check_jsonp(view: RuntimeView) -> bool:
        for name in JSONP_NAMES:
            if is_js_array(view.get(name)):
                return True
        return any(
            JSONP_SUBSTRING in key and is_js_array(view.get(key))
            for key in view.keys()
        )

    @staticmethod
    def _check_chunk_array(view: RuntimeView) -> bool:
        return any(
            key.startswith(CHUNK_PREFIX) and is_js_array(view.get(key))
            for key in view.keys()
        )

    @staticmethod
    def _check_require(view: RuntimeView) -> bool:
        if is_js_function(view.get(REQUIRE_NAME)):
            return True

        # Webpack replaces push on its chunk array with webpackJsonpCallback
        for key in view.keys():
            if JSONP_SUBSTRING not in key and not key.startswith(CHUNK_PREFIX):
                continue
            value = view.get(key)
            if is_js_array(value) and PATCHED_PUSH_MARKER in getattr(value, "push_source", ""):
                return True
        return False

    @staticmethod
    def _check_module_table(view: RuntimeView) -> bool:
        modules = view.get(MODULES_NAME)
        return isinstance(modules, (dict, list, tuple)) or (
            modules is not None and hasattr(modules, "keys")
        )

    @staticmethod
    def _check_source_map(view: RuntimeView) -> bool:
        for script in view.scripts:
            src = script.src or ""
            if src and (src.endswith(".js.map") or "sourceMappingURL" in src):
                return True
            if script.is_inline and "sourceMappingURL" in (script.text or ""):
                return True
        return False

    # =========================================================================
    # INFERENCE
    # =========================================================================

    def detect_version(self, view: RuntimeView) -> WebpackVersion:
        """webpackChunk beats webpackJsonp beats __webpack_require__.v"""
        try:
            if self._check_chunk_array(view):
                return WebpackVersion.V5
            if self._check_jsonp(view):
                return WebpackVersion.V4

            require = view.get(REQUIRE_NAME)
            declared = getattr(require, "v", None) if is_js_function(require) else None
            if declared:
                return WebpackVersion.V5 if str(declared).startswith("5") else WebpackVersion.V4

            return WebpackVersion.UNKNOWN
        except Exception as e:
            self.fail("version probe failed", e)
            return WebpackVersion.UNSET

    def detect_build_mode(self, view: RuntimeView) -> BuildMode:
        """
        Explicit NODE_ENV first, then inline-script heuristics, then
        minified external script names. Falls back to UNKNOWN.
        """
        try:
            node_env = view.env.get("NODE_ENV") if view.env else None
            if node_env:
                return BuildMode.from_env(node_env)

            for script in view.inline_scripts:
                content = script.text or ""
                has_runtime = REQUIRE_NAME in content or JSONP_SUBSTRING in content
                if "development" in content and has_runtime:
                    return BuildMode.DEVELOPMENT
                if REQUIRE_NAME in content and "// " in content and len(content) > UNMINIFIED_MIN_LENGTH:
                    return BuildMode.DEVELOPMENT

            for script in view.external_scripts:
                src = script.src or ""
                if ".min.js" in src or ".prod.js" in src:
                    return BuildMode.PRODUCTION

            return BuildMode.UNKNOWN
        except Exception as e:
            self.fail("build mode probe failed", e)
            return BuildMode.UNKNOWN

    def get_runtime_handle(self, view: RuntimeView) -> Optional[RuntimeHandle]:
        """Borrow the chunk array, require function and module table"""
        try:
            handle = RuntimeHandle()

            for key in view.keys():
                if key.startswith(CHUNK_PREFIX) or JSONP_SUBSTRING in key:
                    value = view.get(key)
                    if is_js_array(value):
                        handle.chunk_array_name = key
                        handle.chunk_array = value
                        break

            require = view.get(REQUIRE_NAME)
            if is_js_function(require):
                handle.require_function = require
                if isinstance(require, RequireFunction):
                    if require.p:
                        handle.public_path = require.p
                    if require.m:
                        handle.modules = require.m

            modules = view.get(MODULES_NAME)
            if modules:
                handle.modules = modules

            return handle
        except Exception as e:
            self.fail("runtime handle capture failed", e)
            return None
