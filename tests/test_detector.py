"""
Tests for WebpackDetector: runtime-view probes, version and build-mode
inference, and offline detection over bundle text.
"""

import pytest

from chunkhound.core.types import BuildMode, WebpackVersion
from chunkhound.webpack.detector import WebpackDetector
from chunkhound.webpack.view import JsArray, JsFunction, RequireFunction, RuntimeView, ScriptTag


@pytest.fixture
def detector():
    return WebpackDetector()


class HostileView(RuntimeView):
    """A host whose global enumeration blows up mid-analysis"""

    def keys(self):
        raise RuntimeError("host went away")


# =============================================================================
# PRESENCE & VERSION
# =============================================================================

class TestPresence:
    def test_webpack5_chunk_array(self, detector):
        view = RuntimeView({"webpackChunk_custom_app": JsArray([])})
        result = detector.detect(view)
        assert result.detected
        assert result.version == WebpackVersion.V5
        assert result.features.has_chunk_array
        assert result.runtime_handle.chunk_array_name == "webpackChunk_custom_app"

    def test_webpack4_jsonp_array(self, detector):
        result = detector.detect(RuntimeView({"webpackJsonp": JsArray([[0], {}])}))
        assert result.detected
        assert result.version == WebpackVersion.V4
        assert result.features.has_jsonp_array

    def test_custom_jsonp_name(self, detector):
        result = detector.detect(RuntimeView({"webpackJsonpmy_app": []}))
        assert result.features.has_jsonp_array
        assert result.version == WebpackVersion.V4

    def test_chunk_prefix_needs_an_array(self, detector):
        result = detector.detect(RuntimeView({"webpackChunkapp": "not an array"}))
        assert not result.detected

    def test_nothing_found(self, detector):
        result = detector.detect(RuntimeView({"jQuery": JsFunction("function(){}")}))
        assert not result.detected
        assert result.version == WebpackVersion.UNSET
        assert result.runtime_handle is None

    @pytest.mark.parametrize("declared,version", [
        ("5.88.0", WebpackVersion.V5),
        ("4.46.0", WebpackVersion.V4),
        (None, WebpackVersion.UNKNOWN),
    ])
    def test_require_only_uses_declared_version(self, detector, declared, version):
        view = RuntimeView({"__webpack_require__": RequireFunction(v=declared)})
        result = detector.detect(view)
        assert result.detected
        assert result.features.has_require
        assert result.version == version

    def test_patched_push_counts_as_require(self, detector):
        chunks = JsArray([], push_source="function webpackJsonpCallback(data){...}")
        result = detector.detect(RuntimeView({"webpackChunkshop": chunks}))
        assert result.features.has_require

    def test_module_table_alone(self, detector):
        view = RuntimeView({"__webpack_modules__": {"12": JsFunction("function(){}")}})
        result = detector.detect(view)
        assert result.detected
        assert result.features.has_module_table
        assert result.version == WebpackVersion.UNKNOWN
        assert "12" in result.runtime_handle.modules

    def test_source_map_is_informational(self, detector):
        view = RuntimeView(scripts=[ScriptTag(text="//# sourceMappingURL=app.js.map")])
        result = detector.detect(view)
        assert result.features.has_source_map
        assert not result.detected


# =============================================================================
# BUILD MODE
# =============================================================================

class TestBuildMode:
    def test_explicit_node_env(self, detector):
        view = RuntimeView({"webpackChunkapp": []}, env={"NODE_ENV": "production"})
        assert detector.detect(view).build_mode == BuildMode.PRODUCTION

    def test_node_env_from_process_global(self, detector):
        view = RuntimeView({"webpackChunkapp": [], "process": {"env": {"NODE_ENV": "development"}}})
        assert detector.detect_build_mode(view) == BuildMode.DEVELOPMENT

    def test_inline_development_runtime(self, detector):
        script = ScriptTag(text='var __webpack_require__ = {}; var mode = "development";')
        view = RuntimeView({"webpackChunkapp": []}, scripts=[script])
        assert detector.detect(view).build_mode == BuildMode.DEVELOPMENT

    def test_minified_external_script(self, detector):
        view = RuntimeView({"webpackChunkapp": []}, scripts=[ScriptTag(src="https://a.com/app.min.js")])
        assert detector.detect(view).build_mode == BuildMode.PRODUCTION

    def test_unknown_without_signals(self, detector):
        view = RuntimeView({"webpackChunkapp": []}, scripts=[ScriptTag(src="/app.js")])
        assert detector.detect(view).build_mode == BuildMode.UNKNOWN

    @pytest.mark.parametrize("value,mode", [
        ("production", BuildMode.PRODUCTION),
        ("PROD", BuildMode.PRODUCTION),
        ("dev", BuildMode.DEVELOPMENT),
        ("staging", BuildMode.UNKNOWN),
        (None, BuildMode.UNKNOWN),
    ])
    def test_from_env(self, value, mode):
        assert BuildMode.from_env(value) == mode


# =============================================================================
# RUNTIME HANDLE
# =============================================================================

class TestRuntimeHandle:
    def test_handle_borrows_require_attachments(self, detector):
        modules = [JsFunction("function(){}")]
        require = RequireFunction(p="/static/", m=modules)
        result = detector.detect(RuntimeView({"webpackJsonp": [], "__webpack_require__": require}))
        handle = result.runtime_handle
        assert handle.require_function is require
        assert handle.modules is modules
        assert handle.public_path == "/static/"
        assert handle.to_dict()["module_count"] == 1

    def test_module_global_overrides_require_m(self, detector):
        table = {"a": JsFunction("x")}
        view = RuntimeView({
            "__webpack_require__": RequireFunction(m=[JsFunction("y")]),
            "__webpack_modules__": table,
        })
        assert detector.get_runtime_handle(view).modules is table


# =============================================================================
# FAILURE HANDLING
# =============================================================================

class TestFailures:
    def test_disabled_detector(self):
        detector = WebpackDetector({"enabled": False})
        result = detector.detect(RuntimeView({"webpackChunkapp": []}))
        assert not result.detected
        assert result.version == WebpackVersion.UNSET

    def test_unreadable_globals_are_absent(self, detector):
        class Exploding(dict):
            def get(self, key, default=None):
                raise RuntimeError("getter threw")

        result = detector.detect(RuntimeView(Exploding(webpackChunkapp=[])))
        assert not result.detected

    def test_failed_probe_is_negative_and_recorded(self, detector):
        view = HostileView({"__webpack_require__": RequireFunction(v="5.0.0")})
        result = detector.detect(view)

        assert result.detected
        assert result.features.has_require
        assert not result.features.has_chunk_array
        assert result.version == WebpackVersion.UNSET
        assert result.runtime_handle is None
        assert detector.diagnostics
        assert all(d.component == "detector" for d in detector.diagnostics)


# =============================================================================
# OFFLINE DETECTION
# =============================================================================

class TestDetectFromCode:
    def test_webpack5_runtime_text(self, detector):
        code = '(self.webpackChunkapp=self.webpackChunkapp||[]).push([[1],{}]);var __webpack_modules__={};__webpack_require__.p="/s/"'
        result = detector.detect_from_code(code)
        assert result.detected
        assert result.version == WebpackVersion.V5
        assert result.runtime_handle.public_path == "/s/"

    def test_webpack4_runtime_text(self, detector):
        code = "window.webpackJsonp=[];function __webpack_require__(){};var installedChunks={}"
        assert detector.detect_from_code(code).version == WebpackVersion.V4

    def test_build_mode_from_literal(self, detector):
        code = '__webpack_require__; installedChunks; var e={NODE_ENV:"production"}'
        assert detector.detect_from_code(code).build_mode == BuildMode.PRODUCTION

    def test_single_indicator_is_not_enough(self, detector):
        result = detector.detect_from_code("function __webpack_require__(){}")
        assert not result.detected
        assert result.features.has_require

    def test_empty_text(self, detector):
        assert not detector.detect_from_code("").detected
