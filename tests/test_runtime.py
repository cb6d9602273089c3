"""
Tests for RuntimeAnalyzer and the runtime view it reads from.
"""

import pytest

from chunkhound.core.types import ModuleKind
from chunkhound.webpack.detector import WebpackDetector
from chunkhound.webpack.runtime import (
    RuntimeAnalyzer,
    count_config_keywords,
    count_exports,
    extract_dependencies,
)
from chunkhound.webpack.view import JsArray, JsFunction, RequireFunction, RuntimeView


@pytest.fixture
def analyzer():
    return RuntimeAnalyzer()


@pytest.fixture
def jsonp_view():
    """Webpack 4 page with three modules behind __webpack_require__.m"""
    require = RequireFunction(
        p="/static/",
        m=[
            JsFunction('function(e,t,__webpack_require__){var c={apiUrl:"https://api.example.com",token:"abc"}}'),
            JsFunction('function(e,t,__webpack_require__){var a=__webpack_require__(0);__webpack_require__("./src/x.js")}'),
            JsFunction("function(e,t){e.exports=function(){}}"),
        ],
    )
    return RuntimeView({"webpackJsonp": JsArray([]), "__webpack_require__": require})


class Unserialisable:
    """A host function whose source cannot be read"""

    def __call__(self):
        return None

    def __str__(self):
        raise RuntimeError("source unavailable")


# =============================================================================
# HELPERS
# =============================================================================

class TestHelpers:
    def test_dependencies_are_deduplicated_in_order(self):
        body = 'function(e,t,__webpack_require__){__webpack_require__(12);__webpack_require__("./src/x.js");__webpack_require__(12)}'
        assert extract_dependencies(body) == ["12", "./src/x.js"]

    def test_keyword_count_is_case_sensitive(self):
        assert count_config_keywords("apiUrl token") == 2
        assert count_config_keywords("APIURL") == 0
        assert count_config_keywords("") == 0

    def test_export_sites(self):
        body = '__webpack_require__.d(__webpack_exports__, "foo", function(){}); exports.bar = 1; exports.bar = 2;'
        assert count_exports(body) == 2


# =============================================================================
# MODULE MAP
# =============================================================================

class TestModuleMap:
    def test_jsonp_require_m_yields_index_keys(self, analyzer, jsonp_view):
        modules = analyzer.extract_module_map(jsonp_view)
        assert list(modules) == ["0", "1", "2"]
        assert all(m.kind == ModuleKind.FUNCTION for m in modules.values())

    def test_module_details(self, analyzer, jsonp_view):
        modules = analyzer.extract_module_map(jsonp_view)
        assert modules["0"].is_config_like
        assert modules["1"].dependencies == ["0", "./src/x.js"]
        assert not modules["2"].is_config_like
        assert modules["2"].size_bytes == len("function(e,t){e.exports=function(){}}")

    def test_same_map_from_runtime_handle(self, analyzer, jsonp_view):
        handle = WebpackDetector().detect(jsonp_view).runtime_handle
        assert list(analyzer.extract_module_map(handle)) == ["0", "1", "2"]

    def test_mapping_table_and_skipped_entries(self, analyzer):
        view = RuntimeView({"__webpack_modules__": {
            "./src/index.js": JsFunction("function(){}"),
            "./src/data.json": {"name": "app"},
            "./src/empty.js": None,
        }})
        modules = analyzer.extract_module_map(view)
        assert list(modules) == ["./src/index.js", "./src/data.json"]
        assert modules["./src/data.json"].kind == ModuleKind.OBJECT

    def test_module_table_global_beats_require_m(self, analyzer):
        view = RuntimeView({
            "__webpack_modules__": {"a": JsFunction("x")},
            "__webpack_require__": RequireFunction(m={"b": JsFunction("y")}),
        })
        assert list(analyzer.extract_module_map(view)) == ["a"]

    def test_unreadable_module_does_not_abort(self, analyzer):
        view = RuntimeView({"__webpack_modules__": {
            "ok": JsFunction("function(){}"),
            "bad": Unserialisable(),
        }})
        modules = analyzer.extract_module_map(view)
        assert modules["bad"].kind == ModuleKind.UNKNOWN
        assert modules["ok"].kind == ModuleKind.FUNCTION
        assert analyzer.last_diagnostic.context["module_id"] == "bad"

    def test_map_is_rebuilt_each_call(self, analyzer, jsonp_view):
        analyzer.extract_module_map(jsonp_view)
        analyzer.extract_module_map(RuntimeView({}))
        assert analyzer.get_all_modules() == []

    def test_config_modules_and_clear(self, analyzer, jsonp_view):
        analyzer.extract_module_map(jsonp_view)
        assert [m.id for m in analyzer.get_config_modules()] == ["0"]
        analyzer.clear()
        assert analyzer.modules == {}

    def test_config_likelihood_is_monotonic(self, analyzer):
        two = "apiUrl token"
        assert analyzer.is_config_like(two)
        assert analyzer.is_config_like(two + " settings endpoint")
        assert not analyzer.is_config_like("config")

    def test_threshold_is_configurable(self):
        strict = RuntimeAnalyzer({"config_keyword_threshold": 3})
        assert not strict.is_config_like("apiUrl token")
        assert strict.is_config_like("apiUrl token settings")


# =============================================================================
# CHUNK LOADING & PUBLIC PATH
# =============================================================================

class TestChunkLoading:
    def test_from_runtime_view(self, analyzer):
        require = RequireFunction(
            e=JsFunction("function(chunkId){}"),
            u=JsFunction(impl=lambda chunk_id: f"{chunk_id}.a1b2c3.js"),
        )
        info = analyzer.analyze_chunk_loading(RuntimeView({"__webpack_require__": require}))
        assert info.has_async_loading
        assert info.naming_template == "[id].[hash].js"

    def test_from_snapshot_filename_table(self, analyzer):
        view = RuntimeView.from_snapshot({"globals": {"__webpack_require__": {
            "type": "require",
            "p": "/static/",
            "e": "function(){}",
            "u": {"0": "chunk.0.abcdef.js"},
        }}})
        info = analyzer.analyze_chunk_loading(view)
        assert info.naming_template == "chunk.[id].[hash].js"
        assert analyzer.extract_public_path(view) == "/static/"

    def test_uncallable_filename_function(self, analyzer):
        require = RequireFunction(u=JsFunction("function(e){return e+'.js'}"))
        info = analyzer.analyze_chunk_loading(RuntimeView({"__webpack_require__": require}))
        assert info.naming_template is None
        assert not info.has_async_loading
        assert analyzer.diagnostics

    def test_without_require(self, analyzer):
        info = analyzer.analyze_chunk_loading(RuntimeView({}))
        assert not info.has_async_loading
        assert info.chunk_ids == []

    def test_from_text(self, analyzer):
        code = (
            'var installedChunks={};__webpack_require__.e=function(){};'
            'var h={0:"a1b2c3",1:"d4e5f6"};var o={chunkFilename:"[id].[chunkhash].js"}'
        )
        info = analyzer.analyze_chunk_loading(code)
        assert info.has_async_loading
        assert info.chunk_ids == ["0", "1"]
        assert info.chunk_hash_map == {"0": "a1b2c3", "1": "d4e5f6"}
        assert info.naming_template == "[id].[hash].js"

    def test_unknown_template_from_text(self, analyzer):
        info = analyzer.analyze_chunk_loading('chunkFilename:"js/[name]-[id].bundle.js"')
        assert info.naming_template is None


class TestPublicPath:
    def test_from_text(self, analyzer):
        assert analyzer.extract_public_path('__webpack_require__.p="/static/"') == "/static/"

    def test_missing(self, analyzer):
        assert analyzer.extract_public_path("var a") == ""
        assert analyzer.extract_public_path(RuntimeView({})) == ""

    def test_from_handle(self, analyzer):
        view = RuntimeView({"webpackChunkapp": [], "__webpack_require__": RequireFunction(p="/cdn/")})
        handle = WebpackDetector().detect(view).runtime_handle
        assert analyzer.extract_public_path(handle) == "/cdn/"


# =============================================================================
# SNAPSHOTS
# =============================================================================

class TestSnapshot:
    def test_tagged_values_are_thawed(self):
        view = RuntimeView.from_snapshot({
            "location": "https://app.example.com/",
            "globals": {
                "webpackChunkapp": {"type": "array", "items": [1], "push": "webpackJsonpCallback"},
                "helper": {"type": "function", "source": "function(){}"},
            },
            "scripts": [{"src": "/main.js"}, {"text": "inline()"}],
            "env": {"NODE_ENV": "production"},
        })
        chunks = view.get("webpackChunkapp")
        assert isinstance(chunks, JsArray)
        assert chunks.push_source == "webpackJsonpCallback"
        assert view.get("helper").source == "function(){}"
        assert [s.src for s in view.external_scripts] == ["/main.js"]
        assert [s.text for s in view.inline_scripts] == ["inline()"]
        assert view.env["NODE_ENV"] == "production"
        assert view.location == "https://app.example.com/"

    def test_empty_snapshot(self):
        view = RuntimeView.from_snapshot({})
        assert view.keys() == []
        assert view.require is None
