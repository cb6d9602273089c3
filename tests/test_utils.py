"""
Tests for the stateless helpers: pattern library, URL helpers and
large-text windows.
"""

import pytest

from chunkhound.utils import patterns
from chunkhound.utils.urls import (
    extract_chunk_id,
    is_chunk_file,
    is_js_file,
    is_same_origin,
    is_source_map_file,
    resolve_url,
    source_map_candidate,
)
from chunkhound.utils.windows import (
    iter_windows,
    needs_windowing,
    process_windows,
    recommended_window_size,
    run_windows,
    window_count,
)


# =============================================================================
# PATTERN LIBRARY
# =============================================================================

class TestSourceMapReference:
    def test_line_comment(self):
        code = "var a=1;\n//# sourceMappingURL=main.js.map"
        assert patterns.extract_source_map_url(code) == "main.js.map"

    def test_legacy_at_form(self):
        assert patterns.extract_source_map_url("//@ sourceMappingURL=old.map") == "old.map"

    def test_block_comment(self):
        assert patterns.extract_source_map_url("a();/*# sourceMappingURL=a.css.map */") == "a.css.map"

    def test_earliest_reference_wins(self):
        code = "/*# sourceMappingURL=first.map */\n//# sourceMappingURL=second.map"
        assert patterns.extract_source_map_url(code) == "first.map"

    def test_no_reference(self):
        assert patterns.extract_source_map_url("var a = 1;") is None
        assert patterns.extract_source_map_url("") is None


class TestRuntimeIdioms:
    def test_public_path_forms(self):
        assert patterns.extract_public_path('__webpack_require__.p = "/static/"') == "/static/"
        assert patterns.extract_public_path('n.p="https://cdn.example.com/"') == "https://cdn.example.com/"
        assert patterns.extract_public_path('__webpack_public_path__ = "/assets/"') == "/assets/"
        assert patterns.extract_public_path("var a = 1") is None

    def test_runtime_needs_two_indicators(self):
        assert patterns.is_webpack_runtime("__webpack_require__ installedChunks")
        assert not patterns.is_webpack_runtime("__webpack_require__ only")
        assert patterns.count_runtime_indicators("") == 0

    def test_async_loading_markers(self):
        assert patterns.has_async_loading("__webpack_require__.e(3)")
        assert patterns.has_async_loading("n.e=function(e){}")
        assert not patterns.has_async_loading("function main(){}")

    def test_module_factory_signatures(self):
        v4 = "(function(module, exports, __webpack_require__) {"
        v5 = "((__unused_webpack_module, __webpack_exports__, __webpack_require__) => {"
        ids = [s.id for s in patterns.CATALOGUE["module_factory"] if s.regex.search(v4 + v5)]
        assert ids == ["factory.v4_exports", "factory.v5_arrow"]

    def test_dynamic_imports_are_distinct(self):
        code = 'import("./a"); import("./a"); import("./b"); __webpack_require__.e(7)'
        assert patterns.extract_dynamic_imports(code) == ["./a", "./b", "7"]


class TestTemplates:
    @pytest.mark.parametrize("filename,template", [
        ("0.a1b2c3.js", "[id].[hash].js"),
        ("static/js/12.deadbeef.js", "[id].[hash].js"),
        ("chunk.3.abcdef.js", "chunk.[id].[hash].js"),
        ("main.abc123.chunk.js", "[name].[hash].chunk.js"),
        ("app.js", None),
        ("", None),
    ])
    def test_infer_template(self, filename, template):
        assert patterns.infer_template(filename) == template

    def test_normalise_collapses_hash_variants(self):
        assert patterns.normalise_template("static/js/[id].[chunkhash:8].js") == "[id].[hash].js"
        assert patterns.normalise_template("[name].[contenthash].chunk.js") == "[name].[hash].chunk.js"

    def test_normalise_rejects_unknown_shapes(self):
        assert patterns.normalise_template("[id].custom.js") is None
        assert patterns.normalise_template("") is None


class TestSensitiveHelpers:
    @pytest.mark.parametrize("value", ["your_api_key", "<API_KEY>", "{{key}}", "${SECRET}", "xxx-xxx", ""])
    def test_placeholders(self, value):
        assert patterns.is_placeholder(value)

    def test_real_value_is_not_placeholder(self):
        assert not patterns.is_placeholder("sk_live_9f8e7d6c5b4a")

    def test_context_window_is_clamped(self):
        text = "x" * 100
        assert len(patterns.context_window(text, 60, 50)) == 90
        assert len(patterns.context_window(text, 0, 10)) == 10

    def test_catalogue_is_read_only(self):
        with pytest.raises(TypeError):
            patterns.CATALOGUE["extra"] = ()
        with pytest.raises(TypeError):
            patterns.SENSITIVE_ASSIGNMENTS["api_key"] = ()


# =============================================================================
# URL HELPERS
# =============================================================================

class TestUrls:
    def test_resolve_relative(self):
        assert resolve_url("/static/0.js", "https://a.com/app/") == "https://a.com/static/0.js"
        assert resolve_url("0.js", "https://a.com/js/main.js") == "https://a.com/js/0.js"

    def test_resolve_protocol_relative_uses_base_scheme(self):
        assert resolve_url("//cdn.com/x.js", "http://a.com") == "http://cdn.com/x.js"

    def test_resolve_absolute_and_empty(self):
        assert resolve_url("https://x.com/a.js", "https://a.com") == "https://x.com/a.js"
        assert resolve_url("", "https://a.com") is None

    def test_file_kinds(self):
        assert is_js_file("https://a.com/main.js?v=1")
        assert is_js_file("/module.mjs")
        assert not is_js_file("style.css")
        assert is_source_map_file("a.js.map#x")
        assert not is_source_map_file("a.js")

    @pytest.mark.parametrize("url,expected", [
        ("/static/0.a1b2c3.js", True),
        ("chunk.4.abcdef.js", True),
        ("vendors~main.js", True),
        ("/js/3.bundle.js", True),
        ("vendor.abc.js", False),
        ("main.js", False),
        ("", False),
    ])
    def test_is_chunk_file(self, url, expected):
        assert is_chunk_file(url) is expected

    def test_extract_chunk_id(self):
        assert extract_chunk_id("/js/12.abc.js") == 12
        assert extract_chunk_id("vendors~main.js") == "vendors~main"
        assert extract_chunk_id("/x/_hidden.js") is None

    def test_source_map_candidate_strips_query(self):
        assert source_map_candidate("https://a.com/main.js?v=2") == "https://a.com/main.js.map"
        assert source_map_candidate("") is None

    def test_same_origin(self):
        assert is_same_origin("https://a.com/x", "https://a.com/y")
        assert not is_same_origin("https://a.com", "http://a.com")
        assert not is_same_origin("/relative", "https://a.com")


# =============================================================================
# WINDOWS
# =============================================================================

class TestWindows:
    def test_iter_windows_in_order(self):
        assert list(iter_windows("abcdefg", 3)) == [(0, "abc"), (3, "def"), (6, "g")]

    def test_iter_windows_rejects_bad_size(self):
        with pytest.raises(ValueError):
            list(iter_windows("abc", 0))

    def test_needs_windowing(self):
        assert needs_windowing("a" * 11, threshold=10)
        assert not needs_windowing("a" * 10, threshold=10)
        assert not needs_windowing("", threshold=0)

    def test_recommended_size(self):
        assert recommended_window_size("a" * 10) == 10
        assert recommended_window_size("a" * (600 * 1024)) == 200 * 1024

    def test_window_count(self):
        assert window_count("a" * 10, 3) == 4
        assert window_count("a" * 9, 3) == 3
        assert window_count("", 3) == 1
        with pytest.raises(ValueError):
            window_count("abc", 0)

    def test_run_windows_rejects_bad_size(self):
        with pytest.raises(ValueError):
            run_windows("abc", lambda window, index: [window], 0)

    def test_failed_window_is_skipped(self):
        def processor(window, index):
            if index == 1:
                raise RuntimeError("bad window")
            return [window]

        assert run_windows("aabbcc", processor, 2) == ["aa", "cc"]

    def test_empty_text_still_processed_once(self):
        assert run_windows("", lambda window, index: ["seen"]) == ["seen"]

    @pytest.mark.asyncio
    async def test_process_windows_awaits_coroutines(self):
        async def processor(window, index):
            return f"{index}:{window}"

        assert await process_windows("abcd", processor, 2) == ["0:ab", "1:cd"]
