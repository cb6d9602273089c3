"""
Tests for ChunkAnalyzer and ModuleAnalyzer.
"""

import pytest

from chunkhound.webpack.chunks import ChunkAnalyzer
from chunkhound.webpack.modules import ModuleAnalyzer, classify_api_url, score_config


@pytest.fixture
def chunks():
    return ChunkAnalyzer()


@pytest.fixture
def modules():
    return ModuleAnalyzer()


CONFIG_MODULE = 'module.exports={apiUrl:"https://api.example.com",apiKey:"k",token:"t"}'
UI_MODULE = "function render(){return 1}"


# =============================================================================
# CHUNK DISCOVERY
# =============================================================================

class TestChunkReferences:
    def test_html_script_and_preload(self, chunks):
        html = (
            '<script src="/static/js/0.a1b2c3.js"></script>'
            '<link rel="preload" href="/static/js/1.d4e5f6.js">'
            '<script src="/static/js/main.js"></script>'
        )
        refs = chunks.extract_chunk_references(html, "https://app.example.com/")
        assert [(r.url, r.load_type, r.origin) for r in refs] == [
            ("https://app.example.com/static/js/0.a1b2c3.js", "initial", "html"),
            ("https://app.example.com/static/js/1.d4e5f6.js", "preload", "html"),
        ]
        assert refs[0].chunk_id == "0"
        assert refs[0].template == "[id].[hash].js"

    def test_js_string_literals(self, chunks):
        refs = chunks.extract_chunk_references('var u="/js/3.abcdef12.js";', "https://a.com/")
        assert len(refs) == 1
        assert refs[0].url == "https://a.com/js/3.abcdef12.js"
        assert refs[0].origin == "js"
        assert refs[0].load_type == "async"
        assert refs[0].chunk_id == "3"

    def test_runtime_hash_map_with_default_template(self, chunks):
        code = '__webpack_require__.e(1); var h={0:"abc123",1:"def456"}'
        refs = chunks.extract_chunk_references(code, "https://a.com/js/app.js")
        assert [r.url for r in refs] == ["https://a.com/js/0.abc123.js", "https://a.com/js/1.def456.js"]
        assert all(r.origin == "runtime" for r in refs)
        assert [r.chunk_id for r in refs] == ["0", "1"]

    def test_runtime_hash_map_with_literal_template(self):
        analyzer = ChunkAnalyzer(public_path="/")
        code = (
            '__webpack_require__.e(0);var h={0:"abc123"};'
            'var o={chunkFilename:"js/[id].[contenthash:8].chunk.js"}'
        )
        refs = analyzer.extract_chunk_references(code, "https://a.com/app.js")
        assert analyzer.templates == ["js/[id].[contenthash:8].chunk.js"]
        assert [r.url for r in refs] == ["https://a.com/js/0.abc123.chunk.js"]

    def test_template_comes_from_the_code_being_analysed(self, chunks):
        chunks.extract_chunk_references(
            '__webpack_require__.e(0);var h={0:"aaaa"};var o={chunkFilename:"js/[id].[chunkhash].js"}',
            "https://a.com/app.js",
        )
        refs = chunks.extract_chunk_references('__webpack_require__.e(2);var h={2:"bbbb"}', "https://b.com/app.js")
        assert [r.url for r in refs] == ["https://b.com/2.bbbb.js"]

    def test_public_path_prefix(self):
        analyzer = ChunkAnalyzer(public_path="/assets/")
        refs = analyzer.extract_chunk_references('__webpack_require__.e(0);x={0:"abc123"}', "https://a.com/app.js")
        assert refs[0].url == "https://a.com/assets/0.abc123.js"
        assert refs[0].original_path == "0.abc123.js"

    def test_hash_map_ignored_without_runtime(self, chunks):
        assert chunks.extract_chunk_references('var h={0:"abc123"}', "https://a.com/") == []

    def test_references_accumulate_until_cleared(self, chunks):
        chunks.extract_chunk_references('"/js/1.abc.js"', "https://a.com/")
        chunks.extract_chunk_references('"/js/2.def.js"', "https://a.com/")
        chunks.extract_chunk_references('"/js/1.abc.js"', "https://a.com/")
        assert chunks.get_all_chunk_urls() == ["https://a.com/js/1.abc.js", "https://a.com/js/2.def.js"]
        assert len(chunks.get_all_chunk_references()) == 2

        chunks.clear()
        assert chunks.get_all_chunk_urls() == []
        assert chunks.templates == []

    def test_empty_code(self, chunks):
        assert chunks.extract_chunk_references("", "https://a.com/") == []


class TestEnumeration:
    def test_hash_free_template(self):
        analyzer = ChunkAnalyzer(base_url="https://a.com/static/")
        assert analyzer.enumerate_chunks("[id].js", 0, 3) == [
            "https://a.com/static/0.js",
            "https://a.com/static/1.js",
            "https://a.com/static/2.js",
        ]

    def test_hashed_template_yields_nothing(self, chunks):
        assert chunks.enumerate_chunks("[id].[hash].js") == []
        assert chunks.enumerate_chunks("[id].[chunkhash:8].js") == []

    def test_enumeration_is_capped(self):
        analyzer = ChunkAnalyzer(max_enumeration=3)
        assert len(analyzer.enumerate_chunks("chunk-[id].js", 0, 50)) == 3

    def test_setters(self, chunks):
        chunks.set_base_url("https://a.com/")
        chunks.set_public_path("/cdn/")
        assert chunks.enumerate_chunks("[name].js", 5, 6) == ["https://a.com/cdn/5.js"]
        chunks.set_public_path(None)
        assert chunks.public_path == ""


# =============================================================================
# MODULE INTELLIGENCE
# =============================================================================

class TestDependencies:
    def test_require_and_require_n(self, modules):
        deps = modules.analyze_dependencies(
            "__webpack_require__(1); __webpack_require__.n(2); __webpack_require__(1)", "main"
        )
        assert [(d.id, d.kind) for d in deps] == [("1", "require"), ("2", "require_n")]

    def test_empty_module(self, modules):
        assert modules.analyze_dependencies("", 7) == []

    def test_dependency_graph_marks_config_modules(self, modules):
        modules.identify_config_modules({"cfg": CONFIG_MODULE, "ui": UI_MODULE})
        modules.analyze_dependencies("__webpack_require__('cfg')", "ui")
        modules.analyze_dependencies("", "cfg")

        graph = modules.build_dependency_graph()
        assert {"id": "cfg", "is_config": True} in graph.nodes
        assert {"id": "ui", "is_config": False} in graph.nodes
        assert graph.edges == [{"from": "ui", "to": "cfg", "type": "require"}]


class TestConfigModules:
    def test_score_config(self):
        score, matched = score_config(CONFIG_MODULE)
        assert score == 10
        assert len(matched) == 3
        assert score_config(UI_MODULE) == (0, [])

    def test_ranking(self, modules):
        ranked = modules.identify_config_modules({
            "ui": UI_MODULE,
            "settings": "var settings = {env: 1}",
            "cfg": CONFIG_MODULE,
        })
        assert [(c.id, c.priority) for c in ranked] == [("cfg", "high"), ("settings", "low")]
        assert ranked[0].score == 10
        assert ranked[1].score == 4

    def test_list_of_dicts(self, modules):
        ranked = modules.identify_config_modules([
            {"id": 3, "code": "password secret token"},
            {"id": 4, "code": ""},
        ])
        assert [c.id for c in ranked] == ["3"]
        assert ranked[0].priority == "medium"


class TestDefineConstants:
    def test_process_env_and_define_identifiers(self, modules):
        code = 'if (process.env.NODE_ENV) {}; var d = {"process.env.API_URL": "https://x.io"}'
        constants = {c.name: c for c in modules.extract_define_constants(code)}
        assert constants["process.env.API_URL"].value == "https://x.io"
        assert constants["process.env.NODE_ENV"].value is None
        assert constants["NODE_ENV"].kind == "define"
        assert constants["API_URL"].kind == "define"
        assert len(constants) == 4

    def test_empty(self, modules):
        assert modules.extract_define_constants("") == []


class TestApiConfigs:
    def test_assignments_and_endpoints(self, modules):
        code = (
            'axios.defaults.baseURL = "https://api.example.com";'
            'fetch("https://x.io/data");'
            'const r = "/api/users"; const v = "/v2/items";'
        )
        configs = {c.url: c for c in modules.extract_api_configs(code)}
        assert configs["https://api.example.com"].origin == "assignment"
        assert configs["https://api.example.com"].url_kind == "absolute"
        assert configs["https://x.io/data"].url_kind == "absolute"
        assert configs["/api/users"].url_kind == "endpoint"
        assert configs["/v2/items"].origin == "string"

    @pytest.mark.parametrize("url,kind", [
        ("https://a.com", "absolute"),
        ("//cdn.a.com", "protocol-relative"),
        ("/api", "root-relative"),
        ("api/v1", "relative"),
        ("", "unknown"),
    ])
    def test_classify_api_url(self, url, kind):
        assert classify_api_url(url) == kind

    def test_clear(self, modules):
        modules.extract_api_configs('apiUrl: "/api/x"')
        modules.clear()
        assert modules.api_configs == []
        assert modules.dependencies == {}
