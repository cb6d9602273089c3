"""
CHUNKHOUND Module Analyzer

Per-module intelligence on top of the raw module table: dependency edges,
weighted config-module ranking, DefinePlugin / process.env constants and
API URL definitions.
"""

import re
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from chunkhound.core.types import (
    ApiConfig,
    ConfigModule,
    DefineConstant,
    Dependency,
    DependencyGraph,
)
from chunkhound.utils import patterns
from chunkhound.webpack.base import Component
from chunkhound.webpack.view import function_source

# (pattern, weight); a module scoring CONFIG_SCORE_THRESHOLD or more is kept
CONFIG_INDICATORS: Tuple[Tuple[re.Pattern, int], ...] = (
    (re.compile(r'apiUrl|API_URL|baseUrl|BASE_URL', re.IGNORECASE), 3),
    (re.compile(r'endpoint', re.IGNORECASE), 2),
    (re.compile(r'apiKey|API_KEY|secretKey|SECRET_KEY', re.IGNORECASE), 4),
    (re.compile(r'token|accessToken|ACCESS_TOKEN', re.IGNORECASE), 3),
    (re.compile(r'config|settings', re.IGNORECASE), 2),
    (re.compile(r'env|environment', re.IGNORECASE), 2),
    (re.compile(r'auth|credential', re.IGNORECASE), 3),
    (re.compile(r'password|secret', re.IGNORECASE), 4),
)

CONFIG_SCORE_THRESHOLD = 4
HIGH_PRIORITY_SCORE = 8
MEDIUM_PRIORITY_SCORE = 6

API_URL_PATTERNS = (
    re.compile(r'(?:apiUrl|API_URL|baseUrl|BASE_URL|endpoint|ENDPOINT)\s*[:=]\s*["\']([^"\']+)["\']', re.IGNORECASE),
    re.compile(r'axios\.defaults\.baseURL\s*=\s*["\']([^"\']+)["\']', re.IGNORECASE),
    re.compile(r'baseURL\s*:\s*["\']([^"\']+)["\']', re.IGNORECASE),
    re.compile(r'fetch\s*\(\s*["\'](https?://[^"\']+)["\']', re.IGNORECASE),
)

ENDPOINT_PATTERNS = (
    re.compile(r'["\'](/api/[^"\']+)["\']'),
    re.compile(r'["\'](/v\d+/[^"\']+)["\']'),
)

ModuleSource = Union[Mapping, Iterable]


def classify_api_url(url: str) -> str:
    if not url:
        return "unknown"
    if url.startswith(("http://", "https://")):
        return "absolute"
    if url.startswith("//"):
        return "protocol-relative"
    if url.startswith("/"):
        return "root-relative"
    return "relative"


def score_config(code: str) -> Tuple[int, List[str]]:
    score = 0
    matched = []
    for pattern, weight in CONFIG_INDICATORS:
        if pattern.search(code):
            score += weight
            matched.append(pattern.pattern)
    return score, matched


def _priority(score: int) -> str:
    if score >= HIGH_PRIORITY_SCORE:
        return "high"
    if score >= MEDIUM_PRIORITY_SCORE:
        return "medium"
    return "low"


class ModuleAnalyzer(Component):
    """Dependency graph and configuration intelligence across modules"""

    name = "modules"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.dependencies: Dict[str, List[Dependency]] = {}
        self.config_modules: List[ConfigModule] = []
        self.define_constants: List[DefineConstant] = []
        self.api_configs: List[ApiConfig] = []

    # =========================================================================
    # DEPENDENCIES
    # =========================================================================

    def analyze_dependencies(self, code: str, module_id: Union[str, int]) -> List[Dependency]:
        deps: List[Dependency] = []
        if not code:
            return deps

        seen = set()
        for pattern, kind in ((patterns.REQUIRE_CALL, "require"), (patterns.REQUIRE_N_CALL, "require_n")):
            for match in pattern.finditer(code):
                dep_id = match.group(1)
                if dep_id in seen:
                    continue
                seen.add(dep_id)
                deps.append(Dependency(id=dep_id, kind=kind, offset=match.start()))

        self.dependencies[str(module_id)] = deps
        if self.debug:
            self.log(f"module {module_id} has {len(deps)} dependencies", "debug")
        return deps

    def build_dependency_graph(self) -> DependencyGraph:
        config_ids = {c.id for c in self.config_modules}
        graph = DependencyGraph()
        for module_id, deps in self.dependencies.items():
            graph.nodes.append({"id": module_id, "is_config": module_id in config_ids})
            for dep in deps:
                graph.edges.append({"from": module_id, "to": dep.id, "type": dep.kind})
        return graph

    # =========================================================================
    # CONFIG MODULES
    # =========================================================================

    def identify_config_modules(self, modules: ModuleSource) -> List[ConfigModule]:
        """
        Rank modules by weighted configuration indicators.

        ``modules`` is either a mapping of module id to module value
        (function source or ``JsFunction``), an array table of module
        values indexed by id, or an iterable of ``{"id": ..., "code": ...}``
        dicts.
        """
        self.config_modules = []
        try:
            for module_id, code in self._iter_sources(modules):
                score, matched = score_config(code)
                if score >= CONFIG_SCORE_THRESHOLD:
                    self.config_modules.append(ConfigModule(
                        id=module_id,
                        score=score,
                        indicators=matched,
                        priority=_priority(score),
                    ))
        except Exception as e:
            self.fail("config module ranking failed", e)

        self.config_modules.sort(key=lambda c: c.score, reverse=True)
        return self.config_modules

    @staticmethod
    def _iter_sources(modules: ModuleSource):
        if isinstance(modules, Mapping):
            for module_id, value in modules.items():
                if value and not isinstance(value, Mapping):
                    yield str(module_id), function_source(value)
            return
        for index, item in enumerate(modules or []):
            if isinstance(item, Mapping):
                if item.get("code"):
                    yield str(item.get("id")), function_source(item["code"])
            elif item:
                # Webpack 4 array table: the position is the module id
                yield str(index), function_source(item)

    # =========================================================================
    # CONSTANTS & API CONFIG
    # =========================================================================

    def extract_define_constants(self, code: str) -> List[DefineConstant]:
        constants: Dict[str, DefineConstant] = {}
        if not code:
            return []

        try:
            for match in patterns.PROCESS_ENV_LITERAL.finditer(code):
                name = f"process.env.{match.group(1)}"
                constants.setdefault(name, DefineConstant(name=name, value=match.group(2), kind="env"))

            for match in patterns.PROCESS_ENV.finditer(code):
                name = f"process.env.{match.group(1)}"
                constants.setdefault(name, DefineConstant(name=name, kind="env"))

            for identifier in patterns.DEFINE_IDENTIFIERS:
                if re.search(r'\b%s\b' % identifier, code):
                    constants.setdefault(identifier, DefineConstant(name=identifier, kind="define"))
        except Exception as e:
            self.fail("define constant extraction failed", e)

        self.define_constants = list(constants.values())
        return self.define_constants

    def extract_api_configs(self, code: str) -> List[ApiConfig]:
        configs: Dict[str, ApiConfig] = {}
        if not code:
            return []

        try:
            for pattern in API_URL_PATTERNS:
                for match in pattern.finditer(code):
                    url = match.group(1)
                    if url:
                        configs.setdefault(url, ApiConfig(
                            url=url, url_kind=classify_api_url(url), origin="assignment"
                        ))

            for pattern in ENDPOINT_PATTERNS:
                for match in pattern.finditer(code):
                    configs.setdefault(match.group(1), ApiConfig(
                        url=match.group(1), url_kind="endpoint", origin="string"
                    ))
        except Exception as e:
            self.fail("api config extraction failed", e)

        self.api_configs = list(configs.values())
        if self.debug:
            self.log(f"found {len(self.api_configs)} api configs", "debug")
        return self.api_configs

    def clear(self) -> None:
        self.dependencies.clear()
        self.config_modules = []
        self.define_constants = []
        self.api_configs = []
