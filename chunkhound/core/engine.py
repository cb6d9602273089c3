"""
CHUNKHOUND Core Engine

Orchestrates the Webpack components over one runtime view or one JS asset:
- Bundle detection
- Module map and chunk-loading extraction
- Source map decoding and source-file triage
- Sensitive-string reconstruction and classification

Every component fails soft, so a report is always produced; problems show
up as component diagnostics and, for whole-asset failures, in ``error``.
"""

import asyncio
import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import yaml

from chunkhound.core.types import (
    ApiConfig,
    ChunkLoadingInfo,
    ChunkReference,
    ConfigModule,
    DefineConstant,
    DependencyGraph,
    DetectionResult,
    ModuleInfo,
    SensitiveReport,
    SourceFileRecord,
    SourceMapDocument,
)
from chunkhound.utils import windows
from chunkhound.webpack.base import Component
from chunkhound.webpack.chunks import ChunkAnalyzer
from chunkhound.webpack.detector import WebpackDetector
from chunkhound.webpack.modules import ModuleAnalyzer
from chunkhound.webpack.runtime import RuntimeAnalyzer
from chunkhound.webpack.sensitive import SensitiveExtractor
from chunkhound.webpack.sourcemap import SourceMapDecoder
from chunkhound.webpack.view import RuntimeView, function_source


@dataclass
class EngineConfig:
    """Engine configuration"""
    # Analysis heuristics
    config_keyword_threshold: int = 2
    opaque_token_min_length: int = 20
    context_width: int = 50

    # Source maps
    cache_capacity: int = 50

    # Large-text windows
    window_threshold: int = 500 * 1024
    window_size: int = 100 * 1024
    window_delay: float = 0.0

    # Scanning
    timeout: int = 10
    rate_limit: int = 10  # requests per second
    probe_map_fallback: bool = True

    # Output
    verbose: bool = False

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "EngineConfig":
        """Load config from YAML file"""
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        defaults = cls()
        return cls(
            config_keyword_threshold=data.get("analysis", {}).get(
                "config_keyword_threshold", defaults.config_keyword_threshold),
            opaque_token_min_length=data.get("analysis", {}).get(
                "opaque_token_min_length", defaults.opaque_token_min_length),
            context_width=data.get("analysis", {}).get("context_width", defaults.context_width),
            cache_capacity=data.get("sourcemaps", {}).get("cache_capacity", defaults.cache_capacity),
            window_threshold=data.get("windows", {}).get("threshold", defaults.window_threshold),
            window_size=data.get("windows", {}).get("size", defaults.window_size),
            window_delay=data.get("windows", {}).get("delay", defaults.window_delay),
            timeout=data.get("scanning", {}).get("timeout", defaults.timeout),
            rate_limit=data.get("scanning", {}).get("rate_limit", defaults.rate_limit),
            probe_map_fallback=data.get("scanning", {}).get(
                "probe_map_fallback", defaults.probe_map_fallback),
            verbose=data.get("output", {}).get("verbose", defaults.verbose),
        )

    def component_config(self) -> Dict[str, Any]:
        return {
            "config_keyword_threshold": self.config_keyword_threshold,
            "opaque_token_min_length": self.opaque_token_min_length,
            "context_width": self.context_width,
            "cache_capacity": self.cache_capacity,
            "debug": self.verbose,
        }


# =============================================================================
# REPORTS
# =============================================================================

@dataclass
class BundleReport:
    """Everything recovered from one live runtime view"""
    detection: DetectionResult
    modules: List[ModuleInfo] = field(default_factory=list)
    config_modules: List[ConfigModule] = field(default_factory=list)
    dependency_graph: DependencyGraph = field(default_factory=DependencyGraph)
    chunk_loading: ChunkLoadingInfo = field(default_factory=ChunkLoadingInfo)
    public_path: str = ""
    chunk_references: List[ChunkReference] = field(default_factory=list)
    sensitive: SensitiveReport = field(default_factory=SensitiveReport)
    location: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "location": self.location,
            "detection": self.detection.to_dict(),
            "modules": [m.to_dict() for m in self.modules],
            "config_modules": [c.to_dict() for c in self.config_modules],
            "dependency_graph": self.dependency_graph.to_dict(),
            "chunk_loading": self.chunk_loading.to_dict(),
            "public_path": self.public_path,
            "chunk_references": [c.to_dict() for c in self.chunk_references],
            "sensitive": self.sensitive.to_dict(),
        }


@dataclass
class AssetReport:
    """Everything recovered from one JS asset (and its source map, if any)"""
    url: str
    detection: Optional[DetectionResult] = None
    chunk_loading: ChunkLoadingInfo = field(default_factory=ChunkLoadingInfo)
    public_path: str = ""
    chunk_references: List[ChunkReference] = field(default_factory=list)
    define_constants: List[DefineConstant] = field(default_factory=list)
    api_configs: List[ApiConfig] = field(default_factory=list)
    source_map_url: Optional[str] = None
    source_map: Optional[SourceMapDocument] = None
    source_files: List[SourceFileRecord] = field(default_factory=list)
    sensitive_files: List[SourceFileRecord] = field(default_factory=list)
    sensitive: SensitiveReport = field(default_factory=SensitiveReport)
    source_sensitive: Dict[str, SensitiveReport] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def map_is_inline(self) -> bool:
        return bool(self.source_map_url) and self.source_map_url.startswith("data:")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "detection": self.detection.to_dict() if self.detection else None,
            "chunk_loading": self.chunk_loading.to_dict(),
            "public_path": self.public_path,
            "chunk_references": [c.to_dict() for c in self.chunk_references],
            "define_constants": [c.to_dict() for c in self.define_constants],
            "api_configs": [c.to_dict() for c in self.api_configs],
            "source_map_url": None if self.map_is_inline else self.source_map_url,
            "source_map_inline": self.map_is_inline,
            "source_map": self.source_map.to_dict() if self.source_map else None,
            "source_files": [f.to_dict() for f in self.source_files],
            "sensitive_files": [f.path for f in self.sensitive_files],
            "sensitive": self.sensitive.to_dict(),
            "source_sensitive": {k: v.to_dict() for k, v in self.source_sensitive.items()},
            "error": self.error,
        }


Asset = Union[Tuple[str, str], Tuple[str, str, Optional[str]]]


def _shift(report: SensitiveReport, delta: int) -> SensitiveReport:
    """Rebase window-relative offsets onto the full text"""
    if not delta:
        return report
    return SensitiveReport(
        reconstructed=[dataclasses.replace(r, offset=r.offset + delta) for r in report.reconstructed],
        configs=[dataclasses.replace(c, offset=c.offset + delta) for c in report.configs],
        debug=[dataclasses.replace(d, offset=d.offset + delta) for d in report.debug],
    )


# =============================================================================
# ENGINE
# =============================================================================

class WebpackEngine:
    """
    The CHUNKHOUND engine.

    Owns one instance of each component. The source map cache and the
    module map live as long as the engine does.

    Usage:
        engine = WebpackEngine()
        report = engine.analyze_asset("https://app.example/main.js", code)
        reports = await engine.analyze_assets([(url, code), ...])
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        component_config = self.config.component_config()

        self.detector = WebpackDetector(component_config)
        self.runtime = RuntimeAnalyzer(component_config)
        self.sourcemaps = SourceMapDecoder(component_config)
        self.sensitive = SensitiveExtractor(component_config)
        self.chunks = ChunkAnalyzer(config=component_config)
        self.modules = ModuleAnalyzer(component_config)

    @property
    def components(self) -> List[Component]:
        return [self.detector, self.runtime, self.sourcemaps, self.sensitive, self.chunks, self.modules]

    def diagnostics(self) -> List[Any]:
        found = []
        for component in self.components:
            found.extend(component.diagnostics)
        return sorted(found, key=lambda d: d.timestamp_ms)

    # =========================================================================
    # TEXT SCANNING
    # =========================================================================

    def scan_text(self, code: str) -> SensitiveReport:
        """Sensitive scan, window by window for very large text"""
        report = SensitiveReport()
        if not code:
            return report
        if not windows.needs_windowing(code, self.config.window_threshold):
            return self.sensitive.extract(code)

        size = self.config.window_size
        for part in windows.run_windows(code, lambda window, index: _shift(self.sensitive.extract(window), index * size), size):
            report.extend(part)
        return report

    async def scan_text_async(self, code: str) -> SensitiveReport:
        report = SensitiveReport()
        if not code:
            return report
        if not windows.needs_windowing(code, self.config.window_threshold):
            return self.sensitive.extract(code)

        size = self.config.window_size
        parts = await windows.process_windows(
            code,
            lambda window, index: _shift(self.sensitive.extract(window), index * size),
            size,
            self.config.window_delay,
        )
        for part in parts:
            report.extend(part)
        return report

    # =========================================================================
    # RUNTIME
    # =========================================================================

    def analyze_runtime(self, view: RuntimeView) -> BundleReport:
        detection = self.detector.detect(view)
        report = BundleReport(detection=detection, location=view.location)

        for script in view.inline_scripts:
            report.chunk_references.extend(
                self.chunks.extract_chunk_references(script.text, view.location or "")
            )
            report.sensitive.extend(self.scan_text(script.text))

        if not detection.detected:
            return report

        source = detection.runtime_handle or view
        module_map = self.runtime.extract_module_map(source)
        report.modules = list(module_map.values())
        report.chunk_loading = self.runtime.analyze_chunk_loading(source)
        report.public_path = self.runtime.extract_public_path(source)

        table = detection.runtime_handle.modules if detection.runtime_handle else None
        if table is not None:
            report.config_modules = self.modules.identify_config_modules(table)
            self.modules.dependencies.clear()
            items = table.items() if hasattr(table, "items") else enumerate(table)
            for module_id, value in items:
                if value and not isinstance(value, Mapping):
                    self.modules.analyze_dependencies(function_source(value), module_id)
            report.dependency_graph = self.modules.build_dependency_graph()

        return report

    # =========================================================================
    # ASSETS
    # =========================================================================

    def analyze_asset(
        self,
        url: str,
        code: str,
        map_text: Optional[Union[str, bytes]] = None,
        sensitive: Optional[SensitiveReport] = None,
    ) -> AssetReport:
        """Offline analysis of one JS asset; ``map_text`` is its fetched external map"""
        report = AssetReport(url=url)
        try:
            code = code or ""
            report.detection = self.detector.detect_from_code(code)
            report.chunk_loading = self.runtime.analyze_chunk_loading(code)
            report.public_path = self.runtime.extract_public_path(code)
            if report.public_path:
                self.chunks.set_public_path(report.public_path)
            report.chunk_references = self.chunks.extract_chunk_references(code, url)
            report.define_constants = self.modules.extract_define_constants(code)
            report.api_configs = self.modules.extract_api_configs(code)

            self._attach_source_map(report, code, map_text)

            report.sensitive = sensitive if sensitive is not None else self.scan_text(code)
            for record in report.source_files:
                if record.content:
                    found = self.scan_text(record.content)
                    if not found.empty:
                        report.source_sensitive[record.path] = found
        except Exception as e:
            report.error = str(e)
            self.sensitive.fail(f"asset analysis failed for {url}", e)
        finally:
            self.chunks.set_public_path("")
            self.chunks.clear()
        return report

    def _attach_source_map(self, report: AssetReport, code: str, map_text: Optional[Union[str, bytes]]) -> None:
        reference = self.sourcemaps.extract_reference_url(code)
        if reference:
            report.source_map_url = self.sourcemaps.resolve_reference_url(reference, report.url)

        document = None
        if reference and self.sourcemaps.is_inline(reference):
            document = self.sourcemaps.decode(reference)
        elif map_text:
            document = self.sourcemaps.decode(map_text)
            if report.source_map_url is None:
                report.source_map_url = report.url.split("?", 1)[0] + ".map"
            if document is not None:
                self.sourcemaps.cache_source_map(report.source_map_url, document)
        elif report.source_map_url:
            document = self.sourcemaps.get_cached(report.source_map_url)

        if document is None:
            return
        report.source_map = document
        report.source_files = self.sourcemaps.list_source_files(document)
        report.sensitive_files = self.sourcemaps.filter_sensitive_paths(report.source_files)

    async def analyze_asset_async(
        self,
        url: str,
        code: str,
        map_text: Optional[Union[str, bytes]] = None,
    ) -> AssetReport:
        try:
            sensitive = await self.scan_text_async(code or "")
        except Exception as e:
            return AssetReport(url=url, error=str(e))
        return self.analyze_asset(url, code, map_text, sensitive=sensitive)

    async def analyze_assets(self, assets: Iterable[Asset]) -> List[AssetReport]:
        """Analyse several assets independently; order of results matches input"""
        assets = list(assets)
        tasks = []
        for asset in assets:
            url, code = asset[0], asset[1]
            map_text = asset[2] if len(asset) > 2 else None
            tasks.append(self.analyze_asset_async(url, code, map_text))

        results = await asyncio.gather(*tasks, return_exceptions=True)
        reports: List[AssetReport] = []
        for asset, result in zip(assets, results):
            if isinstance(result, BaseException):
                reports.append(AssetReport(url=asset[0], error=str(result)))
            else:
                reports.append(result)
        return reports
