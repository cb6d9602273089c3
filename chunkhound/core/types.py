"""
CHUNKHOUND Core Types

Data classes and enums shared by the Webpack engine, the bundle scanner
and the CLI. Everything here is plain data produced within a single
analysis pass.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


def now_ms() -> int:
    return int(time.time() * 1000)


# =============================================================================
# SEVERITY & CONFIDENCE
# =============================================================================

class Severity(Enum):
    """Finding severity levels"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def color(self) -> str:
        """Rich console color for this severity"""
        return {
            Severity.CRITICAL: "bright_red",
            Severity.HIGH: "red",
            Severity.MEDIUM: "yellow",
            Severity.LOW: "blue",
            Severity.INFO: "dim",
        }[self]


class Confidence(Enum):
    """Finding confidence levels"""
    CERTAIN = "certain"      # Read directly from the bundle
    FIRM = "firm"            # Strong pattern match
    TENTATIVE = "tentative"  # Heuristic, needs review


# =============================================================================
# DETECTION
# =============================================================================

class WebpackVersion(Enum):
    """Inferred major version of the Webpack runtime"""
    V4 = "4"
    V5 = "5"
    UNKNOWN = "unknown"
    UNSET = "unset"  # Detection did not run or version probing failed


class BuildMode(Enum):
    """Inferred build mode of the bundle"""
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    UNKNOWN = "unknown"

    @classmethod
    def from_env(cls, value: Any) -> "BuildMode":
        """Map an explicit NODE_ENV value onto a build mode"""
        text = str(value or "").strip().lower()
        if text in ("development", "dev"):
            return cls.DEVELOPMENT
        if text in ("production", "prod"):
            return cls.PRODUCTION
        return cls.UNKNOWN


@dataclass(frozen=True)
class FeatureFlags:
    """Outcome of the five detector probes"""
    has_jsonp_array: bool = False     # webpackJsonp (Webpack 4)
    has_chunk_array: bool = False     # webpackChunk* (Webpack 5)
    has_require: bool = False         # __webpack_require__
    has_module_table: bool = False    # __webpack_modules__
    has_source_map: bool = False      # informational only

    @property
    def any_runtime(self) -> bool:
        return (
            self.has_jsonp_array
            or self.has_chunk_array
            or self.has_require
            or self.has_module_table
        )

    def to_dict(self) -> Dict[str, bool]:
        return {
            "has_jsonp_array": self.has_jsonp_array,
            "has_chunk_array": self.has_chunk_array,
            "has_require": self.has_require,
            "has_module_table": self.has_module_table,
            "has_source_map": self.has_source_map,
        }


@dataclass
class RuntimeHandle:
    """
    Borrowed references into the host's Webpack runtime.

    The engine never owns these objects. A handle is only meaningful for
    the analysis pass that produced it; the host may mutate or discard the
    underlying objects afterwards.
    """
    chunk_array_name: Optional[str] = None
    chunk_array: Any = None
    require_function: Any = None
    modules: Any = None
    public_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        module_count = 0
        try:
            module_count = len(self.modules) if self.modules is not None else 0
        except TypeError:
            pass
        return {
            "chunk_array_name": self.chunk_array_name,
            "has_require_function": self.require_function is not None,
            "module_count": module_count,
            "public_path": self.public_path,
        }


@dataclass(frozen=True)
class DetectionResult:
    """One detection call's verdict"""
    detected: bool = False
    version: WebpackVersion = WebpackVersion.UNSET
    build_mode: BuildMode = BuildMode.UNKNOWN
    features: FeatureFlags = field(default_factory=FeatureFlags)
    runtime_handle: Optional[RuntimeHandle] = None
    timestamp_ms: int = field(default_factory=now_ms)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detected": self.detected,
            "version": self.version.value,
            "build_mode": self.build_mode.value,
            "features": self.features.to_dict(),
            "runtime": self.runtime_handle.to_dict() if self.runtime_handle else None,
            "timestamp_ms": self.timestamp_ms,
            "error": self.error,
        }


# =============================================================================
# MODULES & CHUNKS
# =============================================================================

class ModuleKind(Enum):
    FUNCTION = "function"
    OBJECT = "object"
    UNKNOWN = "unknown"


@dataclass
class ModuleInfo:
    """A single entry of the Webpack module table"""
    id: str
    path: Optional[str] = None
    dependencies: List[str] = field(default_factory=list)
    is_config_like: bool = False
    export_count: int = 0
    size_bytes: int = 0
    kind: ModuleKind = ModuleKind.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "dependencies": list(self.dependencies),
            "is_config_like": self.is_config_like,
            "export_count": self.export_count,
            "size_bytes": self.size_bytes,
            "kind": self.kind.value,
        }


# id -> ModuleInfo, insertion order is discovery order
ModuleMap = Dict[str, ModuleInfo]


@dataclass
class ChunkLoadingInfo:
    has_async_loading: bool = False
    chunk_ids: List[str] = field(default_factory=list)
    chunk_hash_map: Dict[str, str] = field(default_factory=dict)
    naming_template: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_async_loading": self.has_async_loading,
            "chunk_ids": list(self.chunk_ids),
            "chunk_hash_map": dict(self.chunk_hash_map),
            "naming_template": self.naming_template,
        }


@dataclass
class ChunkReference:
    """A chunk file referenced from HTML, JS or the runtime hash map"""
    url: str
    original_path: str
    load_type: str          # initial | preload | async
    origin: str             # html | js | runtime
    chunk_id: Optional[str] = None
    template: Optional[str] = None
    discovered_ms: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "original_path": self.original_path,
            "load_type": self.load_type,
            "origin": self.origin,
            "chunk_id": self.chunk_id,
            "template": self.template,
        }


@dataclass
class DefineConstant:
    """A DefinePlugin / process.env injection site"""
    name: str
    value: Optional[str] = None
    kind: str = "env"  # env | define

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "value": self.value, "kind": self.kind}


@dataclass
class ApiConfig:
    url: str
    url_kind: str
    origin: str

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "url_kind": self.url_kind, "origin": self.origin}


@dataclass
class ConfigModule:
    """A module ranked as likely to hold configuration"""
    id: str
    score: int
    indicators: List[str] = field(default_factory=list)
    priority: str = "low"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "score": self.score,
            "indicators": list(self.indicators),
            "priority": self.priority,
        }


@dataclass
class Dependency:
    id: str
    kind: str = "require"  # require | require_n
    offset: int = 0


@dataclass
class DependencyGraph:
    nodes: List[Dict[str, Any]] = field(default_factory=list)
    edges: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"nodes": list(self.nodes), "edges": list(self.edges)}


# =============================================================================
# SOURCE MAPS
# =============================================================================

@dataclass
class SourceMapDocument:
    """
    A validated Source Map v3 document.

    ``sources_content`` is index-aligned with ``sources``. Missing entries
    are ``None``, never the empty string.
    """
    schema_version: int = 3
    file: str = ""
    source_root: str = ""
    sources: List[str] = field(default_factory=list)
    sources_content: List[Optional[str]] = field(default_factory=list)
    names: List[str] = field(default_factory=list)
    mappings: str = ""

    @property
    def source_count(self) -> int:
        return len(self.sources)

    @property
    def has_embedded_content(self) -> bool:
        return any(c is not None for c in self.sources_content)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.schema_version,
            "file": self.file,
            "source_root": self.source_root,
            "sources": list(self.sources),
            "source_count": self.source_count,
            "has_embedded_content": self.has_embedded_content,
            "names": len(self.names),
        }


@dataclass(frozen=True)
class SourceFileRecord:
    index: int
    path: str
    resolved_path: str
    has_content: bool
    content: Optional[str] = None
    size_bytes: int = 0

    def to_dict(self, include_content: bool = False) -> Dict[str, Any]:
        data = {
            "index": self.index,
            "path": self.path,
            "resolved_path": self.resolved_path,
            "has_content": self.has_content,
            "size_bytes": self.size_bytes,
        }
        if include_content:
            data["content"] = self.content
        return data


@dataclass
class CacheEntry:
    map_url: str
    document: SourceMapDocument
    cached_at_ms: int = field(default_factory=now_ms)


# =============================================================================
# SENSITIVE DATA
# =============================================================================

class SensitiveCategory(Enum):
    API_KEY = "api_key"
    TOKEN = "token"
    PASSWORD = "password"
    CLOUD_KEY = "cloud_key"


class ReconstructionTechnique(Enum):
    CONCATENATION = "concatenation"
    ARRAY_JOIN = "array_join"
    CHAR_CODE_ARRAY = "char_code_array"
    BASE64 = "base64"


@dataclass(frozen=True)
class SensitiveFinding:
    category: SensitiveCategory
    value: str
    offset: int
    surrounding_context: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "value": self.value,
            "offset": self.offset,
            "context": self.surrounding_context,
        }


@dataclass(frozen=True)
class ReconstructedString:
    value: str
    technique: ReconstructionTechnique
    offset: int

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "technique": self.technique.value, "offset": self.offset}


@dataclass(frozen=True)
class DebugFinding:
    marker: str       # TODO, FIXME, ..., CONSOLE_LOG, CONSOLE_WARN, ...
    content: str
    offset: int

    def to_dict(self) -> Dict[str, Any]:
        return {"marker": self.marker, "content": self.content, "offset": self.offset}


@dataclass
class SensitiveReport:
    reconstructed: List[ReconstructedString] = field(default_factory=list)
    configs: List[SensitiveFinding] = field(default_factory=list)
    debug: List[DebugFinding] = field(default_factory=list)

    def extend(self, other: "SensitiveReport") -> None:
        self.reconstructed.extend(other.reconstructed)
        self.configs.extend(other.configs)
        self.debug.extend(other.debug)

    @property
    def empty(self) -> bool:
        return not (self.reconstructed or self.configs or self.debug)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reconstructed": [r.to_dict() for r in self.reconstructed],
            "configs": [c.to_dict() for c in self.configs],
            "debug": [d.to_dict() for d in self.debug],
        }


# =============================================================================
# FINDINGS (scanner output)
# =============================================================================

@dataclass
class Finding:
    """A reportable result produced by a scanner"""
    title: str = ""
    severity: Severity = Severity.INFO
    confidence: Confidence = Confidence.TENTATIVE

    url: str = ""
    description: str = ""
    evidence: Any = None
    remediation: str = ""
    references: List[str] = field(default_factory=list)

    owasp_category: Optional[str] = None
    cwe_id: Optional[str] = None

    scanner_module: str = ""
    found_at: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"[{self.severity.value.upper()}] {self.title} @ {self.url}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "severity": self.severity.value,
            "confidence": self.confidence.value,
            "url": self.url,
            "description": self.description,
            "evidence": self.evidence,
            "remediation": self.remediation,
            "references": list(self.references),
            "owasp_category": self.owasp_category,
            "cwe_id": self.cwe_id,
            "scanner_module": self.scanner_module,
            "found_at": self.found_at.isoformat(),
        }


@dataclass
class ScanResult:
    """Result of a scan operation"""
    target: str
    module: str
    started_at: datetime
    completed_at: Optional[datetime] = None

    findings: List[Finding] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    requests_sent: int = 0

    @property
    def duration(self) -> float:
        """Duration in seconds"""
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0

    @property
    def finding_count(self) -> Dict[Severity, int]:
        """Count findings by severity"""
        counts = {s: 0 for s in Severity}
        for f in self.findings:
            counts[f.severity] += 1
        return counts


