"""
CHUNKHOUND Pattern Library

Static catalogue of the textual patterns used to recognise Webpack runtime
idioms and sensitive values in bundle text. Patterns are compiled once at
import time and exposed through read-only mappings; nothing in here holds
state.

All patterns avoid nested quantifiers so that hostile input cannot cause
catastrophic backtracking.
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Pattern, Tuple


@dataclass(frozen=True)
class PatternSpec:
    """A compiled matcher plus the metadata describing it"""
    id: str
    regex: Pattern
    group: int = 1
    meta: Mapping[str, Any] = field(default_factory=dict)

    def first(self, text: str) -> Optional[str]:
        match = self.regex.search(text)
        if not match:
            return None
        if self.regex.groups >= self.group:
            return match.group(self.group)
        return match.group(0)


def _spec(pid: str, pattern: str, flags: int = 0, group: int = 1, **meta) -> PatternSpec:
    return PatternSpec(id=pid, regex=re.compile(pattern, flags), group=group, meta=MappingProxyType(meta))


def _freeze(specs: List[PatternSpec]) -> Tuple[PatternSpec, ...]:
    return tuple(specs)


# =============================================================================
# RUNTIME IDIOMS
# =============================================================================

PUBLIC_PATH = _freeze([
    _spec("public_path.require_p", r'__webpack_require__\.p\s*=\s*["\']([^"\']+)["\']'),
    _spec("public_path.short_p", r'\.p\s*=\s*["\']([^"\']+)["\']'),
    _spec("public_path.config", r'publicPath:\s*["\']([^"\']+)["\']'),
    _spec("public_path.free_var", r'__webpack_public_path__\s*=\s*["\']([^"\']+)["\']'),
])

CHUNK_LOADING = _freeze([
    _spec("chunk_loading.e_function", r'\.e\s*=\s*function\s*\(\s*\w+\s*\)'),
    _spec("chunk_loading.require_e", r'__webpack_require__\.e\s*\('),
    _spec("chunk_loading.installed", r'installedChunks\s*\['),
])

# Literal markers for async chunk loading in minified runtime text
ASYNC_LOADING_MARKERS = ("__webpack_require__.e", ".e=function", "installedChunks")

MODULE_FACTORY = _freeze([
    _spec("factory.v4_exports", r'\(\s*function\s*\(\s*module\s*,\s*exports\s*,\s*__webpack_require__\s*\)'),
    _spec("factory.v4_harmony", r'\(\s*function\s*\(\s*module\s*,\s*__webpack_exports__\s*,\s*__webpack_require__\s*\)'),
    _spec("factory.v5_arrow", r'\(\s*\(\s*__unused_webpack_module\s*,\s*__webpack_exports__\s*,\s*__webpack_require__\s*\)'),
])

REQUIRE_CALL = re.compile(r'__webpack_require__\(\s*["\']?(\d+|[a-zA-Z0-9_./-]+)["\']?\s*\)')
REQUIRE_N_CALL = re.compile(r'__webpack_require__\.n\(\s*["\']?(\d+|[a-zA-Z0-9_./-]+)["\']?\s*\)')

# __webpack_require__.d(exports, "name", ...) and exports.name = ...
EXPORT_SITE = re.compile(
    r'__webpack_require__\.d\(\s*\w+\s*,\s*["\']([\w$]+)["\']'
    r'|\bexports\.([\w$]+)\s*='
)

# process.env / DefinePlugin injection
PROCESS_ENV = re.compile(r'process\.env\.([A-Z_][A-Z0-9_]*)')
PROCESS_ENV_LITERAL = re.compile(r'"process\.env\.([A-Z_][A-Z0-9_]*)"\s*:\s*["\']([^"\']+)["\']')
DEFINE_IDENTIFIERS = ("NODE_ENV", "API_URL", "BASE_URL", "PUBLIC_URL")
NODE_ENV_VALUE = re.compile(r'NODE_ENV["\']?\s*[:=]{1,3}\s*["\'](development|production)["\']')

SOURCE_MAP_URL = _freeze([
    _spec("sourcemap.line", r'//[#@]\s*sourceMappingURL=(\S+)'),
    _spec("sourcemap.block", r'/\*[#@]\s*sourceMappingURL=([^\s*]+)\s*\*/'),
])

DYNAMIC_IMPORT = _freeze([
    _spec("dynamic.import", r'import\s*\(\s*["\']([^"\']+)["\']\s*\)'),
    _spec("dynamic.require_e", r'__webpack_require__\.e\s*\(\s*["\']?(\d+)["\']?\s*\)'),
    _spec("dynamic.promise_all", r'Promise\.all\s*\(\s*\[([^\]]+)\]\s*\)'),
])

CHUNK_FILENAME = _freeze([
    _spec("chunk_filename.config", r'chunkFilename:\s*["\']([^"\']+)["\']'),
    _spec("chunk_filename.u_function", r'\.u\s*=\s*function[^{]*\{[^}]*return\s*["\']([^"\']+)["\']'),
])

# {0:"abc123",1:"def456"} groups in the runtime
CHUNK_HASH_GROUP = re.compile(r'\{(?:\s*\d+\s*:\s*["\'][a-f0-9]+["\']\s*,?)+\s*\}')
CHUNK_HASH_ITEM = re.compile(r'(\d+)\s*:\s*["\']([a-f0-9]+)["\']')

RUNTIME_INDICATORS = (
    "__webpack_require__",
    "webpackJsonpCallback",
    "__webpack_modules__",
    "installedChunks",
    "__webpack_exports__",
)

# =============================================================================
# CHUNK FILE SHAPES
# =============================================================================

# Known chunk filename templates and the concrete filenames they produce
KNOWN_TEMPLATES: Tuple[Tuple[str, Pattern], ...] = (
    ("[id].[hash].js", re.compile(r'^\d+\.[a-f0-9]+\.js$')),
    ("chunk.[id].[hash].js", re.compile(r'^chunk\.\d+\.[a-f0-9]+\.js$')),
    ("[name].[hash].chunk.js", re.compile(r'^[a-z]+\.[a-f0-9]+\.chunk\.js$', re.IGNORECASE)),
)

CHUNK_FILE_SHAPES: Tuple[Pattern, ...] = (
    re.compile(r'^\d+\.[a-f0-9]+\.js$'),
    re.compile(r'^chunk\.\d+\.[a-f0-9]+\.js$'),
    re.compile(r'^[a-z]+\.[a-f0-9]+\.chunk\.js$'),
    re.compile(r'^vendors~.*\.js$'),
    re.compile(r'^commons~.*\.js$'),
    re.compile(r'^\d+\.bundle\.js$'),
    re.compile(r'^chunk-[a-f0-9]+\.js$'),
)

CHUNK_LITERALS: Tuple[Pattern, ...] = (
    re.compile(r'["\']([^"\'\s]*?/?\d+\.[a-f0-9]+\.js)["\']', re.IGNORECASE),
    re.compile(r'["\']([^"\'\s]*?/?\d+\.bundle\.js)["\']', re.IGNORECASE),
    re.compile(r'["\']([^"\'\s]*/chunk\.[a-f0-9]+\.js)["\']', re.IGNORECASE),
    re.compile(r'["\']([^"\'\s]*/vendors~[^"\'\s]+\.js)["\']', re.IGNORECASE),
    re.compile(r'["\']([^"\'\s]*/commons~[^"\'\s]+\.js)["\']', re.IGNORECASE),
    re.compile(r'["\']([^"\'\s]*/[a-z]+\.[a-f0-9]+\.chunk\.js)["\']', re.IGNORECASE),
)

HTML_SCRIPT_SRC = re.compile(r'<script[^>]+src=["\']([^"\']+)["\'][^>]*>', re.IGNORECASE)
HTML_LINK_JS = re.compile(r'<link[^>]+href=["\']([^"\']+\.js)["\'][^>]*>', re.IGNORECASE)
HTML_INLINE_SCRIPT = re.compile(r'<script(?![^>]*\bsrc=)[^>]*>(.*?)</script>', re.IGNORECASE | re.DOTALL)

# =============================================================================
# SENSITIVE VALUES
# =============================================================================

_ASSIGN = r'["\']?\s*[:=]\s*["\']([^"\']+)["\']'

SENSITIVE_ASSIGNMENTS: Mapping[str, Tuple[PatternSpec, ...]] = MappingProxyType({
    "api_key": _freeze([
        _spec("api_key.api_key", r'["\']?(?:api[_-]?key|apikey)' + _ASSIGN, re.IGNORECASE),
        _spec("api_key.secret_key", r'["\']?(?:secret[_-]?key|secretkey)' + _ASSIGN, re.IGNORECASE),
        _spec("api_key.access_key", r'["\']?(?:access[_-]?key|accesskey)' + _ASSIGN, re.IGNORECASE),
    ]),
    "token": _freeze([
        _spec("token.auth", r'["\']?(?:auth[_-]?token|authtoken)' + _ASSIGN, re.IGNORECASE),
        _spec("token.access", r'["\']?(?:access[_-]?token|accesstoken)' + _ASSIGN, re.IGNORECASE),
        _spec("token.bearer", r'["\']?(?:bearer[_-]?token)' + _ASSIGN, re.IGNORECASE),
    ]),
    "password": _freeze([
        _spec("password.plain", r'["\']?(?:password|passwd|pwd)' + _ASSIGN, re.IGNORECASE),
        _spec("password.database", r'["\']?(?:db[_-]?password|database[_-]?password)' + _ASSIGN, re.IGNORECASE),
    ]),
    "cloud_key": _freeze([
        _spec("cloud.aws_access_key", r'AKIA[0-9A-Z]{16}', group=0, provider="aws"),
        _spec("cloud.aws_secret", r'["\']?(?:aws[_-]?secret)' + _ASSIGN, re.IGNORECASE, provider="aws"),
        _spec("cloud.google_api_key", r'AIza[0-9A-Za-z_-]{35}', group=0, provider="google"),
        _spec("cloud.openai_key", r'sk-[a-zA-Z0-9]{48}', group=0, provider="openai"),
    ]),
})

PLACEHOLDER_TOKENS = (
    "your_api_key", "your_secret", "xxx", "placeholder",
    "example", "test", "demo", "sample", "your-",
    "${", "{{", "<", ">",
)

SENSITIVE_KEYWORDS = (
    "key", "token", "secret", "password", "api", "auth",
    "credential", "private", "access", "bearer",
)

# Reconstruction idioms
CONCATENATION = re.compile(r'(["\'])([^"\']*)\1\s*\+\s*(["\'])([^"\']*)\3')
ARRAY_JOIN = re.compile(r'\[([^\[\]]+)\]\.join\s*\(\s*["\']([^"\']*)["\']\s*\)')
ARRAY_ELEMENT = re.compile(r'["\']([^"\']*)["\']')
FROM_CHAR_CODE = re.compile(r'String\.fromCharCode\s*\(\s*([^)]+?)\s*\)')
ATOB = re.compile(r'atob\s*\(\s*["\']([^"\']+)["\']\s*\)')

DEBUG_COMMENTS: Tuple[Pattern, ...] = (
    re.compile(r'//\s*(TODO|FIXME|HACK|XXX|DEBUG|NOTE):\s*(.+)', re.IGNORECASE),
    re.compile(r'/\*\s*(TODO|FIXME|HACK|XXX|DEBUG|NOTE):\s*([^*]+)\*/', re.IGNORECASE),
)
CONSOLE_CALL = re.compile(r'console\.(log|debug|info|warn|error)\s*\(\s*["\']([^"\']+)["\']')

# Source file paths worth a human look
SENSITIVE_PATHS: Tuple[Pattern, ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (r'config', r'env', r'secret', r'key', r'api', r'auth',
              r'credential', r'password', r'token', r'\.env')
)

# =============================================================================
# CATALOGUE
# =============================================================================

CATALOGUE: Mapping[str, Tuple[PatternSpec, ...]] = MappingProxyType({
    "public_path": PUBLIC_PATH,
    "chunk_loading": CHUNK_LOADING,
    "module_factory": MODULE_FACTORY,
    "source_map_url": SOURCE_MAP_URL,
    "dynamic_import": DYNAMIC_IMPORT,
    "chunk_filename": CHUNK_FILENAME,
})


def first_match(specs: Tuple[PatternSpec, ...], text: str) -> Optional[str]:
    """Value of the first pattern (in catalogue order) that matches"""
    if not text:
        return None
    for pat in specs:
        value = pat.first(text)
        if value:
            return value
    return None


def earliest_match(specs: Tuple[PatternSpec, ...], text: str) -> Optional[str]:
    """Value of whichever pattern matches earliest in the text"""
    if not text:
        return None
    best: Optional[Tuple[int, str]] = None
    for pat in specs:
        match = pat.regex.search(text)
        if match and (best is None or match.start() < best[0]):
            best = (match.start(), match.group(pat.group))
    return best[1] if best else None


def extract_public_path(code: str) -> Optional[str]:
    return first_match(PUBLIC_PATH, code)


def extract_source_map_url(code: str) -> Optional[str]:
    return earliest_match(SOURCE_MAP_URL, code)


def extract_dynamic_imports(code: str) -> List[str]:
    """Distinct dynamic import targets, in discovery order"""
    found: Dict[str, None] = {}
    if not code:
        return []
    for pat in DYNAMIC_IMPORT:
        for match in pat.regex.finditer(code):
            if match.group(1):
                found.setdefault(match.group(1).strip(), None)
    return list(found)


def extract_chunk_filename(code: str) -> Optional[str]:
    return first_match(CHUNK_FILENAME, code)


def count_runtime_indicators(code: str) -> int:
    if not code:
        return 0
    return sum(1 for marker in RUNTIME_INDICATORS if marker in code)


def is_webpack_runtime(code: str) -> bool:
    """True when at least two runtime indicators appear"""
    return count_runtime_indicators(code) >= 2


def has_async_loading(code: str) -> bool:
    if not code:
        return False
    return any(marker in code for marker in ASYNC_LOADING_MARKERS)


def infer_template(filename: str) -> Optional[str]:
    """Match a concrete chunk filename against the known template shapes"""
    if not filename:
        return None
    name = filename.rsplit("/", 1)[-1]
    for template, shape in KNOWN_TEMPLATES:
        if shape.match(name):
            return template
    return None


def normalise_template(template: str) -> Optional[str]:
    """
    Canonicalise a literal chunkFilename template.

    Hash placeholder variants collapse to ``[hash]`` and any directory
    prefix is dropped. Returns the canonical form only if it is one of the
    known shapes; otherwise None.
    """
    if not template:
        return None
    name = template.rsplit("/", 1)[-1]
    name = re.sub(r'\[(?:chunkhash|contenthash|fullhash)(?::\d+)?\]', '[hash]', name)
    name = re.sub(r'\[hash:\d+\]', '[hash]', name)
    known = {t for t, _ in KNOWN_TEMPLATES}
    if name in known:
        return name
    if "[" not in name:
        return infer_template(name)
    return None


def is_placeholder(value: str) -> bool:
    if not value:
        return True
    lowered = value.lower()
    return any(token in lowered for token in PLACEHOLDER_TOKENS)


def context_window(text: str, offset: int, width: int = 50) -> str:
    start = max(0, offset - width)
    end = min(len(text), offset + width)
    return text[start:end]
