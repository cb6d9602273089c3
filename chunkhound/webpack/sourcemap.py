"""
CHUNKHOUND Source Map Decoder

Locates the sourceMappingURL reference in bundle text, decodes Source Map
v3 documents (raw JSON or inline ``data:`` URLs), lists the original
source files they describe and keeps a small FIFO cache of decoded maps
keyed by map URL.

Fetching external maps is the caller's job; this module only decodes the
text it is handed.
"""

import base64
import binascii
import json
import re
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Union
from urllib.parse import unquote, urljoin

from chunkhound.core.types import CacheEntry, SourceFileRecord, SourceMapDocument
from chunkhound.utils import patterns
from chunkhound.webpack.base import Component

SUPPORTED_VERSION = 3
DEFAULT_CACHE_CAPACITY = 50

ABSOLUTE_PREFIXES = ("http://", "https://", "webpack://")

MapInput = Union[str, bytes, Dict[str, Any], None]


def _b64decode(payload: str) -> bytes:
    """Base64 decode, tolerating missing padding and URL-safe alphabet"""
    payload = re.sub(r'\s+', '', payload)
    payload += "=" * (-len(payload) % 4)
    if "-" in payload or "_" in payload:
        return base64.b64decode(payload, altchars=b"-_", validate=True)
    return base64.b64decode(payload, validate=True)


def get_extension(path: str) -> str:
    match = re.search(r'\.([^./]+)$', path or "")
    return match.group(1).lower() if match else "unknown"


class SourceMapDecoder(Component):
    """
    Source Map v3 decoder with a bounded FIFO cache.

    Eviction follows insertion order, not access order: the oldest
    inserted map goes first once the cache is full.
    """

    name = "sourcemap"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.max_cache_size = int(self.config.get("cache_capacity", DEFAULT_CACHE_CAPACITY))
        self.cache: "OrderedDict[str, CacheEntry]" = OrderedDict()

    # =========================================================================
    # REFERENCES
    # =========================================================================

    def extract_reference_url(self, code: str) -> Optional[str]:
        """First sourceMappingURL comment (line or block form) in source order"""
        try:
            return patterns.extract_source_map_url(code)
        except Exception as e:
            self.fail("source map reference extraction failed", e)
            return None

    @staticmethod
    def is_inline(url: Optional[str]) -> bool:
        return bool(url) and url.startswith("data:")

    def resolve_reference_url(self, reference: str, js_url: str) -> Optional[str]:
        """Absolute map URL for a reference found in the JS file at ``js_url``"""
        if not reference:
            return None
        if self.is_inline(reference) or reference.startswith(("http://", "https://")):
            return reference
        try:
            return urljoin(js_url, reference) if js_url else reference
        except ValueError:
            return reference

    # =========================================================================
    # DECODING
    # =========================================================================

    def decode_data_url(self, data_url: str) -> Optional[str]:
        """Payload text of a ``data:`` URL"""
        if not self.is_inline(data_url) or "," not in data_url:
            self.fail("not a data URL")
            return None
        prefix, payload = data_url[len("data:"):].split(",", 1)
        try:
            if ";base64" in prefix.lower():
                return _b64decode(payload).decode("utf-8")
            return unquote(payload)
        except (binascii.Error, ValueError) as e:
            self.fail("inline source map payload could not be decoded", e)
            return None

    def decode(self, source: MapInput) -> Optional[SourceMapDocument]:
        """
        Decode a Source Map.

        Accepts JSON text, UTF-8 bytes, an already-parsed mapping or a
        ``data:`` URL. Anything other than a well-formed version 3 document
        yields None and a diagnostic.
        """
        if source is None or source == "":
            return None

        try:
            if isinstance(source, bytes):
                source = source.decode("utf-8")

            if isinstance(source, str):
                text = source.strip()
                if self.is_inline(text):
                    text = self.decode_data_url(text)
                    if text is None:
                        return None
                data = json.loads(text)
            else:
                data = source
        except (ValueError, UnicodeDecodeError, RecursionError) as e:
            self.fail("malformed source map", e)
            return None

        if not isinstance(data, dict):
            self.fail("source map is not a JSON object")
            return None

        version = data.get("version")
        if version != SUPPORTED_VERSION or isinstance(version, bool):
            self.fail(f"unsupported source map version: {version!r}", version=version)
            return None

        try:
            return self._build_document(data)
        except (TypeError, ValueError) as e:
            self.fail("source map fields are malformed", e)
            return None

    def _build_document(self, data: Dict[str, Any]) -> SourceMapDocument:
        sources = [str(s) if s is not None else "" for s in (data.get("sources") or [])]

        raw_content = data.get("sourcesContent") or []
        if not isinstance(raw_content, list):
            raise TypeError("sourcesContent must be a list")
        content: List[Optional[str]] = [
            c if isinstance(c, str) else None for c in raw_content[:len(sources)]
        ]
        content.extend([None] * (len(sources) - len(content)))

        document = SourceMapDocument(
            schema_version=SUPPORTED_VERSION,
            file=str(data.get("file") or ""),
            source_root=str(data.get("sourceRoot") or ""),
            sources=sources,
            sources_content=content,
            names=[str(n) for n in (data.get("names") or [])],
            mappings=str(data.get("mappings") or ""),
        )
        if self.debug:
            self.log(f"decoded source map with {document.source_count} sources", "debug")
        return document

    # =========================================================================
    # SOURCE FILES
    # =========================================================================

    def list_source_files(self, document: Optional[SourceMapDocument]) -> List[SourceFileRecord]:
        if document is None:
            return []

        files = []
        for index, path in enumerate(document.sources):
            content = document.sources_content[index] if index < len(document.sources_content) else None
            files.append(SourceFileRecord(
                index=index,
                path=path,
                resolved_path=self._resolve_path(document.source_root, path),
                has_content=content is not None,
                content=content,
                size_bytes=len(content) if content else 0,
            ))
        return files

    @staticmethod
    def _resolve_path(source_root: str, path: str) -> str:
        if not path:
            return ""
        if path.startswith(ABSOLUTE_PREFIXES):
            return path
        if source_root:
            if source_root.endswith("/"):
                return source_root + path
            return f"{source_root}/{path}"
        return path

    def lookup_source(self, document: Optional[SourceMapDocument], name: str) -> Optional[str]:
        """Embedded content for a source by exact name, path suffix or substring"""
        if document is None or not name:
            return None

        matchers = (
            lambda s: s == name,
            lambda s: s.endswith("/" + name),
            lambda s: name in s,
        )
        for matches in matchers:
            for index, source in enumerate(document.sources):
                if matches(source):
                    if index < len(document.sources_content):
                        return document.sources_content[index]
                    return None
        return None

    @staticmethod
    def filter_sensitive_paths(files: List[SourceFileRecord]) -> List[SourceFileRecord]:
        """Records whose path looks worth a human look (triage only)"""
        return [
            f for f in files
            if any(p.search(f.path or "") for p in patterns.SENSITIVE_PATHS)
        ]

    def statistics(self, document: Optional[SourceMapDocument]) -> Dict[str, Any]:
        if document is None:
            return {"total_files": 0, "total_size": 0, "file_types": {}, "has_embedded_content": False}

        file_types: Dict[str, int] = {}
        total_size = 0
        for record in self.list_source_files(document):
            total_size += record.size_bytes
            ext = get_extension(record.path)
            file_types[ext] = file_types.get(ext, 0) + 1

        return {
            "total_files": document.source_count,
            "total_size": total_size,
            "file_types": file_types,
            "has_embedded_content": document.has_embedded_content,
        }

    # =========================================================================
    # CACHE
    # =========================================================================

    def cache_source_map(self, url: str, document: SourceMapDocument) -> None:
        if url in self.cache:
            self.cache[url] = CacheEntry(map_url=url, document=document)
            return

        while self.cache and len(self.cache) >= self.max_cache_size:
            evicted, _ = self.cache.popitem(last=False)
            self.log(f"evicted cached source map {evicted}", "debug")

        if self.max_cache_size > 0:
            self.cache[url] = CacheEntry(map_url=url, document=document)

    def get_cached(self, url: str) -> Optional[SourceMapDocument]:
        entry = self.cache.get(url)
        return entry.document if entry else None

    def clear_cache(self) -> None:
        self.cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self.cache)
