"""
CHUNKHOUND Chunk Analyzer

Finds split-chunk files referenced from HTML, from string literals in JS
and from the runtime's chunk-id -> hash tables, and enumerates candidate
chunk URLs for hash-free filename templates.
"""

import re
from typing import Any, Dict, List, Optional

from chunkhound.core.types import ChunkReference
from chunkhound.utils import patterns
from chunkhound.utils.urls import extract_chunk_id, is_chunk_file, resolve_url
from chunkhound.webpack.base import Component

DEFAULT_TEMPLATE = "[id].[hash].js"
DEFAULT_MAX_ENUMERATION = 100

_HASH_PLACEHOLDER = re.compile(r'\[(?:hash|chunkhash|contenthash|fullhash)(?::\d+)?\]')


class ChunkAnalyzer(Component):
    """
    Chunk discovery.

    References are remembered by resolved URL across calls until
    ``clear()`` is called.
    """

    name = "chunks"

    def __init__(
        self,
        public_path: str = "",
        base_url: str = "",
        max_enumeration: int = DEFAULT_MAX_ENUMERATION,
        config: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(config)
        self.public_path = public_path or ""
        self.base_url = base_url or ""
        self.max_enumeration = max_enumeration
        self.chunks: Dict[str, ChunkReference] = {}
        self.templates: List[str] = []

    # =========================================================================
    # DISCOVERY
    # =========================================================================

    def extract_chunk_references(self, code: str, source_url: str = "") -> List[ChunkReference]:
        """Deduplicated chunk references found in HTML or JS text"""
        references: List[ChunkReference] = []
        if not code:
            return references

        for extractor in (self._from_html, self._from_js, self._from_runtime):
            try:
                references.extend(extractor(code, source_url))
            except Exception as e:
                self.fail(f"{extractor.__name__} failed", e)

        unique: Dict[str, ChunkReference] = {}
        for ref in references:
            unique.setdefault(ref.url, ref)

        for url, ref in unique.items():
            self.chunks.setdefault(url, ref)

        if self.debug:
            self.log(f"found {len(unique)} chunk references", "debug")
        return list(unique.values())

    def _from_html(self, code: str, source_url: str) -> List[ChunkReference]:
        refs = []
        for match in patterns.HTML_SCRIPT_SRC.finditer(code):
            if is_chunk_file(match.group(1)):
                refs.append(self._reference(match.group(1), source_url, "html", "initial"))
        for match in patterns.HTML_LINK_JS.finditer(code):
            if is_chunk_file(match.group(1)):
                refs.append(self._reference(match.group(1), source_url, "html", "preload"))
        return refs

    def _from_js(self, code: str, source_url: str) -> List[ChunkReference]:
        refs = []
        for literal in patterns.CHUNK_LITERALS:
            for match in literal.finditer(code):
                refs.append(self._reference(match.group(1), source_url, "js", "async"))
        return refs

    def _from_runtime(self, code: str, source_url: str) -> List[ChunkReference]:
        if "__webpack_require__" not in code and "webpackJsonp" not in code:
            return []

        template = patterns.extract_chunk_filename(code)
        if template and template not in self.templates:
            self.templates.append(template)

        refs = []
        for group in patterns.CHUNK_HASH_GROUP.finditer(code):
            for item in patterns.CHUNK_HASH_ITEM.finditer(group.group(0)):
                chunk_id, chunk_hash = item.group(1), item.group(2)
                path = self.build_chunk_path(chunk_id, chunk_hash, template)
                refs.append(self._reference(path, source_url, "runtime", "async", chunk_id))
        return refs

    def build_chunk_path(self, chunk_id: str, chunk_hash: str, template: Optional[str] = None) -> str:
        """Chunk path from ``template``, or the Webpack default when the code names none"""
        template = template or DEFAULT_TEMPLATE
        path = template.replace("[id]", str(chunk_id)).replace("[name]", str(chunk_id))
        return _HASH_PLACEHOLDER.sub(chunk_hash, path)

    def _reference(
        self,
        path: str,
        source_url: str,
        origin: str,
        load_type: str,
        chunk_id: Optional[str] = None,
    ) -> ChunkReference:
        if chunk_id is None:
            extracted = extract_chunk_id(path)
            chunk_id = str(extracted) if extracted is not None else None
        return ChunkReference(
            url=self._resolve(path, source_url),
            original_path=path,
            load_type=load_type,
            origin=origin,
            chunk_id=chunk_id,
            template=patterns.infer_template(path),
        )

    def _resolve(self, path: str, base: str = "") -> str:
        base = base or self.base_url
        if self.public_path and not path.startswith(("/", "http://", "https://")):
            path = self.public_path + path
        return resolve_url(path, base) or path

    # =========================================================================
    # ENUMERATION
    # =========================================================================

    def enumerate_chunks(self, template: str, start: int = 0, end: int = 20) -> List[str]:
        """Candidate URLs for ids in ``[start, end)``; hashed templates yield nothing"""
        urls: List[str] = []
        if not template:
            return urls

        limit = min(max(end - start, 0), self.max_enumeration)
        for chunk_id in range(start, start + limit):
            path = template.replace("[id]", str(chunk_id)).replace("[name]", str(chunk_id))
            if _HASH_PLACEHOLDER.search(path):
                continue
            urls.append(self._resolve(path))
        return urls

    # =========================================================================
    # STATE
    # =========================================================================

    def set_public_path(self, public_path: Optional[str]) -> None:
        self.public_path = public_path or ""

    def set_base_url(self, base_url: Optional[str]) -> None:
        self.base_url = base_url or ""

    def get_all_chunk_urls(self) -> List[str]:
        return list(self.chunks)

    def get_all_chunk_references(self) -> List[ChunkReference]:
        return list(self.chunks.values())

    def clear(self) -> None:
        self.chunks.clear()
        self.templates = []
