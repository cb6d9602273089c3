"""URL helpers for chunk and asset URLs"""

import re
from typing import Optional, Union
from urllib.parse import urljoin, urlparse

from chunkhound.utils.patterns import CHUNK_FILE_SHAPES


def _strip_query(url: str) -> str:
    return url.split("?", 1)[0].split("#", 1)[0]


def resolve_url(relative_path: str, base_url: str) -> Optional[str]:
    """Resolve a possibly relative or protocol-relative URL against a base"""
    if not relative_path:
        return None
    try:
        if relative_path.startswith(("http://", "https://")):
            return relative_path
        if relative_path.startswith("//"):
            scheme = urlparse(base_url).scheme or "https"
            return f"{scheme}:{relative_path}"
        if not base_url:
            return relative_path
        return urljoin(base_url, relative_path)
    except ValueError:
        return None


def get_file_name(url: str) -> str:
    if not url:
        return ""
    try:
        path = urlparse(url).path or url
    except ValueError:
        path = url
    return path.split("/")[-1]


def is_js_file(url: str) -> bool:
    if not url:
        return False
    clean = _strip_query(url).lower()
    return clean.endswith((".js", ".mjs"))


def is_source_map_file(url: str) -> bool:
    if not url:
        return False
    return _strip_query(url).lower().endswith(".map")


def is_chunk_file(url: str) -> bool:
    """True for filenames shaped like Webpack split chunks"""
    if not url:
        return False
    name = get_file_name(_strip_query(url)).lower()
    if "vendor" in name and "vendors~" not in name:
        return False
    return any(shape.match(name) for shape in CHUNK_FILE_SHAPES)


def extract_chunk_id(url: str) -> Optional[Union[int, str]]:
    """Numeric id (``0.abc.js`` -> 0) or named id (``vendors~main.js`` -> 'vendors~main')"""
    name = get_file_name(_strip_query(url or ""))
    numeric = re.match(r'^(\d+)\.', name)
    if numeric:
        return int(numeric.group(1))
    named = re.match(r'^([a-z]+(?:~[a-z]+)*)\.', name, re.IGNORECASE)
    if named:
        return named.group(1)
    return None


def source_map_candidate(js_url: str) -> Optional[str]:
    """Conventional ``<file>.js.map`` location for a JS asset"""
    if not js_url:
        return None
    return _strip_query(js_url) + ".map"


def is_same_origin(url1: str, url2: str) -> bool:
    try:
        a, b = urlparse(url1), urlparse(url2)
    except ValueError:
        return False
    if not a.scheme or not b.scheme:
        return False
    return (a.scheme, a.netloc) == (b.scheme, b.netloc)
