"""
CHUNKHOUND Webpack Components

- WebpackDetector: presence, version and build mode from a runtime view
- RuntimeAnalyzer: module table, chunk loading, public path
- SourceMapDecoder: Source Map v3 decoding with a FIFO cache
- SensitiveExtractor: split-string reconstruction and secret classification
- ChunkAnalyzer: chunk file discovery and enumeration
- ModuleAnalyzer: dependency graph and config-module ranking
"""

from .base import Component, Diagnostic
from .chunks import ChunkAnalyzer
from .detector import WebpackDetector
from .modules import ModuleAnalyzer
from .runtime import RuntimeAnalyzer
from .sensitive import SensitiveExtractor
from .sourcemap import SourceMapDecoder
from .view import JsArray, JsFunction, RequireFunction, RuntimeView, ScriptTag

__all__ = [
    "Component",
    "Diagnostic",
    "WebpackDetector",
    "RuntimeAnalyzer",
    "SourceMapDecoder",
    "SensitiveExtractor",
    "ChunkAnalyzer",
    "ModuleAnalyzer",
    "RuntimeView",
    "JsArray",
    "JsFunction",
    "RequireFunction",
    "ScriptTag",
]
