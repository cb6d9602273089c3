"""
CHUNKHOUND Core Module

Shared types. The engine lives in ``chunkhound.core.engine``.
"""

from .types import (
    BuildMode,
    Confidence,
    DetectionResult,
    Finding,
    ModuleInfo,
    ScanResult,
    SensitiveCategory,
    Severity,
    WebpackVersion,
)

__all__ = [
    "Finding",
    "ScanResult",
    "Severity",
    "Confidence",
    "DetectionResult",
    "ModuleInfo",
    "WebpackVersion",
    "BuildMode",
    "SensitiveCategory",
]
