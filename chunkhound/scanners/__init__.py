"""
CHUNKHOUND Scanner Modules

- A05: Security Misconfiguration -> WebpackBundleScanner (source maps, secrets in bundles)
"""

from .base import BaseScanner, ScanContext
from .webpack_bundle import WebpackBundleScanner

__all__ = [
    "BaseScanner",
    "ScanContext",
    "WebpackBundleScanner",
]
