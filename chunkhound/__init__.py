"""
CHUNKHOUND

Webpack bundle introspection: runtime detection, module graph recovery,
Source Map decoding and leaked-secret reconstruction.
"""

__version__ = "0.3.0"
