"""
CHUNKHOUND Component Base

Shared plumbing for the engine components: configuration lookup, logging
and the bounded diagnostic trail that public operations write to instead
of raising.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

from chunkhound.core.types import now_ms

MAX_DIAGNOSTICS = 100


@dataclass
class Diagnostic:
    component: str
    message: str
    level: str = "warning"
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp_ms: int = field(default_factory=now_ms)

    def __str__(self) -> str:
        return f"[{self.component}] {self.message}"


class Component:
    """
    Base class for engine components.

    Subclasses set ``name`` and read their tunables from ``self.config``.
    Public operations catch failures at their boundary and call
    ``self.fail(...)``, which logs and records a diagnostic, then return
    their empty/default value.
    """

    name: str = "component"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.debug = bool(self.config.get("debug", False))
        self.logger = logging.getLogger(f"chunkhound.{self.name}")
        self._diagnostics: Deque[Diagnostic] = deque(maxlen=MAX_DIAGNOSTICS)

    # =========================================================================
    # LOGGING
    # =========================================================================

    def log(self, message: str, level: str = "info") -> None:
        self.logger.log(getattr(logging, level.upper(), logging.INFO), message)

    def fail(self, message: str, error: Optional[BaseException] = None, **context) -> Diagnostic:
        """Record a swallowed failure"""
        text = f"{message}: {error}" if error is not None else message
        diagnostic = Diagnostic(component=self.name, message=text, context=context)
        self._diagnostics.append(diagnostic)
        self.log(text, "warning")
        return diagnostic

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._diagnostics)

    @property
    def last_diagnostic(self) -> Optional[Diagnostic]:
        return self._diagnostics[-1] if self._diagnostics else None
