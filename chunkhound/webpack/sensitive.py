"""
CHUNKHOUND Sensitive-String Extractor

Undoes the usual string-splitting tricks found in bundled code, then
classifies literals and assignment sites against the sensitive-value
catalogue in ``chunkhound.utils.patterns``.

Only reconstructed values that look sensitive (a keyword hit or a long
opaque token) are kept.
"""

import base64
import binascii
import re
from typing import Any, Dict, List, Optional

from chunkhound.core.types import (
    DebugFinding,
    ReconstructedString,
    ReconstructionTechnique,
    SensitiveCategory,
    SensitiveFinding,
    SensitiveReport,
)
from chunkhound.utils import patterns
from chunkhound.webpack.base import Component

DEFAULT_OPAQUE_MIN_LENGTH = 20
DEFAULT_CONTEXT_WIDTH = 50

# Minimum reconstructed length (exclusive) per technique
MIN_LENGTH = {
    ReconstructionTechnique.CONCATENATION: 5,
    ReconstructionTechnique.ARRAY_JOIN: 5,
    ReconstructionTechnique.CHAR_CODE_ARRAY: 3,
    ReconstructionTechnique.BASE64: 3,
}


class SensitiveExtractor(Component):
    """String reconstruction, secret classification and debug-marker harvesting"""

    name = "sensitive"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.opaque_min_length = int(
            self.config.get("opaque_token_min_length", DEFAULT_OPAQUE_MIN_LENGTH)
        )
        self.context_width = int(self.config.get("context_width", DEFAULT_CONTEXT_WIDTH))
        self._opaque_token = re.compile(r'[A-Za-z0-9_-]{%d,}' % self.opaque_min_length)

    # =========================================================================
    # RECONSTRUCTION
    # =========================================================================

    def reconstruct(self, code: str) -> List[ReconstructedString]:
        """Concatenation, array-join, char-code and base64 results, in that order"""
        results: List[ReconstructedString] = []
        if not code:
            return results

        for technique in (
            self._rebuild_concatenation,
            self._rebuild_array_join,
            self._rebuild_char_codes,
            self._rebuild_base64,
        ):
            try:
                results.extend(technique(code))
            except Exception as e:
                self.fail(f"{technique.__name__} failed", e)
        return results

    def is_sensitive(self, value: str) -> bool:
        if not value or len(value) < 5:
            return False
        lowered = value.lower()
        if any(keyword in lowered for keyword in patterns.SENSITIVE_KEYWORDS):
            return True
        return self._opaque_token.fullmatch(value) is not None

    def _keep(self, value: str, technique: ReconstructionTechnique) -> bool:
        return len(value) > MIN_LENGTH[technique] and self.is_sensitive(value)

    def _rebuild_concatenation(self, code: str) -> List[ReconstructedString]:
        results = []
        for match in patterns.CONCATENATION.finditer(code):
            combined = match.group(2) + match.group(4)
            if self._keep(combined, ReconstructionTechnique.CONCATENATION):
                results.append(ReconstructedString(
                    combined, ReconstructionTechnique.CONCATENATION, match.start()
                ))
        return results

    def _rebuild_array_join(self, code: str) -> List[ReconstructedString]:
        results = []
        for match in patterns.ARRAY_JOIN.finditer(code):
            elements = [e.group(1) for e in patterns.ARRAY_ELEMENT.finditer(match.group(1))]
            if not elements:
                continue
            combined = match.group(2).join(elements)
            if self._keep(combined, ReconstructionTechnique.ARRAY_JOIN):
                results.append(ReconstructedString(
                    combined, ReconstructionTechnique.ARRAY_JOIN, match.start()
                ))
        return results

    def _rebuild_char_codes(self, code: str) -> List[ReconstructedString]:
        results = []
        for match in patterns.FROM_CHAR_CODE.finditer(code):
            try:
                combined = "".join(chr(int(part.strip(), 10)) for part in match.group(1).split(","))
            except (ValueError, OverflowError):
                continue
            if self._keep(combined, ReconstructionTechnique.CHAR_CODE_ARRAY):
                results.append(ReconstructedString(
                    combined, ReconstructionTechnique.CHAR_CODE_ARRAY, match.start()
                ))
        return results

    def _rebuild_base64(self, code: str) -> List[ReconstructedString]:
        results = []
        for match in patterns.ATOB.finditer(code):
            payload = match.group(1).strip()
            try:
                decoded = base64.b64decode(payload + "=" * (-len(payload) % 4), validate=True)
            except (binascii.Error, ValueError):
                continue
            # atob yields one character per byte
            value = decoded.decode("latin-1")
            if self._keep(value, ReconstructionTechnique.BASE64):
                results.append(ReconstructedString(
                    value, ReconstructionTechnique.BASE64, match.start()
                ))
        return results

    # =========================================================================
    # CLASSIFICATION
    # =========================================================================

    def extract_sensitive_configs(self, code: str) -> List[SensitiveFinding]:
        findings: List[SensitiveFinding] = []
        if not code:
            return findings

        try:
            for category_key, specs in patterns.SENSITIVE_ASSIGNMENTS.items():
                category = SensitiveCategory(category_key)
                for pat in specs:
                    for match in pat.regex.finditer(code):
                        value = match.group(pat.group) if pat.regex.groups >= pat.group else match.group(0)
                        if patterns.is_placeholder(value):
                            continue
                        findings.append(SensitiveFinding(
                            category=category,
                            value=value,
                            offset=match.start(),
                            surrounding_context=patterns.context_window(
                                code, match.start(), self.context_width
                            ),
                        ))
        except Exception as e:
            self.fail("sensitive config extraction failed", e)
        return findings

    def extract_debug_markers(self, code: str) -> List[DebugFinding]:
        markers: List[DebugFinding] = []
        if not code:
            return markers

        try:
            for pattern in patterns.DEBUG_COMMENTS:
                for match in pattern.finditer(code):
                    markers.append(DebugFinding(
                        marker=match.group(1).upper(),
                        content=match.group(2).strip(),
                        offset=match.start(),
                    ))

            for match in patterns.CONSOLE_CALL.finditer(code):
                markers.append(DebugFinding(
                    marker=f"CONSOLE_{match.group(1).upper()}",
                    content=match.group(2),
                    offset=match.start(),
                ))
        except Exception as e:
            self.fail("debug marker extraction failed", e)
        return markers

    def extract(self, code: str) -> SensitiveReport:
        return SensitiveReport(
            reconstructed=self.reconstruct(code),
            configs=self.extract_sensitive_configs(code),
            debug=self.extract_debug_markers(code),
        )
