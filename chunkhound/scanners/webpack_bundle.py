"""
CHUNKHOUND Webpack Bundle Scanner

Technique:
1. Fetch the target page, collect <script src> bundles (plus any JS files
   the crawler already found in context.extra['js_files'])
2. Download every bundle and the source map it references, falling back
   to the conventional <bundle>.js.map location
3. Run the Webpack engine over each asset: detection, chunk references,
   source map decoding, split-string reconstruction, secret classification
4. Turn the reports into findings

This is PASSIVE RECON: it only reads what a browser would download anyway.

OWASP: A05:2021 Security Misconfiguration (secrets in client JS)
CWE: CWE-540 (Inclusion of Sensitive Information in Source Code)
"""

import asyncio
import json
from typing import Any, AsyncIterator, Dict, List, Optional, Set, Tuple

from chunkhound.core.engine import AssetReport, BundleReport, EngineConfig, WebpackEngine
from chunkhound.core.types import Confidence, Finding, SensitiveCategory, Severity
from chunkhound.utils import patterns
from chunkhound.utils.urls import is_js_file, resolve_url, source_map_candidate
from chunkhound.webpack.view import RuntimeView

from .base import BaseScanner, ScanContext

CWE_540 = "https://cwe.mitre.org/data/definitions/540.html"
CWE_798 = "https://cwe.mitre.org/data/definitions/798.html"

HIGH_SEVERITY_CATEGORIES = (SensitiveCategory.CLOUD_KEY, SensitiveCategory.API_KEY)

# Findings per category and scanned page
MAX_PER_CATEGORY = 5


def _mask(value: str, keep: int = 20) -> str:
    return value if len(value) <= keep else f"{value[:keep]}..."


class WebpackBundleScanner(BaseScanner):
    """
    Fetches a target's Webpack bundles and reports what the bundling hides:
    exposed source maps, sensitive source paths, hardcoded secrets and
    secrets split up to dodge naive grepping.
    """

    name = "webpack_bundle"
    description = "Webpack bundle introspection: source maps, chunks and hidden secrets"
    version = "1.0.0"

    owasp_category = "A05:2021"
    cwe_id = "CWE-540"

    def __init__(self, config: Optional[Dict[str, Any]] = None, engine: Optional[WebpackEngine] = None):
        super().__init__(config)
        self.engine = engine or WebpackEngine(self.config.get("engine_config") or EngineConfig())
        self.probe_map_fallback = self.config.get(
            "probe_map_fallback", self.engine.config.probe_map_fallback
        )

    async def scan(self, context: ScanContext) -> AsyncIterator[Finding]:
        self.log(f"Webpack bundle analysis on {context.url}")

        html = await self.fetch_text(context.url) or ""
        bundle_urls = self._discover_bundles(context.url, html)
        for js_url in context.extra.get("js_files", []) or []:
            if js_url not in bundle_urls:
                bundle_urls.append(js_url)

        snapshot = context.extra.get("runtime_snapshot")
        if snapshot:
            view = RuntimeView.from_snapshot(snapshot)
            for finding in self._runtime_findings(context.url, self.engine.analyze_runtime(view)):
                yield finding

        if not bundle_urls:
            self.log("No JS bundles discovered")
            return

        self.log(f"Found {len(bundle_urls)} JS bundles")
        assets = [a for a in await asyncio.gather(*(self._fetch_asset(u) for u in bundle_urls)) if a]
        reports = await self.engine.analyze_assets(assets)

        for finding in self._generate_findings(context.url, reports):
            yield finding

    # =========================================================================
    # DISCOVERY & FETCHING
    # =========================================================================

    @staticmethod
    def _discover_bundles(page_url: str, html: str) -> List[str]:
        urls: List[str] = []
        for match in patterns.HTML_SCRIPT_SRC.finditer(html or ""):
            src = resolve_url(match.group(1), page_url)
            if src and is_js_file(src) and src not in urls:
                urls.append(src)
        return urls

    async def _fetch_asset(self, js_url: str) -> Optional[Tuple[str, str, Optional[str]]]:
        code = await self.fetch_text(js_url)
        if code is None:
            return None

        map_text = None
        reference = self.engine.sourcemaps.extract_reference_url(code)
        if reference and not self.engine.sourcemaps.is_inline(reference):
            map_url = self.engine.sourcemaps.resolve_reference_url(reference, js_url)
            if self.engine.sourcemaps.get_cached(map_url) is None:
                map_text = await self.fetch_text(map_url)
        elif not reference and self.probe_map_fallback:
            candidate = source_map_candidate(js_url)
            body = await self.fetch_text(candidate)
            # Servers often answer unknown paths with the SPA's HTML shell
            if body and body.lstrip().startswith("{"):
                self.log(f"Source map found: {candidate}")
                map_text = body

        return js_url, code, map_text

    # =========================================================================
    # FINDINGS
    # =========================================================================

    def _runtime_findings(self, page_url: str, report: BundleReport) -> List[Finding]:
        findings = []
        if report.detection.detected:
            findings.append(self.create_finding(
                title=f"Webpack {report.detection.version.value} Runtime Detected",
                severity=Severity.INFO,
                confidence=Confidence.CERTAIN,
                url=page_url,
                description=(
                    f"The page runs a Webpack runtime ({report.detection.build_mode.value} build) "
                    f"with {len(report.modules)} modules in its module table."
                ),
                evidence=json.dumps(report.detection.to_dict(), indent=2),
            ))
        for config in report.config_modules[:MAX_PER_CATEGORY]:
            if config.priority == "high":
                findings.append(self.create_finding(
                    title=f"Configuration Module {config.id} in Webpack Runtime",
                    severity=Severity.LOW,
                    confidence=Confidence.TENTATIVE,
                    url=page_url,
                    description=f"Module {config.id} scores {config.score} on configuration indicators.",
                    evidence=json.dumps(config.to_dict(), indent=2),
                ))
        findings.extend(self._sensitive_findings(page_url, [("runtime", report.sensitive)]))
        return findings

    def _generate_findings(self, page_url: str, reports: List[AssetReport]) -> List[Finding]:
        findings: List[Finding] = []

        detected = [r for r in reports if r.detection and r.detection.detected]
        if detected:
            versions = sorted({r.detection.version.value for r in detected})
            findings.append(self.create_finding(
                title=f"Webpack Bundles Detected ({len(detected)} assets)",
                severity=Severity.INFO,
                confidence=Confidence.CERTAIN,
                url=page_url,
                description=(
                    f"{len(detected)} of {len(reports)} JavaScript assets carry a Webpack runtime "
                    f"(version {', '.join(versions)})."
                ),
                evidence=json.dumps([r.url for r in detected], indent=2),
            ))

        for report in reports:
            if report.error:
                self.log(f"Analysis of {report.url} failed: {report.error}", "warning")
            if report.source_map is None:
                continue

            embedded = sum(1 for f in report.source_files if f.has_content)
            findings.append(self.create_finding(
                title="JavaScript Source Map Publicly Accessible",
                severity=Severity.MEDIUM,
                confidence=Confidence.CERTAIN,
                url=report.url,
                description=(
                    f"The source map for {report.url} lists {report.source_map.source_count} "
                    f"original files, {embedded} with full embedded source:\n\n"
                    + "\n".join(f"- {f.path}" for f in report.source_files[:20])
                ),
                evidence=json.dumps({
                    "map": "inline" if report.map_is_inline else report.source_map_url,
                    "sources": report.source_map.source_count,
                    "embedded": embedded,
                }, indent=2),
                remediation=(
                    "Remove source map files from production deployment, "
                    "or restrict access to .map files via server configuration."
                ),
                references=[CWE_540],
            ))

            if report.sensitive_files:
                findings.append(self.create_finding(
                    title=f"Sensitive Source Paths in Source Map ({len(report.sensitive_files)} files)",
                    severity=Severity.LOW,
                    confidence=Confidence.FIRM,
                    url=report.url,
                    description=(
                        "Original source files with configuration or credential-like names:\n\n"
                        + "\n".join(f"- `{f.path}`" for f in report.sensitive_files[:20])
                    ),
                    evidence=json.dumps([f.path for f in report.sensitive_files[:20]], indent=2),
                    references=[CWE_540],
                ))

        for report in reports:
            sources = [(report.url, report.sensitive)]
            sources.extend((f"{report.url} :: {path}", found) for path, found in report.source_sensitive.items())
            findings.extend(self._sensitive_findings(report.url, sources))

        return findings

    def _sensitive_findings(self, url: str, sources) -> List[Finding]:
        findings: List[Finding] = []
        seen_values: Set[str] = set()
        per_category: Dict[str, int] = {}

        for location, report in sources:
            for config in report.configs:
                if config.value in seen_values:
                    continue
                seen_values.add(config.value)
                per_category[config.category.value] = per_category.get(config.category.value, 0) + 1
                if per_category[config.category.value] > MAX_PER_CATEGORY:
                    continue

                severity = Severity.HIGH if config.category in HIGH_SEVERITY_CATEGORIES else Severity.MEDIUM
                label = config.category.value.replace("_", " ")
                findings.append(self.create_finding(
                    title=f"Hardcoded {label.title()} in JS Bundle",
                    severity=severity,
                    confidence=Confidence.FIRM,
                    url=url,
                    description=f"A {label} was found in {location}: `{_mask(config.value)}`",
                    evidence=f"Value: {_mask(config.value, 40)}\nContext: {config.surrounding_context}",
                    remediation=(
                        "Never hardcode secrets in client-side JavaScript. "
                        "Rotate this credential immediately if valid."
                    ),
                    references=[CWE_798],
                ))

            for rebuilt in report.reconstructed:
                if rebuilt.value in seen_values:
                    continue
                seen_values.add(rebuilt.value)
                per_category["reconstructed"] = per_category.get("reconstructed", 0) + 1
                if per_category["reconstructed"] > MAX_PER_CATEGORY:
                    continue

                findings.append(self.create_finding(
                    title=f"Obfuscated Secret Reconstructed ({rebuilt.technique.value})",
                    severity=Severity.MEDIUM,
                    confidence=Confidence.TENTATIVE,
                    url=url,
                    description=(
                        f"A string split with {rebuilt.technique.value.replace('_', ' ')} in {location} "
                        f"reassembles to a credential-like value: `{_mask(rebuilt.value)}`"
                    ),
                    evidence=f"Offset: {rebuilt.offset}\nValue: {_mask(rebuilt.value, 40)}",
                    remediation="Splitting a secret does not hide it. Move it server-side.",
                    references=[CWE_798],
                ))
        return findings
