"""
CHUNKHOUND Base Scanner

Abstract base class for scanner modules that fetch live targets and turn
engine reports into findings.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import httpx

from chunkhound.core.types import Confidence, Finding, Severity

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


@dataclass
class ScanContext:
    """Context passed to scanners: the target plus anything pre-crawled"""
    url: str
    base_url: str

    parameters: Dict[str, str] = field(default_factory=dict)

    # Extra data from crawling (JS files, runtime snapshots, etc.)
    extra: Dict[str, Any] = field(default_factory=dict)

    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_url(cls, url: str) -> "ScanContext":
        """Create context from just a URL"""
        parsed = urlparse(url)
        base_url = f"{parsed.scheme}://{parsed.netloc}"

        params = {}
        if parsed.query:
            for k, v in parse_qs(parsed.query).items():
                params[k] = v[0] if v else ""

        return cls(url=url, base_url=base_url, parameters=params)


class BaseScanner(ABC):
    """
    Abstract base class for all CHUNKHOUND scanners.

    Subclasses implement ``scan()``, an async generator of findings, and
    use the rate-limited HTTP helpers inside ``async with scanner:``.
    """

    # Scanner metadata
    name: str = "base"
    description: str = "Base scanner"
    author: str = "CHUNKHOUND"
    version: str = "1.0.0"

    # OWASP alignment
    owasp_category: Optional[str] = None
    cwe_id: Optional[str] = None

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.client: Optional[httpx.AsyncClient] = None
        self.findings: List[Finding] = []
        self.requests_sent = 0
        self.logger = logging.getLogger(f"chunkhound.scanner.{self.name}")

        # Rate limiting
        self.rate_limit = self.config.get("rate_limit", 10)
        self.semaphore = asyncio.Semaphore(self.rate_limit)

        # Timeout
        self.timeout = self.config.get("timeout", 10)

        # Tests inject an httpx transport here
        self.transport: Optional[httpx.AsyncBaseTransport] = self.config.get("transport")

    async def __aenter__(self):
        """Async context manager entry"""
        self.client = httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            verify=False,
            headers={"User-Agent": USER_AGENT},
            transport=self.transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        if self.client:
            await self.client.aclose()
            self.client = None

    # =========================================================================
    # MAIN ENTRY POINT
    # =========================================================================

    @abstractmethod
    async def scan(self, context: ScanContext) -> AsyncIterator[Finding]:
        """
        Main scan entry point. Yields findings as discovered.

        Implement this in subclasses.
        """
        raise NotImplementedError
        yield  # type: ignore  # Make it a generator

    # =========================================================================
    # HTTP HELPERS
    # =========================================================================

    async def request(
        self,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        """Make an HTTP request with rate limiting and retry on 429"""
        if not self.client:
            raise RuntimeError("Scanner not initialized. Use 'async with' context.")

        retry_count = 0
        while True:
            async with self.semaphore:
                response = await self.client.request(method, url, **kwargs)
                self.requests_sent += 1

            # Retry on rate limit with exponential backoff (max 3 retries)
            if response.status_code == 429 and retry_count < 3:
                try:
                    retry_after = float(response.headers.get("retry-after", 2 ** retry_count))
                except (ValueError, TypeError):
                    retry_after = float(2 ** retry_count)

                await asyncio.sleep(min(retry_after, 30))
                retry_count += 1
                continue

            return response

    async def get(self, url: str, **kwargs) -> httpx.Response:
        """GET request"""
        return await self.request("GET", url, **kwargs)

    async def fetch_text(self, url: str) -> Optional[str]:
        """Body of a 200 response, or None on any other status or transport error"""
        try:
            response = await self.get(url)
        except httpx.HTTPError as e:
            self.log(f"Failed to fetch {url}: {e}", "warning")
            return None
        if response.status_code != 200:
            self.log(f"{url} returned {response.status_code}", "debug")
            return None
        return response.text

    # =========================================================================
    # FINDING HELPERS
    # =========================================================================

    def create_finding(
        self,
        title: str,
        severity: Severity,
        confidence: Confidence,
        url: str,
        description: str,
        evidence: Optional[Any] = None,
        remediation: Optional[str] = None,
        references: Optional[List[str]] = None,
    ) -> Finding:
        """Helper to create a Finding with scanner metadata"""
        finding = Finding(
            title=title,
            severity=severity,
            confidence=confidence,
            url=url,
            description=description,
            evidence=evidence,
            remediation=remediation or "",
            references=references or [],
            scanner_module=self.name,
            owasp_category=self.owasp_category,
            cwe_id=self.cwe_id,
            found_at=datetime.now(),
        )
        self.findings.append(finding)
        return finding

    # =========================================================================
    # UTILITIES
    # =========================================================================

    def log(self, message: str, level: str = "info") -> None:
        self.logger.log(getattr(logging, level.upper(), logging.INFO), f"[{self.name}] {message}")
