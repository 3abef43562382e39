"""Generation service: warmup -> fetch -> extract -> enrich -> format for one catalog entry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union
import logging
import re
import time
import traceback

import httpx

from config import Settings, get_settings
from models import CanonicalRecord, ErrorKind, ReportStyle, SourceType, StageResult
from outputs import render_record
from scrapers import SCRAPERS, BaseScraper, RateLimiter


logger = logging.getLogger(__name__)

VERSION = "2.0.0"

# 站点 URL 匹配规则
SUPPORT_LIST: Dict[SourceType, re.Pattern] = {
    SourceType.DOUBAN: re.compile(
        r"(?:https?://)?(?:(?:movie|www|m)\.)?douban\.com/(?:(?:movie/)?subject|movie)/(\d+)/?"
    ),
    SourceType.BANGUMI: re.compile(r"(?:https?://)?(?:bgm\.tv|bangumi\.tv|chii\.in)/subject/(\d+)/?"),
    SourceType.TMDB: re.compile(r"(?:https?://)?(?:www\.)?themoviedb\.org/(movie|tv)/(\d+)/?"),
}


def match_resource_url(url: str) -> Optional[Tuple[SourceType, str]]:
    """Map a supported catalog URL to (source, sid); None when unsupported."""
    for source, pattern in SUPPORT_LIST.items():
        match = pattern.search(url or "")
        if match:
            if source == SourceType.TMDB:
                return source, f"{match.group(1)}-{match.group(2)}"
            return source, match.group(1)
    return None


def resolve_source(site: Union[str, SourceType]) -> Optional[SourceType]:
    try:
        return SourceType(str(getattr(site, "value", site)).strip().lower())
    except ValueError:
        return None


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class GenerationResult:
    """Outcome of one pipeline run, before it is shaped into a response body."""

    source: SourceType
    sid: str
    record: Optional[CanonicalRecord] = None
    report: str = ""
    kind: Optional[ErrorKind] = None
    error: Optional[str] = None
    debug: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind is None

    @property
    def status_code(self) -> int:
        return 500 if self.kind == ErrorKind.INTERNAL else 200

    def to_body(self) -> Dict[str, Any]:
        if self.record is not None:
            body = self.record.to_payload()
        else:
            body = {"site": self.source.value, "sid": self.sid}
        if self.error:
            body.pop("success", None)
            body["error"] = self.error
        if self.report:
            body["format"] = self.report
        if self.debug:
            body["debug"] = self.debug
        return body


class GenerationService:
    """Runs the per-source stage pipeline; never raises to its caller."""

    def __init__(
        self,
        limiter: Optional[RateLimiter] = None,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.limiter = limiter or RateLimiter(
            rate=self.settings.limiter.rate,
            capacity=self.settings.limiter.capacity,
            poll_interval=self.settings.limiter.poll_interval_ms / 1000,
        )
        self._client = client
        self._owns_client = client is None
        self._scrapers: Dict[SourceType, BaseScraper] = {}

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient()
            self._owns_client = True
        return self._client

    def scraper(self, source: SourceType) -> BaseScraper:
        scraper = self._scrapers.get(source)
        if scraper is None:
            scraper = SCRAPERS[source](self.limiter, client=self.client, settings=self.settings)
            self._scrapers[source] = scraper
        return scraper

    @property
    def author(self) -> str:
        return self.settings.service.author

    def make_response(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Wrap a body with the common envelope; body keys win over defaults."""
        return {
            "success": not body.get("error"),
            "error": body.get("error") or None,
            "format": body.get("format") or "",
            "copyright": f"Powered by @{self.author}",
            "version": VERSION,
            "generate_at": _now_ms(),
            **body,
        }

    def internal_error(self, exc: BaseException, debug: bool = False) -> Tuple[str, Optional[str]]:
        message = f"Internal Error, Please contact @{self.author}. Exception: {exc}"
        return message, traceback.format_exc() if debug else None

    async def run(
        self,
        source: SourceType,
        sid: str,
        style: Union[str, ReportStyle] = ReportStyle.PLAIN,
        debug: bool = False,
    ) -> GenerationResult:
        """Run every stage in order; the first failing stage short-circuits."""
        result = GenerationResult(source=source, sid=sid)
        try:
            scraper = self.scraper(source)
            headers = await scraper.prepare_headers()

            fetched = await scraper.fetch_page(sid, headers)
            if not fetched.ok:
                return self._fail(result, fetched)

            extracted = scraper.extract(sid, fetched.value)
            if not extracted.ok:
                return self._fail(result, extracted)

            record = await scraper.enrich(extracted.value, headers)
            result.record = record
            result.report = render_record(record, style)
            logger.info(f"[{scraper.name}] Generated {record.sid}")
        except Exception as e:
            logger.exception(f"Pipeline for {source.value}/{sid} failed")
            result.record = None
            result.report = ""
            result.kind = ErrorKind.INTERNAL
            result.error, result.debug = self.internal_error(e, debug)
        return result

    def _fail(self, result: GenerationResult, stage: StageResult) -> GenerationResult:
        logger.warning(f"[{result.source.value}] {result.sid}: {stage.kind.value} - {stage.message}")
        result.kind = stage.kind
        result.error = stage.message
        return result

    async def generate(
        self,
        source: Union[str, SourceType],
        sid: str,
        style: Union[str, ReportStyle] = ReportStyle.PLAIN,
        debug: bool = False,
    ) -> Dict[str, Any]:
        """Generate the response body for one entry."""
        resolved = resolve_source(source)
        if resolved is None:
            return self.make_response({"error": f"Unknown value of key 'site': {source}"})
        result = await self.run(resolved, sid, style=style, debug=debug)
        return self.make_response(result.to_body())

    async def generate_from_url(
        self,
        url: str,
        style: Union[str, ReportStyle] = ReportStyle.PLAIN,
        debug: bool = False,
    ) -> Dict[str, Any]:
        matched = match_resource_url(url)
        if matched is None:
            return self.make_response({"error": "Unsupported URL or input unsupported resource url"})
        source, sid = matched
        return await self.generate(source, sid, style=style, debug=debug)

    async def run_search(
        self, source: Union[str, SourceType], query: str, debug: bool = False
    ) -> Tuple[Dict[str, Any], int]:
        """Search one source; returns (body, HTTP status), 500 only for unexpected exceptions."""
        resolved = resolve_source(source)
        if resolved is None:
            return self.make_response({"error": f"Unknown value of key 'source': {source}"}), 200
        try:
            found = await self.scraper(resolved).search(query)
        except Exception as e:
            logger.exception(f"Search {resolved.value} '{query}' failed")
            error, trace = self.internal_error(e, debug)
            body = {"error": error}
            if trace:
                body["debug"] = trace
            return self.make_response(body), 500

        if not found.ok:
            return self.make_response({"error": found.message}), 200
        return self.make_response({"data": [hit.model_dump() for hit in found.value]}), 200

    async def search(self, source: Union[str, SourceType], query: str, debug: bool = False) -> Dict[str, Any]:
        body, _ = await self.run_search(source, query, debug=debug)
        return body

    async def aclose(self) -> None:
        for scraper in self._scrapers.values():
            await scraper.close()
        self._scrapers.clear()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GenerationService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
