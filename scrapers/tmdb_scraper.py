"""
TMDB Scraper
通过 TMDB v3 API 获取条目信息 (需要 API Key)
"""
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse
import json
import logging
import re

import httpx

from models import (
    DEFAULT_INTRODUCTION,
    NONE_EXIST_ERROR,
    CanonicalRecord,
    ErrorKind,
    Rating,
    SearchHit,
    SourceType,
    StageResult,
)
from processing import derive_titles

from .base import BaseScraper
from .fetcher import FETCH_ERRORS, FetchOutcome


logger = logging.getLogger(__name__)


API_BASE = "https://api.themoviedb.org/3"
WEB_BASE = "https://www.themoviedb.org"
IMAGE_BASE = "https://image.tmdb.org/t/p/original"
IMDB_TITLE_URL = "https://www.imdb.com/title/{imdb_id}/"
APPEND_TO_RESPONSE = "credits,external_ids,images,keywords,release_dates,content_ratings,videos"

MEDIA_TYPES = ("movie", "tv")
MAX_CAST = 20
WRITER_JOBS = ("Writer", "Screenplay", "Story")
CHINESE_REGIONS = ("CN", "TW", "HK")
ENGLISH_REGIONS = ("US", "GB")
CJK_PATTERN = re.compile(r"[一-龥]")

API_KEY_ERROR = "TMDB API key is required. Please set TMDB_API_KEY in your environment variables."
NETWORK_ERROR = "Failed to reach TMDB API (network error/timeout)."
INVALID_SID_ERROR = "无效的 TMDB URL 格式"


def parse_tmdb_sid(sid: str) -> Tuple[str, str]:
    """
    'movie-123' / 'tv-456' / '123' / 完整链接 -> (media_type, id)

    链接中的 '1197306-a-working-man' 只取连字符前的数字部分。
    """
    sid = (sid or "").strip()
    if sid.startswith("http"):
        segments = [s for s in urlparse(sid).path.split("/") if s]
        if len(segments) < 2:
            raise ValueError(INVALID_SID_ERROR)
        return segments[0], segments[1].split("-")[0]

    if "-" in sid:
        media_type, _, tmdb_id = sid.partition("-")
        return media_type, tmdb_id.split("-")[0]
    return "movie", sid


def _names(items: Optional[List[Dict[str, Any]]]) -> List[str]:
    return [item["name"] for item in items or [] if isinstance(item, dict) and item.get("name")]


def _pick_alternative_titles(titles: List[Dict[str, Any]], original_title: str) -> List[str]:
    """原名是中文时取英文译名，否则取中文译名"""
    if CJK_PATTERN.search(original_title or ""):
        english = [
            t.get("title", "") for t in titles
            if t.get("iso_3166_1") in ENGLISH_REGIONS or t.get("iso_639_1") == "en"
        ]
        if english:
            return [t for t in english if t]
        return [t.get("title", "") for t in titles if t.get("iso_3166_1") not in CHINESE_REGIONS and t.get("title")]
    return [t.get("title", "") for t in titles if t.get("iso_3166_1") in CHINESE_REGIONS and t.get("title")]


def parse_tmdb_payload(payload: Dict[str, Any], media_type: str, tmdb_id: str) -> StageResult[CanonicalRecord]:
    """把 TMDB 详情 JSON 映射为规范化条目"""
    if not isinstance(payload, dict) or payload.get("success") is False:
        return StageResult.failure(ErrorKind.NOT_FOUND, NONE_EXIST_ERROR)

    title = payload.get("title") or payload.get("name") or ""
    original_title = payload.get("original_title") or payload.get("original_name") or ""
    air_date = payload.get("release_date") or payload.get("first_air_date") or ""

    aka = [t.get("title", "") for t in (payload.get("alternative_titles") or {}).get("titles", []) if t.get("title")]
    foreign = original_title if original_title != title else ""
    trans_title, this_title = derive_titles(title if foreign else original_title, foreign, aka)

    fields: Dict[str, Any] = {}
    if payload.get("poster_path"):
        fields["poster"] = f"{IMAGE_BASE}{payload['poster_path']}"

    fields["ratings"] = {
        "tmdb": Rating.of(payload.get("vote_average") or 0, payload.get("vote_count") or 0)
    }

    if media_type == "tv":
        fields["episodes"] = str(payload.get("number_of_episodes") or "")
        fields["seasons"] = str(payload.get("number_of_seasons") or "")

    episode_run_time = payload.get("episode_run_time") or []
    if payload.get("runtime"):
        fields["duration"] = f"{payload['runtime']} 分钟"
    elif episode_run_time:
        fields["duration"] = f"{episode_run_time[0]} 分钟"

    credits = payload.get("credits")
    if isinstance(credits, dict):
        crew = credits.get("crew") or []
        if media_type == "movie":
            fields["director"] = _names([p for p in crew if p.get("job") == "Director"])
        else:
            fields["director"] = _names(payload.get("created_by"))
        fields["writer"] = _names([p for p in crew if p.get("job") in WRITER_JOBS])
        fields["cast"] = _names((credits.get("cast") or [])[:MAX_CAST])

    imdb_id = (payload.get("external_ids") or {}).get("imdb_id")
    if imdb_id:
        fields["imdb_id"] = imdb_id
        fields["imdb_link"] = IMDB_TITLE_URL.format(imdb_id=imdb_id)

    keywords = payload.get("keywords") or {}
    fields["tags"] = _names(keywords.get("keywords") or keywords.get("results"))

    record = CanonicalRecord(
        source=SourceType.TMDB,
        sid=f"{media_type}-{tmdb_id}",
        link=f"{WEB_BASE}/{media_type}/{tmdb_id}",
        chinese_title=title,
        foreign_title=original_title,
        aka=aka,
        trans_title=trans_title,
        this_title=this_title,
        year=air_date[:4],
        genre=_names(payload.get("genres")),
        region=_names(payload.get("production_countries")),
        language=_names(payload.get("spoken_languages")),
        playdate=[air_date] if air_date else [],
        introduction=payload.get("overview") or DEFAULT_INTRODUCTION,
        success=True,
        **fields,
    )
    return StageResult.success(record)


class TmdbScraper(BaseScraper):
    """TMDB 抓取器"""

    @property
    def source_type(self) -> SourceType:
        return SourceType.TMDB

    @property
    def name(self) -> str:
        return "TMDB"

    @property
    def api_key(self) -> str:
        return self.settings.tmdb.api_key or ""

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _get_json(self, path: str, params: Dict[str, Any], max_wait_ms: int = 3000) -> Tuple[httpx.Response, Any]:
        fetcher = self.fetcher()
        await fetcher.throttle(max_wait_ms)
        return await fetcher.fetch_text(
            f"{API_BASE}{path}",
            params={"api_key": self.api_key, **params},
            timeout_ms=self.settings.tmdb.timeout_ms,
        )

    async def fetch_page(self, sid: str, headers: Dict[str, str]) -> StageResult[FetchOutcome]:
        if not self.is_configured():
            return StageResult.failure(ErrorKind.UPSTREAM_DEPENDENCY, API_KEY_ERROR)
        try:
            media_type, tmdb_id = parse_tmdb_sid(sid)
        except ValueError as e:
            return StageResult.failure(ErrorKind.PARSE_FAILURE, str(e))

        url = f"{API_BASE}/{media_type}/{tmdb_id}"
        try:
            response, body = await self._get_json(
                f"/{media_type}/{tmdb_id}",
                {"language": self.settings.tmdb.language, "append_to_response": APPEND_TO_RESPONSE},
            )
        except FETCH_ERRORS as e:
            self._log_error(f"Fetch {url} failed", e)
            return StageResult.failure(ErrorKind.NETWORK_FAILURE, NETWORK_ERROR)

        if response.status_code == 404:
            return StageResult.failure(ErrorKind.NOT_FOUND, NONE_EXIST_ERROR)
        if not response.is_success:
            return StageResult.failure(
                ErrorKind.UPSTREAM_DEPENDENCY,
                f"TMDB API 请求失败: {response.status_code} {response.reason_phrase}".strip(),
            )
        return StageResult.success(FetchOutcome(body=body, response=response, blocked=False, url=url))

    def extract(self, sid: str, outcome: FetchOutcome) -> StageResult[CanonicalRecord]:
        media_type, tmdb_id = parse_tmdb_sid(sid)
        try:
            payload = json.loads(outcome.body)
        except ValueError:
            return StageResult.failure(ErrorKind.PARSE_FAILURE, "TMDB API returned malformed JSON.")
        return parse_tmdb_payload(payload, media_type, tmdb_id)

    async def enrich(self, record: CanonicalRecord, headers: Dict[str, str]) -> CanonicalRecord:
        """剧集或没有别名时，额外查询译名列表"""
        media_type, tmdb_id = parse_tmdb_sid(record.sid)
        if media_type != "tv" and record.aka:
            return record
        try:
            aka = await self._fetch_alternative_titles(media_type, tmdb_id, record.foreign_title)
        except Exception as e:
            logger.warning(f"[{self.name}] Alternative titles lookup skipped for {record.sid}: {e!r}")
            return record
        if not aka:
            return record

        title, original = record.chinese_title, record.foreign_title
        foreign = original if original != title else ""
        trans_title, this_title = derive_titles(title if foreign else original, foreign, aka)
        return record.model_copy(update={"aka": aka, "trans_title": trans_title, "this_title": this_title})

    async def _fetch_alternative_titles(self, media_type: str, tmdb_id: str, original_title: str) -> List[str]:
        response, raw = await self._get_json(f"/{media_type}/{tmdb_id}/alternative_titles", {}, max_wait_ms=2000)
        if not response.is_success:
            return []
        payload = json.loads(raw)
        titles = payload.get("titles") or payload.get("results") or []
        return _pick_alternative_titles(titles, original_title)

    async def search(self, query: str) -> StageResult[List[SearchHit]]:
        if not self.is_configured():
            return StageResult.failure(ErrorKind.UPSTREAM_DEPENDENCY, API_KEY_ERROR)
        try:
            response, raw = await self._get_json(
                "/search/multi", {"query": query, "language": self.settings.tmdb.language}
            )
        except FETCH_ERRORS as e:
            self._log_error(f"Search '{query}' failed", e)
            return StageResult.failure(ErrorKind.NETWORK_FAILURE, NETWORK_ERROR)

        if not response.is_success:
            return StageResult.failure(
                ErrorKind.UPSTREAM_DEPENDENCY,
                f"TMDB API 请求失败: {response.status_code} {response.reason_phrase}".strip(),
            )
        try:
            payload = json.loads(raw)
        except ValueError:
            return StageResult.failure(ErrorKind.PARSE_FAILURE, "TMDB API returned malformed JSON.")

        hits = []
        for item in payload.get("results") or []:
            media_type = item.get("media_type")
            if media_type not in MEDIA_TYPES:
                continue
            air_date = item.get("release_date") or item.get("first_air_date") or ""
            hits.append(
                SearchHit(
                    year=air_date[:4],
                    subtype="电影" if media_type == "movie" else "剧集",
                    title=item.get("title") or item.get("name") or "",
                    subtitle=item.get("original_title") or item.get("original_name") or "",
                    link=f"{WEB_BASE}/{media_type}/{item.get('id')}",
                )
            )
        self._log_search(query, len(hits))
        return StageResult.success(hits)
