"""
Douban Scraper
豆瓣电影条目抓取

页面有两种形态：桌面版带 JSON-LD 结构化数据 (完整字段)，
移动版没有 JSON-LD，只能从合并的元信息行里启发式地拆出字段。
"""
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import quote
import json
import logging
import re

from bs4 import BeautifulSoup

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
from processing import (
    classify_meta_segments,
    derive_titles,
    flatten_awards_html,
    html_to_lines,
    inner_html,
    jsonp_parser,
    next_text_after,
    normalize_lines,
    normalize_people,
    page_parser,
    safe_json_parse,
    sort_release_dates,
    sorted_aliases,
    split_delimited,
    upgrade_douban_poster,
)
from utils.exceptions import UpstreamError

from .antibot import looks_like_challenge
from .base import BaseScraper
from .cookies import has_cookie, merge_cookies, normalize_cookie, warmup_session_cookie
from .fetcher import FETCH_ERRORS, FetchOutcome


logger = logging.getLogger(__name__)


HOME_URL = "https://movie.douban.com/"
SUBJECT_URL = "https://movie.douban.com/subject/{sid}/"
MOBILE_SUBJECT_URL = "https://m.douban.com/movie/subject/{sid}/"
SUGGEST_URL = "https://movie.douban.com/j/subject_suggest?q={query}"
IMDB_RATING_URL = (
    "https://p.media-imdb.com/static-content/documents/v1/title/{imdb_id}"
    "/ratings%3Fjsonp=imdb.rating.run:imdb.api.title.ratings/data.json"
)
IMDB_TITLE_URL = "https://www.imdb.com/title/{imdb_id}/"

# 移动版 UA 往往拿到更简单的页面，也更少触发反爬
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_6 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1"
)
DEFAULT_ACCEPT_LANGUAGE = "zh-CN,zh;q=0.9,en;q=0.8"

SESSION_COOKIE = "bid"

NOT_FOUND_MARKER = "你想访问的页面不存在"
ABNORMAL_REQUEST_MARKER = "检测到有异常请求"
MOBILE_LAYOUT_SELECTORS = (".subject-header-wrap", ".sub-title")
INTRODUCTION_SELECTOR = (
    "#link-report-intra > span.all.hidden, "
    '#link-report-intra > [property="v:summary"], '
    "#link-report > span.all.hidden, "
    '#link-report > [property="v:summary"]'
)

BLOCKED_PAGE_ERROR = (
    "Blocked by Douban anti-bot. Try setting DOUBAN_COOKIE or running behind a residential IP."
)
BLOCKED_FETCH_ERROR = (
    "Blocked by Douban anti-bot (sec.douban.com). "
    "Try setting DOUBAN_COOKIE or running behind a residential IP."
)
NETWORK_ERROR = (
    "Failed to fetch Douban page (network error/timeout). "
    "If you are self-hosting in a restricted network, consider setting DOUBAN_COOKIE."
)
PARSE_ERROR = (
    "Douban page parse failed (JSON-LD not found). "
    "The page may be blocked by anti-bot or the structure has changed."
)
SEARCH_ERROR = (
    "Failed to search Douban (network error/timeout or blocked). Try setting DOUBAN_COOKIE."
)


class PageLayout(str, Enum):
    """条目页面形态"""
    ERROR_PAGE = "error_page"
    STRUCTURED = "structured"
    DEGRADED = "degraded"
    UNRECOGNIZED = "unrecognized"


def subject_link(sid: str) -> str:
    return SUBJECT_URL.format(sid=sid)


def _find_ld_json(soup: BeautifulSoup) -> Optional[Dict[str, Any]]:
    script = soup.select_one('head > script[type="application/ld+json"]') or soup.select_one(
        'script[type="application/ld+json"]'
    )
    if script is None:
        return None
    data = safe_json_parse(script.string or script.get_text())
    return data if isinstance(data, dict) else None


def classify_layout(raw: str, soup: BeautifulSoup) -> PageLayout:
    """错误页标记优先，其次 JSON-LD，其次移动版标记"""
    if NOT_FOUND_MARKER in raw or ABNORMAL_REQUEST_MARKER in raw:
        return PageLayout.ERROR_PAGE
    if _find_ld_json(soup) is not None:
        return PageLayout.STRUCTURED
    if any(soup.select_one(selector) is not None for selector in MOBILE_LAYOUT_SELECTORS):
        return PageLayout.DEGRADED
    return PageLayout.UNRECOGNIZED


def _info_value(soup: BeautifulSoup, label: str) -> str:
    """#info 区块中 '<span class="pl">label:</span> value<br>' 的 value"""
    for node in soup.select("#info span.pl"):
        if label in node.get_text():
            return next_text_after(node)
    return ""


def _texts(soup: BeautifulSoup, selector: str) -> List[str]:
    return [node.get_text().strip() for node in soup.select(selector)]


def _page_title(soup: BeautifulSoup) -> str:
    return soup.title.get_text().strip() if soup.title else ""


def _parse_structured(soup: BeautifulSoup, ld_json: Dict[str, Any]) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}

    imdb_id = _info_value(soup, "IMDb")
    if imdb_id:
        fields["imdb_id"] = imdb_id
        fields["imdb_link"] = IMDB_TITLE_URL.format(imdb_id=imdb_id)

    chinese_title = _page_title(soup).replace("(豆瓣)", "").strip()
    reviewed = soup.select_one('span[property="v:itemreviewed"]')
    foreign_title = reviewed.get_text().replace(chinese_title, "").strip() if reviewed else ""
    aka = sorted_aliases(_info_value(soup, "又名"))
    fields["trans_title"], fields["this_title"] = derive_titles(chinese_title, foreign_title, aka)
    fields.update(chinese_title=chinese_title, foreign_title=foreign_title, aka=aka)

    year_node = soup.select_one("#content > h1 > span.year")
    year_raw = year_node.get_text() if year_node else ""
    fields["year"] = " " + year_raw[1:5] if year_raw else ""

    fields["region"] = split_delimited(_info_value(soup, "制片国家/地区"))
    fields["genre"] = _texts(soup, '#info span[property="v:genre"]')
    fields["language"] = split_delimited(_info_value(soup, "语言"))
    fields["playdate"] = sort_release_dates(_texts(soup, '#info span[property="v:initialReleaseDate"]'))
    fields["episodes"] = _info_value(soup, "集数")
    runtime = soup.select_one('#info span[property="v:runtime"]')
    fields["duration"] = _info_value(soup, "单集片长") or (runtime.get_text().strip() if runtime else "")

    intro_nodes = soup.select(INTRODUCTION_SELECTOR)
    introduction = normalize_lines("".join(node.get_text() for node in intro_nodes))
    fields["introduction"] = introduction or DEFAULT_INTRODUCTION

    aggregate = ld_json.get("aggregateRating") or {}
    if isinstance(aggregate, dict) and aggregate.get("ratingValue"):
        fields["ratings"] = {
            "douban": Rating.of(aggregate["ratingValue"], aggregate.get("ratingCount") or 0)
        }

    if ld_json.get("image"):
        fields["poster"] = upgrade_douban_poster(str(ld_json["image"]))

    fields["director"] = normalize_people(ld_json.get("director"))
    fields["writer"] = normalize_people(ld_json.get("author"))
    fields["cast"] = normalize_people(ld_json.get("actor"))
    fields["tags"] = _texts(soup, 'div.tags-body > a[href^="/tag"]')
    return fields


def _parse_degraded(soup: BeautifulSoup) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}

    sub_title = soup.select_one(".sub-title")
    chinese_title = (sub_title.get_text().strip() if sub_title else "") or _page_title(soup)

    # 例: "The Shawshank Redemption（1994）"
    original_node = soup.select_one(".sub-original-title")
    original = original_node.get_text().strip() if original_node else ""
    year_match = re.search(r"(\d{4})", original)
    fields["year"] = f" {year_match.group(1)}" if year_match else ""
    foreign_title = re.sub(r"[（(]\s*\d{4}.*?[）)]\s*$", "", original).strip() if original else ""

    fields["trans_title"], fields["this_title"] = derive_titles(chinese_title, foreign_title)
    fields.update(chinese_title=chinese_title, foreign_title=foreign_title)

    cover = soup.select_one(".sub-cover img")
    if cover is not None and cover.get("src"):
        fields["poster"] = upgrade_douban_poster(cover["src"])

    rating_value = soup.select_one('meta[itemprop="ratingValue"]')
    review_count = soup.select_one('meta[itemprop="reviewCount"]')
    average = rating_value.get("content", "") if rating_value else ""
    if average:
        votes = review_count.get("content", "") if review_count else ""
        fields["ratings"] = {"douban": Rating.of(average, votes or 0)}

    meta_node = soup.select_one(".sub-meta")
    meta = re.sub(r"\s+", " ", meta_node.get_text()).strip() if meta_node else ""
    fields.update(classify_meta_segments(meta))

    intro = soup.select_one("section.subject-intro .bd p")
    introduction = html_to_lines(inner_html(intro)) if intro else ""
    fields["introduction"] = introduction or DEFAULT_INTRODUCTION
    return fields


def parse_douban_subject_html(raw: str, sid: str) -> StageResult[CanonicalRecord]:
    """
    解析豆瓣条目页

    Returns:
        成功时为规范化条目；错误页 / 无法识别的页面返回对应错误
    """
    soup = page_parser(raw)
    layout = classify_layout(raw or "", soup)

    if layout == PageLayout.ERROR_PAGE:
        if NOT_FOUND_MARKER in raw:
            return StageResult.failure(ErrorKind.NOT_FOUND, NONE_EXIST_ERROR)
        return StageResult.failure(ErrorKind.ANTI_BOT_BLOCKED, BLOCKED_PAGE_ERROR)

    if layout == PageLayout.UNRECOGNIZED:
        return StageResult.failure(ErrorKind.PARSE_FAILURE, PARSE_ERROR)

    if layout == PageLayout.STRUCTURED:
        fields = _parse_structured(soup, _find_ld_json(soup))
    else:
        fields = _parse_degraded(soup)

    record = CanonicalRecord(
        source=SourceType.DOUBAN,
        sid=sid,
        link=subject_link(sid),
        success=True,
        **fields,
    )
    logger.debug(f"[Douban] Parsed subject {sid} via {layout.value} path")
    return StageResult.success(record)


class DoubanScraper(BaseScraper):
    """
    豆瓣抓取器

    特性:
    - 未配置 Cookie 时先 warmup 获取 bid
    - 桌面版失败/被拦截时回退到移动版页面
    - 获奖信息与 IMDb 评分作为尽力而为的补充
    """

    @property
    def source_type(self) -> SourceType:
        return SourceType.DOUBAN

    @property
    def name(self) -> str:
        return "Douban"

    @property
    def douban(self):
        return self.settings.douban

    def base_headers(self) -> Dict[str, str]:
        headers = {
            "User-Agent": self.douban.user_agent or DEFAULT_USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": self.douban.accept_language or DEFAULT_ACCEPT_LANGUAGE,
            "Referer": HOME_URL,
        }
        cookie = normalize_cookie(self.douban.cookie)
        if cookie:
            headers["Cookie"] = cookie
        return headers

    async def prepare_headers(self) -> Dict[str, str]:
        headers = self.base_headers()
        configured = normalize_cookie(self.douban.cookie)
        if has_cookie(configured, SESSION_COOKIE):
            return headers

        bid = await warmup_session_cookie(
            self.fetcher(),
            HOME_URL,
            headers,
            timeout_ms=self.douban.effective_warmup_timeout_ms,
            cookie_name=SESSION_COOKIE,
        )
        cookie = merge_cookies(configured, bid)
        if cookie:
            headers["Cookie"] = cookie
        return headers

    async def fetch_page(self, sid: str, headers: Dict[str, str]) -> StageResult[FetchOutcome]:
        # 先桌面版，再移动版 (不同地区 / 反爬规则下表现不同)
        candidates = [SUBJECT_URL.format(sid=sid), MOBILE_SUBJECT_URL.format(sid=sid)]
        outcome = await self.fetcher().fetch_first_clean(
            candidates,
            headers=headers,
            timeout_ms=self.douban.timeout_ms,
        )
        if not outcome.body:
            return StageResult.failure(ErrorKind.NETWORK_FAILURE, NETWORK_ERROR)
        if outcome.blocked:
            return StageResult.failure(ErrorKind.ANTI_BOT_BLOCKED, BLOCKED_FETCH_ERROR)
        return StageResult.success(outcome)

    def extract(self, sid: str, outcome: FetchOutcome) -> StageResult[CanonicalRecord]:
        return parse_douban_subject_html(outcome.body, sid)

    async def enrich(self, record: CanonicalRecord, headers: Dict[str, str]) -> CanonicalRecord:
        """获奖信息与 IMDb 评分依次查询，任一失败都不影响主结果"""
        updates: Dict[str, Any] = {}

        if self.douban.include_awards:
            try:
                awards = await self._fetch_awards(record, headers)
                if awards:
                    updates["awards"] = awards
            except Exception as e:
                logger.warning(f"[{self.name}] Awards lookup skipped for {record.sid}: {e!r}")

        if self.douban.include_imdb and record.imdb_id:
            try:
                rating = await self._fetch_imdb_rating(record.imdb_id)
                if rating is not None:
                    updates["ratings"] = {**record.ratings, "imdb": rating}
            except Exception as e:
                logger.warning(f"[{self.name}] IMDb rating lookup skipped for {record.imdb_id}: {e!r}")

        return record.model_copy(update=updates) if updates else record

    async def _fetch_awards(self, record: CanonicalRecord, headers: Dict[str, str]) -> str:
        fetcher = self.fetcher()
        await fetcher.throttle(2000)
        response, raw = await fetcher.fetch_text(
            f"{subject_link(record.sid)}awards",
            headers=headers,
            timeout_ms=self.douban.timeout_ms,
        )
        if not response.is_success:
            raise UpstreamError("awards page unavailable", source=self.name, status_code=response.status_code)
        if looks_like_challenge(response, raw):
            raise UpstreamError("awards page blocked", source=self.name)

        article = page_parser(raw).select_one("#content > div > div.article")
        return flatten_awards_html(inner_html(article))

    async def _fetch_imdb_rating(self, imdb_id: str) -> Optional[Rating]:
        fetcher = self.fetcher("imdb")
        await fetcher.throttle(2000)
        response, raw = await fetcher.fetch_text(
            IMDB_RATING_URL.format(imdb_id=imdb_id),
            timeout_ms=self.douban.timeout_ms,
        )
        if not response.is_success:
            raise UpstreamError("IMDb rating unavailable", source="imdb", status_code=response.status_code)

        resource = jsonp_parser(raw).get("resource") or {}
        if not resource.get("rating"):
            return None
        return Rating.of(resource["rating"], resource.get("ratingCount") or 0)

    async def search(self, query: str) -> StageResult[List[SearchHit]]:
        headers = await self.prepare_headers()
        fetcher = self.fetcher()
        try:
            await fetcher.throttle(3000)
            response, raw = await fetcher.fetch_text(
                SUGGEST_URL.format(query=quote(query)),
                headers=headers,
                timeout_ms=self.douban.timeout_ms,
            )
            items = json.loads(raw)
        except (*FETCH_ERRORS, ValueError) as e:
            self._log_error(f"Search '{query}' failed", e)
            return StageResult.failure(ErrorKind.NETWORK_FAILURE, SEARCH_ERROR)

        if not isinstance(items, list):
            return StageResult.failure(ErrorKind.NETWORK_FAILURE, SEARCH_ERROR)

        hits = [
            SearchHit(
                year=str(item.get("year") or ""),
                subtype=str(item.get("type") or ""),
                title=str(item.get("title") or ""),
                subtitle=str(item.get("sub_title") or ""),
                link=subject_link(item.get("id")),
            )
            for item in items
            if isinstance(item, dict) and item.get("id")
        ]
        self._log_search(query, len(hits))
        return StageResult.success(hits)
