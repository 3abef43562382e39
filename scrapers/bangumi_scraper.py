"""
Bangumi Scraper
Bangumi 番组计划条目抓取

信息框是 '标签: 值' 形式的行，先整理成查找表再取字段；
别名字段用 '/' 分隔，但引号内的 '/' 属于别名本身。
"""
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
    derive_titles,
    page_parser,
    parse_labeled_lines,
    split_aliases,
    upgrade_bangumi_cover,
)

from .base import BaseScraper
from .fetcher import FETCH_ERRORS, FetchOutcome


logger = logging.getLogger(__name__)


SUBJECT_URL = "https://bgm.tv/subject/{sid}"
SEARCH_URL = "https://api.bgm.tv/search/subject/{query}?responseGroup=large"

ERROR_MARKER = "呜咕，出错了"
NETWORK_ERROR = "Failed to fetch Bangumi page (network error/timeout)."
SEARCH_ERROR = "Failed to search Bangumi (network error/timeout)."

# 这些信息框条目不算制作人员
INFO_LABELS = re.compile(r"^(中文名|话数|放送开始|放送星期|别名|官方网站|播放电视台|其他电视台|Copyright)")
DIRECTOR_ROLES = ("监督", "导演")
WRITER_ROLES = ("脚本", "系列构成")
MAX_STAFF_PER_ROLE = 2
MAX_OTHER_STAFF = 15

SUBJECT_TYPES = {1: "漫画/小说", 2: "动画/二次元番", 3: "音乐", 4: "游戏", 6: "三次元番"}


def subject_link(sid: str) -> str:
    return SUBJECT_URL.format(sid=sid)


def _staff_names(lines: List[str], roles: tuple) -> List[str]:
    picked = [line for line in lines if any(role in line for role in roles)][:MAX_STAFF_PER_ROLE]
    names = []
    for line in picked:
        _, _, value = line.partition(": ")
        if value.strip():
            names.append(value.strip())
    return names


def parse_bangumi_subject_html(raw: str, sid: str) -> StageResult[CanonicalRecord]:
    """解析 Bangumi 条目页 (不含角色页)"""
    if ERROR_MARKER in (raw or ""):
        return StageResult.failure(ErrorKind.NOT_FOUND, NONE_EXIST_ERROR)

    soup = page_parser(raw)
    info_box = soup.select_one("div#bangumiInfo")
    if info_box is None:
        return StageResult.failure(
            ErrorKind.PARSE_FAILURE,
            "Bangumi page parse failed. The page structure has changed.",
        )

    cover = info_box.select_one("a.thickbox.cover")
    poster = upgrade_bangumi_cover(cover.get("href", "")) if cover is not None else ""

    lines = [li.get_text() for li in info_box.select("ul#infobox li")]
    staff = [line for line in lines if not INFO_LABELS.match(line)]
    info = [line for line in lines if line not in staff]
    info_map = parse_labeled_lines(info)

    local_name = info_map.get("中文名", "")
    aliases = [alias for alias in split_aliases(info_map.get("别名", "")) if alias != local_name]
    name_node = soup.select_one("h1.nameSingle > a")
    name = name_node.get_text().strip() if name_node else ""
    trans_title, this_title = derive_titles(local_name, name, aliases)

    air_date = info_map.get("放送开始", "")
    directors = _staff_names(staff, DIRECTOR_ROLES)
    writers = _staff_names(staff, WRITER_ROLES)
    other_staff = [
        line for line in staff
        if not any(role in line for role in DIRECTOR_ROLES + WRITER_ROLES)
    ][:MAX_OTHER_STAFF]

    fields: Dict[str, Any] = {}
    votes_node = soup.select_one('span[property="v:votes"]')
    average_node = soup.select_one('div.global_score > span[property="v:average"]')
    votes = votes_node.get_text().strip() if votes_node else ""
    average = average_node.get_text().strip() if average_node else ""
    if average and votes:
        fields["ratings"] = {"bangumi": Rating.of(average, votes)}

    story = soup.select_one("div#subject_summary")
    introduction = story.get_text().strip() if story else ""

    record = CanonicalRecord(
        source=SourceType.BANGUMI,
        sid=sid,
        link=subject_link(sid),
        chinese_title=local_name,
        foreign_title=name,
        aka=aliases,
        trans_title=trans_title,
        this_title=this_title,
        year=air_date[:4],
        playdate=[air_date] if air_date else [],
        episodes=info_map.get("话数", ""),
        genre=[
            span.get_text().strip()
            for span in soup.select("#subject_detail > div.subject_tag_section > div > a > span")
        ],
        director=directors,
        writer=writers,
        staff=other_staff,
        poster=poster,
        introduction=introduction or DEFAULT_INTRODUCTION,
        info=info,
        info_map=info_map,
        success=True,
        **fields,
    )
    return StageResult.success(record)


def parse_bangumi_characters_html(raw: str) -> List[str]:
    """角色页 -> ['角色: 声优1，声优2', ...]"""
    soup: BeautifulSoup = page_parser(raw)
    cast = []
    for block in soup.select("div#columnInSubjectA > div.light_odd > div.clearit"):
        heading = block.select_one("h2")
        if heading is None:
            continue
        tip = heading.select_one("span.tip")
        anchor = heading.select_one("a")
        character_source = tip if tip is not None else anchor
        character = (character_source.get_text() if character_source else "").replace("/", "", 1).strip()

        voices = []
        for paragraph in block.select("div.clearit > p"):
            small = paragraph.select_one("small")
            voice = small if small is not None else paragraph.select_one("a")
            if voice is not None and voice.get_text().strip():
                voices.append(voice.get_text().strip())
        cast.append(f"{character}: {'，'.join(voices)}")
    return cast


class BangumiScraper(BaseScraper):
    """
    Bangumi 抓取器

    角色/声优列表来自独立的角色页，作为尽力而为的补充查询。
    """

    @property
    def source_type(self) -> SourceType:
        return SourceType.BANGUMI

    @property
    def name(self) -> str:
        return "Bangumi"

    async def fetch_page(self, sid: str, headers: Dict[str, str]) -> StageResult[FetchOutcome]:
        url = subject_link(sid)
        fetcher = self.fetcher()
        try:
            await fetcher.throttle(3000)
            response, body = await fetcher.fetch_text(
                url, headers=headers, timeout_ms=self.settings.bangumi.timeout_ms
            )
        except FETCH_ERRORS as e:
            self._log_error(f"Fetch {url} failed", e)
            return StageResult.failure(ErrorKind.NETWORK_FAILURE, NETWORK_ERROR)
        if not body:
            return StageResult.failure(ErrorKind.NETWORK_FAILURE, NETWORK_ERROR)
        return StageResult.success(FetchOutcome(body=body, response=response, blocked=False, url=url))

    def extract(self, sid: str, outcome: FetchOutcome) -> StageResult[CanonicalRecord]:
        return parse_bangumi_subject_html(outcome.body, sid)

    async def enrich(self, record: CanonicalRecord, headers: Dict[str, str]) -> CanonicalRecord:
        if not self.settings.bangumi.include_characters:
            return record
        try:
            cast = await self._fetch_characters(record.sid, headers)
        except Exception as e:
            logger.warning(f"[{self.name}] Characters lookup skipped for {record.sid}: {e!r}")
            return record
        return record.model_copy(update={"cast": cast}) if cast else record

    async def _fetch_characters(self, sid: str, headers: Dict[str, str]) -> List[str]:
        fetcher = self.fetcher()
        await fetcher.throttle(2000)
        response, raw = await fetcher.fetch_text(
            f"{subject_link(sid)}/characters",
            headers=headers,
            timeout_ms=self.settings.bangumi.timeout_ms,
        )
        if not response.is_success:
            return []
        return parse_bangumi_characters_html(raw)

    async def search(self, query: str) -> StageResult[List[SearchHit]]:
        fetcher = self.fetcher()
        try:
            await fetcher.throttle(3000)
            _, raw = await fetcher.fetch_text(
                SEARCH_URL.format(query=quote(query)),
                timeout_ms=self.settings.bangumi.timeout_ms,
            )
            payload = json.loads(raw)
        except (*FETCH_ERRORS, ValueError) as e:
            self._log_error(f"Search '{query}' failed", e)
            return StageResult.failure(ErrorKind.NETWORK_FAILURE, SEARCH_ERROR)

        items = payload.get("list") if isinstance(payload, dict) else None
        hits = []
        for item in items if isinstance(items, list) else []:
            air_date: Optional[str] = item.get("air_date") or ""
            hits.append(
                SearchHit(
                    year=air_date[:4],
                    subtype=SUBJECT_TYPES.get(item.get("type"), ""),
                    title=item.get("name_cn") or item.get("name") or "",
                    subtitle=item.get("name") or "",
                    link=item.get("url") or subject_link(item.get("id")),
                )
            )
        self._log_search(query, len(hits))
        return StageResult.success(hits)
