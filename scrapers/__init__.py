"""
Scrapers Module
"""
from typing import Dict, Type

from models import SourceType

from .base import BaseScraper
from .rate_limiter import RateLimiter, TokenBucket
from .fetcher import BoundedFetcher, FetchOutcome
from .antibot import looks_like_challenge
from .cookies import warmup_session_cookie, extract_cookie, merge_cookies
from .douban_scraper import DoubanScraper, parse_douban_subject_html
from .bangumi_scraper import BangumiScraper, parse_bangumi_subject_html, parse_bangumi_characters_html
from .tmdb_scraper import TmdbScraper, parse_tmdb_payload, parse_tmdb_sid


SCRAPERS: Dict[SourceType, Type[BaseScraper]] = {
    SourceType.DOUBAN: DoubanScraper,
    SourceType.BANGUMI: BangumiScraper,
    SourceType.TMDB: TmdbScraper,
}


__all__ = [
    # Base
    "BaseScraper",
    "SCRAPERS",
    # Transport
    "RateLimiter",
    "TokenBucket",
    "BoundedFetcher",
    "FetchOutcome",
    "looks_like_challenge",
    "warmup_session_cookie",
    "extract_cookie",
    "merge_cookies",
    # Douban
    "DoubanScraper",
    "parse_douban_subject_html",
    # Bangumi
    "BangumiScraper",
    "parse_bangumi_subject_html",
    "parse_bangumi_characters_html",
    # TMDB
    "TmdbScraper",
    "parse_tmdb_payload",
    "parse_tmdb_sid",
]
