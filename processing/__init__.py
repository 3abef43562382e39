"""
Processing Module
页面解析与字段推导
"""
from .cleaner import (
    page_parser,
    safe_json_parse,
    jsonp_parser,
    normalize_lines,
    inner_html,
    html_to_lines,
    flatten_awards_html,
    next_text_after,
)
from .fields import (
    DOUBAN_GENRES,
    ensure_list,
    normalize_people,
    split_delimited,
    split_aliases,
    sorted_aliases,
    derive_titles,
    extract_date_key,
    sort_release_dates,
    parse_labeled_lines,
    classify_meta_segments,
    upgrade_douban_poster,
    upgrade_bangumi_cover,
)

__all__ = [
    # Cleaner
    "page_parser",
    "safe_json_parse",
    "jsonp_parser",
    "normalize_lines",
    "inner_html",
    "html_to_lines",
    "flatten_awards_html",
    "next_text_after",
    # Fields
    "DOUBAN_GENRES",
    "ensure_list",
    "normalize_people",
    "split_delimited",
    "split_aliases",
    "sorted_aliases",
    "derive_titles",
    "extract_date_key",
    "sort_release_dates",
    "parse_labeled_lines",
    "classify_meta_segments",
    "upgrade_douban_poster",
    "upgrade_bangumi_cover",
]
