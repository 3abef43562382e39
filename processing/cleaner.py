"""
Markup Cleaner
页面解析与文本清洗
"""
import html
import json
import re
from typing import Any, Optional

from bs4 import BeautifulSoup, Tag


CONTROL_WHITESPACE = re.compile(r"(\r\n|\n|\r|\t)")
BR_PATTERN = re.compile(r"<br\s*/?>", re.IGNORECASE)
TAG_PATTERN = re.compile(r"<[^>]+>")
JSONP_PATTERN = re.compile(r"[^(]+\((.+)\)")


def page_parser(raw: str) -> BeautifulSoup:
    """解析 HTML 页面"""
    return BeautifulSoup(raw or "", "lxml")


def safe_json_parse(raw: Optional[str]) -> Optional[Any]:
    """解析内嵌 JSON (如 JSON-LD)，失败返回 None"""
    if not raw:
        return None
    try:
        return json.loads(CONTROL_WHITESPACE.sub("", str(raw)))
    except ValueError:
        return None


def jsonp_parser(raw: str) -> dict:
    """解析 JSONP 返回，失败返回空字典"""
    match = JSONP_PATTERN.search((raw or "").replace("\n", ""))
    if not match:
        return {}
    try:
        data = json.loads(match.group(1))
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def normalize_lines(text: str) -> str:
    """逐行 trim 并去掉空行"""
    return "\n".join(line.strip() for line in (text or "").split("\n") if line.strip())


def inner_html(node: Optional[Tag]) -> str:
    if node is None:
        return ""
    return node.decode_contents()


def html_to_lines(fragment: str) -> str:
    """<br> 转换为换行，去掉其余标签"""
    text = BR_PATTERN.sub("\n", fragment or "")
    text = TAG_PATTERN.sub("", text)
    return normalize_lines(html.unescape(text))


def flatten_awards_html(fragment: str) -> str:
    """
    把获奖列表区块压平为纯文本

    每个奖项 (div/ul) 起一个新行，同一奖项内的 li / span 以空格分隔。
    """
    if not fragment:
        return ""
    text = re.sub(r"[ \n]", "", fragment)
    text = text.replace("</li><li>", "</li> <li>")
    text = text.replace("</a><span", "</a> <span")
    text = re.sub(r"<(div|ul)[^>]*>", "\n", text)
    text = TAG_PATTERN.sub("", text)
    text = html.unescape(text).replace("\xa0", " ")
    text = re.sub(r" +\n", "\n", text)
    return text.strip()


def next_text_after(label: Optional[Tag]) -> str:
    """取标签节点后紧邻的文本节点 (豆瓣 #info 区块 '语言:' 之后的值)"""
    if label is None:
        return ""
    sibling = label.next_sibling
    if sibling is None or isinstance(sibling, Tag):
        return ""
    return str(sibling).strip()
