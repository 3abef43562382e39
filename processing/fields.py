"""
Field Helpers
规范化条目的字段推导：标题、别名、日期、人物、元信息分类
"""
from datetime import date
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple


# 降级路径 (移动版页面) 的类别词表。
# 这是一个维护中的封闭词表：不在表内的类别会被归入产地，属于已知的启发式局限。
DOUBAN_GENRES = frozenset({
    "剧情", "喜剧", "动作", "爱情", "科幻", "动画", "悬疑", "惊悚", "恐怖", "犯罪",
    "同性", "音乐", "歌舞", "传记", "历史", "战争", "西部", "奇幻", "冒险", "灾难",
    "武侠", "情色", "纪录片", "短片", "家庭", "儿童", "古装", "戏曲", "黑色电影", "运动",
})

RELEASE_MARKER = "上映"
RUNTIME_MARKER = "片长"

DATE_KEY_PATTERN = re.compile(r"(\d{4}-\d{2}-\d{2})")
LABELED_LINE_PATTERN = re.compile(r"^([一-龥]+|[A-Za-z]+)[:：]\s*(.+)$")


def ensure_list(value: Any) -> List[Any]:
    if not value:
        return []
    return list(value) if isinstance(value, (list, tuple)) else [value]


def normalize_people(value: Any) -> List[str]:
    """人物可能是字符串或带 name 字段的对象，统一为去空白的字符串"""
    names = []
    for person in ensure_list(value):
        if isinstance(person, str):
            name = person.strip()
        elif isinstance(person, dict) and person.get("name"):
            name = str(person["name"]).strip()
        else:
            name = ""
        if name:
            names.append(name)
    return names


def split_delimited(raw: str, sep: str = " / ") -> List[str]:
    return [part.strip() for part in (raw or "").split(sep) if part.strip()]


def split_aliases(raw: str, delimiter: str = "/") -> List[str]:
    """
    按分隔符切分别名，双引号内的分隔符不切分

    >>> split_aliases('BTR / Bocchi the "Guitar/Hero" Rock Story')
    ['BTR', 'Bocchi the "Guitar/Hero" Rock Story']
    """
    aliases: List[str] = []
    current: List[str] = []
    in_quote = False
    for char in raw or "":
        if char == '"':
            in_quote = not in_quote
            current.append(char)
        elif char == delimiter and not in_quote:
            aliases.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    aliases.append("".join(current).strip())

    deduped: List[str] = []
    for alias in aliases:
        if alias and alias not in deduped:
            deduped.append(alias)
    return deduped


def sorted_aliases(raw: str, sep: str = " / ") -> List[str]:
    """分隔符字段中的别名：去重并排序，保证输出稳定"""
    return sorted(set(split_delimited(raw, sep)))


def _title_list(parts: Iterable[str]) -> List[str]:
    # 沿用"总是切分"的约定：没有任何标题时为 [""]，而不是空列表
    titles = []
    for part in parts:
        titles.extend(piece.strip() for piece in str(part or "").split("/"))
    titles = [title for title in titles if title]
    return titles or [""]


def derive_titles(
    local_name: str,
    foreign_name: str = "",
    aliases: Optional[List[str]] = None,
) -> Tuple[List[str], List[str]]:
    """
    组合本地名 / 外文名 / 别名为 (译名列表, 片名列表)

    有外文名时: 译名 = 本地名 + 别名, 片名 = 外文名;
    否则: 译名 = 别名, 片名 = 本地名。
    """
    local_name = (local_name or "").strip()
    foreign_name = (foreign_name or "").strip()
    aliases = [alias for alias in (aliases or []) if alias]

    if foreign_name:
        trans_title = [t for t in _title_list([local_name]) if t] + aliases
        return trans_title or [""], _title_list([foreign_name])
    return aliases or [""], _title_list([local_name])


def extract_date_key(value: str) -> Optional[date]:
    """'2022-06-10(美国/中国大陆)' -> date(2022, 6, 10)，无法解析返回 None"""
    match = DATE_KEY_PATTERN.search(str(value or ""))
    if not match:
        return None
    try:
        return date.fromisoformat(match.group(1))
    except ValueError:
        return None


def sort_release_dates(values: Any) -> List[str]:
    """
    上映日期排序

    可解析日期的条目按时间升序排在前面；日期相同或无法解析的条目保持原有相对顺序。
    """
    items = [str(v).strip() for v in ensure_list(values) if str(v).strip()]
    keyed = []
    for index, item in enumerate(items):
        key = extract_date_key(item)
        keyed.append(((0, key, index) if key else (1, date.min, index), item))
    keyed.sort(key=lambda pair: pair[0])
    return [item for _, item in keyed]


def parse_labeled_lines(lines: Iterable[str]) -> Dict[str, str]:
    """'中文名: 孤独摇滚！' 形式的行 -> {'中文名': '孤独摇滚！'}，后出现的同名标签覆盖前者"""
    table: Dict[str, str] = {}
    for line in lines:
        match = LABELED_LINE_PATTERN.match(str(line or "").strip())
        if match:
            table[match.group(1).strip()] = match.group(2).strip()
    return table


def classify_meta_segments(meta: str) -> Dict[str, Any]:
    """
    移动版合并元信息行的分类

    '美国 / 剧情 / 犯罪 / 1994-09-10(多伦多电影节)上映 / 片长142分钟'
    含"上映"为上映日期，以"片长"开头为片长，词表内为类别，其余为产地。
    """
    regions: List[str] = []
    genres: List[str] = []
    playdates: List[str] = []
    duration = ""

    for segment in split_delimited(meta):
        if RELEASE_MARKER in segment:
            playdates.append(segment.replace(RELEASE_MARKER, "").strip())
        elif segment.startswith(RUNTIME_MARKER):
            duration = segment[len(RUNTIME_MARKER):].strip()
        elif segment in DOUBAN_GENRES:
            genres.append(segment)
        else:
            regions.append(segment)

    return {
        "region": regions,
        "genre": genres,
        "playdate": sort_release_dates(playdates),
        "duration": duration,
    }


def upgrade_douban_poster(url: str) -> str:
    """把豆瓣海报地址改写为最大尺寸"""
    if not url:
        return ""
    upgraded = re.sub(r"s(_ratio_poster|pic)", r"l\1", str(url))
    return upgraded.replace("img3", "img1", 1)


def upgrade_bangumi_cover(url: str) -> str:
    if not url:
        return ""
    if url.startswith("//"):
        url = "https:" + url
    return re.sub(r"/cover/[lcmsg]/", "/cover/l/", url)
