"""
Report Renderers
将规范化条目渲染为发布用的文本报告

两种排版：
- plain-report: 以 ◎ 开头的字段行 (BBCode 风格，海报用 [img] 包裹)
- structured-report: Markdown 分节
字段顺序固定，缺失字段不输出任何内容；同一条目的渲染结果总是相同。
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple, Union

from models import CanonicalRecord, ReportStyle, SourceType


# 续行缩进 (全角空格)
CAST_INDENT = "\n" + "　" * 4 + "  　"
PARAGRAPH_INDENT = "\n" + "　" * 2

# (评分来源, 报告中的显示名)；顺序即输出顺序
RATING_LABELS: Tuple[Tuple[str, str], ...] = (
    ("imdb", "IMDb"),
    ("douban", "豆瓣"),
    ("tmdb", "TMDB"),
    ("bangumi", "Bangumi"),
)

# Bangumi 条目只列前 9 位声优
BANGUMI_CAST_LIMIT = 9

STYLE_ALIASES: Dict[str, ReportStyle] = {
    "bbcode": ReportStyle.PLAIN,
    "markdown": ReportStyle.STRUCTURED,
}


def resolve_style(style: Optional[Union[str, ReportStyle]]) -> ReportStyle:
    """风格名 -> ReportStyle；未知风格回退到 plain-report"""
    if isinstance(style, ReportStyle):
        return style
    name = str(style or "").strip().lower()
    if name in STYLE_ALIASES:
        return STYLE_ALIASES[name]
    try:
        return ReportStyle(name)
    except ValueError:
        return ReportStyle.PLAIN


def _joined_title(titles: List[str]) -> str:
    return "/".join(titles).strip()


def _is_bangumi(record: CanonicalRecord) -> bool:
    return record.source == SourceType.BANGUMI


def _cast(record: CanonicalRecord) -> List[str]:
    return record.cast[:BANGUMI_CAST_LIMIT] if _is_bangumi(record) else record.cast


def _indented(text: str) -> str:
    return "　　" + text.replace("\n", PARAGRAPH_INDENT)


def _rating_rows(record: CanonicalRecord) -> List[Tuple[str, str, str]]:
    """[(显示名, 评分文本, 链接)]"""
    rows = []
    for name, label in RATING_LABELS:
        rating = record.rating(name)
        if name == "imdb":
            link = record.imdb_link
        elif name == record.source.value:
            link = record.link
        else:
            link = ""
        if rating is not None or link:
            rows.append((label, rating.text if rating is not None else "", link))
    return rows


class PlainReportRenderer:
    """◎ 字段行排版"""

    def render(self, record: CanonicalRecord) -> str:
        lines: List[str] = []
        if record.poster:
            lines.append(f"[img]{record.poster}[/img]\n")

        def field(label: str, value: str):
            if value:
                lines.append(f"◎{label}{value}")

        field("译　　名　", _joined_title(record.trans_title))
        field("片　　名　", _joined_title(record.this_title))
        field("年　　代　", record.year.strip())
        field("产　　地　", " / ".join(record.region))
        field("类　　别　", " / ".join(g for g in record.genre if g))
        field("语　　言　", " / ".join(record.language))
        field("上映日期　", " / ".join(d for d in record.playdate if d))

        for label, rating_text, link in _rating_rows(record):
            # IMDb 行使用半角空格对齐
            gap = "  " if label == "IMDb" else "　"
            field(f"{label}评分{gap}", rating_text)
            field(f"{label}链接{gap}", link)

        field("季　　数　", record.seasons)
        field("话　　数　" if _is_bangumi(record) else "集　　数　", record.episodes)
        field("片　　长　", record.duration)
        field("导　　演　", " / ".join(record.director))
        field("编　　剧　", " / ".join(record.writer))
        field("主　　演　", CAST_INDENT.join(_cast(record)).strip())

        if record.staff:
            lines.append("\n◎制作人员\n\n　　" + "\n　　".join(record.staff))
        if record.tags:
            lines.append("\n◎标　　签　" + " | ".join(record.tags))
        if record.introduction:
            lines.append("\n◎简　　介\n\n" + _indented(record.introduction))
        if record.awards:
            lines.append("\n◎获奖情况\n\n" + _indented(record.awards))
        if _is_bangumi(record) and record.link:
            lines.append(f"\n(来源于 {record.link} )")

        return "\n".join(lines).strip()


class StructuredReportRenderer:
    """Markdown 分节排版"""

    def render(self, record: CanonicalRecord) -> str:
        lines: List[str] = []
        if record.poster:
            lines.extend([f"![海报]({record.poster})", ""])

        basics = [
            ("译名", _joined_title(record.trans_title)),
            ("片名", _joined_title(record.this_title)),
            ("年代", record.year.strip()),
            ("产地", " / ".join(record.region)),
            ("类别", " / ".join(g for g in record.genre if g)),
            ("语言", " / ".join(record.language)),
            ("上映日期", " / ".join(d for d in record.playdate if d)),
            ("季数", record.seasons),
            ("话数" if _is_bangumi(record) else "集数", record.episodes),
            ("片长", record.duration),
        ]
        basics = [(label, value) for label, value in basics if value]
        if basics:
            lines.extend(["## 基本信息", ""])
            lines.extend(f"- **{label}**: {value}" for label, value in basics)

        rated = [(label, text, link) for label, text, link in _rating_rows(record) if text]
        if rated:
            lines.extend(["", "## 评分", ""])
            for label, text, link in rated:
                suffix = f" ([链接]({link}))" if link else ""
                lines.append(f"- **{label}**: {text}{suffix}")

        people = [
            ("导演", record.director),
            ("编剧", record.writer),
            ("主演", _cast(record)),
            ("其他", record.staff),
        ]
        if any(names for _, names in people):
            lines.extend(["", "## 制作人员", ""])
            lines.extend(f"- **{label}**: {' / '.join(names)}" for label, names in people if names)

        if record.tags:
            lines.extend(["", "## 标签", "", " | ".join(record.tags)])
        if record.introduction:
            lines.extend(["", "## 简介", "", _indented(record.introduction)])
        if record.awards:
            lines.extend(["", "## 获奖情况", "", _indented(record.awards)])

        return "\n".join(lines).strip()


RENDERERS = {
    ReportStyle.PLAIN: PlainReportRenderer(),
    ReportStyle.STRUCTURED: StructuredReportRenderer(),
}


def render_record(record: CanonicalRecord, style: Optional[Union[str, ReportStyle]] = ReportStyle.PLAIN) -> str:
    """
    渲染条目报告

    Args:
        record: 规范化条目
        style: plain-report / structured-report (也接受 bbcode / markdown)

    Returns:
        报告文本
    """
    return RENDERERS[resolve_style(style)].render(record)
