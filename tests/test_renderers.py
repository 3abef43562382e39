"""
Tests for report rendering and export
"""
import json

from models import CanonicalRecord, Rating, ReportStyle, SourceType
from outputs import export_result, render_record, resolve_style
from scrapers.douban_scraper import parse_douban_subject_html

from conftest import read_fixture


def sample_record(**overrides) -> CanonicalRecord:
    fields = dict(
        source=SourceType.DOUBAN,
        sid="1292052",
        link="https://movie.douban.com/subject/1292052/",
        trans_title=["肖申克的救赎", "月黑高飞(港)"],
        this_title=["The Shawshank Redemption"],
        year=" 1994",
        region=["美国"],
        genre=["剧情", "犯罪"],
        playdate=["1994-09-10(多伦多电影节)", "1994-10-14(美国)"],
        director=["弗兰克·德拉邦特 Frank Darabont"],
        cast=["蒂姆·罗宾斯 Tim Robbins", "摩根·弗里曼 Morgan Freeman"],
        ratings={"douban": Rating.of("9.7", "3021541")},
        introduction="第一段\n第二段",
        success=True,
    )
    fields.update(overrides)
    return CanonicalRecord(**fields)


def bangumi_record(**overrides) -> CanonicalRecord:
    fields = dict(
        source=SourceType.BANGUMI,
        sid="328609",
        link="https://bgm.tv/subject/328609",
        this_title=["ぼっち・ざ・ろっく！"],
        episodes="12",
        cast=[f"角色{i}: 声优{i}" for i in range(12)],
        ratings={"bangumi": Rating.of("8.9", "1000")},
        introduction="后藤一里是一个极度怕生的高中女生。",
        success=True,
    )
    fields.update(overrides)
    return CanonicalRecord(**fields)


class TestStyle:
    """风格解析测试"""

    def test_known_styles(self):
        assert resolve_style("plain-report") == ReportStyle.PLAIN
        assert resolve_style("structured-report") == ReportStyle.STRUCTURED
        assert resolve_style("markdown") == ReportStyle.STRUCTURED
        assert resolve_style(ReportStyle.STRUCTURED) == ReportStyle.STRUCTURED

    def test_unknown_style_falls_back_to_plain(self):
        assert resolve_style("html") == ReportStyle.PLAIN
        assert resolve_style(None) == ReportStyle.PLAIN
        record = sample_record()
        assert render_record(record, "html") == render_record(record, ReportStyle.PLAIN)


class TestPlainReport:
    """◎ 字段行排版测试"""

    def test_field_lines(self):
        report = render_record(sample_record())

        assert "◎译　　名　肖申克的救赎/月黑高飞(港)" in report
        assert "◎片　　名　The Shawshank Redemption" in report
        assert "◎年　　代　1994" in report
        assert "◎上映日期　1994-09-10(多伦多电影节) / 1994-10-14(美国)" in report
        assert "◎豆瓣评分　9.7/10 from 3021541 users" in report
        assert "◎豆瓣链接　https://movie.douban.com/subject/1292052/" in report

    def test_cast_continuation_indent(self):
        report = render_record(sample_record())
        assert "◎主　　演　蒂姆·罗宾斯 Tim Robbins\n　　　　  　摩根·弗里曼 Morgan Freeman" in report

    def test_introduction_paragraphs(self):
        report = render_record(sample_record())
        assert report.endswith("◎简　　介\n\n　　第一段\n　　第二段")

    def test_absent_fields_are_omitted(self):
        report = render_record(sample_record(language=[], poster="", writer=[], awards=""))

        assert "[img]" not in report
        assert "◎语　　言" not in report
        assert "◎编　　剧" not in report
        assert "◎获奖情况" not in report
        assert "IMDb" not in report

    def test_poster_and_imdb(self):
        record = sample_record(
            poster="https://img1.doubanio.com/p.jpg",
            imdb_link="https://www.imdb.com/title/tt0111161/",
            ratings={"douban": Rating.of("9.7", "10"), "imdb": Rating.of("9.3", "2900000")},
        )
        report = render_record(record)

        assert report.startswith("[img]https://img1.doubanio.com/p.jpg[/img]")
        assert "◎IMDb评分  9.3/10 from 2900000 users" in report
        # IMDb 行排在豆瓣之前
        assert report.index("◎IMDb评分") < report.index("◎豆瓣评分")

    def test_deterministic(self):
        record = parse_douban_subject_html(read_fixture("douban.html"), "1292052").value
        assert render_record(record) == render_record(record)

    def test_bangumi_layout(self):
        report = render_record(bangumi_record())

        assert "◎话　　数　12" in report
        assert "◎集　　数" not in report
        assert "◎Bangumi链接　https://bgm.tv/subject/328609" in report
        assert "角色8: 声优8" in report
        assert "角色9" not in report
        assert report.endswith("　　后藤一里是一个极度怕生的高中女生。\n\n(来源于 https://bgm.tv/subject/328609 )")

    def test_other_sources_keep_episode_label_and_full_cast(self):
        cast = [f"演员{i}" for i in range(12)]
        report = render_record(sample_record(episodes="10", cast=cast))

        assert "◎集　　数　10" in report
        assert "演员11" in report
        assert "来源于" not in report


class TestStructuredReport:
    """Markdown 排版测试"""

    def test_sections(self):
        report = render_record(sample_record(), ReportStyle.STRUCTURED)

        assert report.startswith("## 基本信息")
        assert "- **译名**: 肖申克的救赎/月黑高飞(港)" in report
        assert "- **豆瓣**: 9.7/10 from 3021541 users ([链接](https://movie.douban.com/subject/1292052/))" in report
        assert "## 制作人员" in report
        assert "## 获奖情况" not in report

    def test_no_ratings_section_without_ratings(self):
        report = render_record(sample_record(ratings={}), "structured-report")
        assert "## 评分" not in report

    def test_empty_record_renders_no_headers(self):
        record = CanonicalRecord(source=SourceType.DOUBAN, sid="1")
        assert render_record(record, ReportStyle.STRUCTURED) == ""

    def test_long_form_continuation_indent(self):
        report = render_record(sample_record(awards="奖项一\n奖项二"), ReportStyle.STRUCTURED)

        assert "## 简介\n\n　　第一段\n　　第二段" in report
        assert report.endswith("## 获奖情况\n\n　　奖项一\n　　奖项二")

    def test_bangumi_episode_label(self):
        report = render_record(bangumi_record(), ReportStyle.STRUCTURED)

        assert "- **话数**: 12" in report
        assert "声优8" in report
        assert "声优9" not in report


class TestExport:
    """导出测试"""

    def test_export_success(self, tmp_path):
        body = {"site": "douban", "sid": "1292052", "success": True, "format": "◎片　　名　X"}
        written = export_result(tmp_path, body)

        assert written["report"].read_text(encoding="utf-8") == "◎片　　名　X\n"
        assert json.loads(written["json"].read_text(encoding="utf-8"))["sid"] == "1292052"

    def test_export_failure_writes_json_only(self, tmp_path):
        written = export_result(tmp_path / "out", {"site": "douban", "sid": "1", "success": False, "error": "x"})

        assert "report" not in written
        assert written["json"].name == "douban-1.json"
