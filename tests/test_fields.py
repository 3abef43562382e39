"""
Tests for field derivation helpers
"""
from datetime import date

from processing import (
    classify_meta_segments,
    derive_titles,
    extract_date_key,
    flatten_awards_html,
    html_to_lines,
    jsonp_parser,
    parse_labeled_lines,
    sort_release_dates,
    sorted_aliases,
    split_aliases,
    upgrade_bangumi_cover,
    upgrade_douban_poster,
)


class TestAliases:
    """别名切分测试"""

    def test_quoted_delimiter_is_kept(self):
        aliases = split_aliases('BTR / Bocchi the "Guitar/Hero" Rock Story')
        assert aliases == ["BTR", 'Bocchi the "Guitar/Hero" Rock Story']

    def test_three_aliases_with_quoted_delimiter(self):
        aliases = split_aliases('BTR / Bocchi the Rock! / Bocchi the "Guitar/Hero" Rock Story')
        assert aliases == ["BTR", "Bocchi the Rock!", 'Bocchi the "Guitar/Hero" Rock Story']

    def test_trim_and_dedupe_in_order(self):
        assert split_aliases(" B / A / B /  / C ") == ["B", "A", "C"]

    def test_empty_input(self):
        assert split_aliases("") == []

    def test_delimited_aliases_are_sorted(self):
        assert sorted_aliases("月黑高飞(港) / 地狱诺言 / 月黑高飞(港)") == ["地狱诺言", "月黑高飞(港)"]


class TestTitles:
    """标题推导测试"""

    def test_with_foreign_name(self):
        trans, this = derive_titles("肖申克的救赎", "The Shawshank Redemption", ["刺激1995(台)"])
        assert trans == ["肖申克的救赎", "刺激1995(台)"]
        assert this == ["The Shawshank Redemption"]

    def test_without_foreign_name(self):
        trans, this = derive_titles("霸王别姬", "", ["再见，我的妾"])
        assert trans == ["再见，我的妾"]
        assert this == ["霸王别姬"]

    def test_empty_singleton_is_preserved(self):
        trans, this = derive_titles("霸王别姬")
        assert trans == [""]
        assert this == ["霸王别姬"]


class TestReleaseDates:
    """上映日期排序测试"""

    def test_unparseable_entries_keep_relative_order(self):
        values = ["2022-06-10(A)", "no-date-1", "2021-01-01(B)", "no-date-2"]
        assert sort_release_dates(values) == [
            "2021-01-01(B)",
            "2022-06-10(A)",
            "no-date-1",
            "no-date-2",
        ]

    def test_equal_dates_are_stable(self):
        values = ["2020-01-01(中国大陆)", "2020-01-01(美国)", "2019-12-31(加拿大)"]
        assert sort_release_dates(values) == [
            "2019-12-31(加拿大)",
            "2020-01-01(中国大陆)",
            "2020-01-01(美国)",
        ]

    def test_extract_date_key(self):
        assert extract_date_key("1994-09-10(多伦多电影节)") == date(1994, 9, 10)
        assert extract_date_key("1994-13-40") is None
        assert extract_date_key("1994") is None


class TestMetaSegments:
    """移动版元信息分类测试"""

    def test_classification(self):
        fields = classify_meta_segments("美国 / 剧情 / 犯罪 / 1994-09-10(多伦多电影节)上映 / 片长142分钟")
        assert fields["region"] == ["美国"]
        assert fields["genre"] == ["剧情", "犯罪"]
        assert fields["playdate"] == ["1994-09-10(多伦多电影节)"]
        assert fields["duration"] == "142分钟"

    def test_unknown_genre_falls_into_region(self):
        fields = classify_meta_segments("日本 / 赛博朋克")
        assert fields["region"] == ["日本", "赛博朋克"]
        assert fields["genre"] == []


class TestMarkupHelpers:
    """页面片段处理测试"""

    def test_labeled_lines(self):
        table = parse_labeled_lines(["中文名: 孤独摇滚！", "话数：12", "not a label line", "中文名: 覆盖"])
        assert table == {"中文名": "覆盖", "话数": "12"}

    def test_html_to_lines(self):
        assert html_to_lines("第一行<br>  第二行 <br/><b>第三行</b>&amp;") == "第一行\n第二行\n第三行&"

    def test_flatten_awards(self):
        fragment = (
            '<div class="awards"><div class="hd"><h2><a href="#">第67届奥斯卡金像奖</a>'
            '<span class="year">(1995)</span></h2></div>'
            "<ul><li>最佳影片(提名)</li><li>妮基·马文</li></ul></div>"
        )
        text = flatten_awards_html(fragment)
        assert "第67届奥斯卡金像奖 (1995)" in text
        assert "最佳影片(提名) 妮基·马文" in text

    def test_jsonp_parser(self):
        raw = 'imdb.rating.run({"resource": {"rating": 9.3, "ratingCount": 2900000}})'
        assert jsonp_parser(raw)["resource"]["rating"] == 9.3
        assert jsonp_parser("not jsonp") == {}

    def test_poster_upgrades(self):
        assert (
            upgrade_douban_poster("https://img3.doubanio.com/view/photo/s_ratio_poster/public/p1.jpg")
            == "https://img1.doubanio.com/view/photo/l_ratio_poster/public/p1.jpg"
        )
        assert (
            upgrade_bangumi_cover("//lain.bgm.tv/pic/cover/c/e4/40/1.jpg")
            == "https://lain.bgm.tv/pic/cover/l/e4/40/1.jpg"
        )
