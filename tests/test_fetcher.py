"""
Tests for bounded fetching, anti-bot classification and cookie warmup
"""
import httpx
import pytest

from scrapers.antibot import looks_like_challenge
from scrapers.cookies import extract_cookie, has_cookie, merge_cookies, warmup_session_cookie
from scrapers.fetcher import BoundedFetcher
from scrapers.rate_limiter import RateLimiter


CLEAN_PAGE = "<html><body><h1>肖申克的救赎</h1></body></html>"
CHALLENGE_PAGE = "<html><body>请输入验证码</body></html>"


def make_fetcher(handler) -> BoundedFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BoundedFetcher(client, RateLimiter(rate=100, capacity=100), "douban")


class TestAntiBot:
    """反爬页面识别测试"""

    def test_challenge_host_in_final_url(self):
        response = httpx.Response(200, request=httpx.Request("GET", "https://sec.douban.com/b?r=x"))
        assert looks_like_challenge(response, "") is True

    @pytest.mark.parametrize(
        "body",
        ["检测到有异常请求", "请开启JavaScript后访问", "Please complete the captcha", "请输入验证码"],
    )
    def test_block_markers(self, body):
        assert looks_like_challenge(None, body) is True

    def test_clean_page(self):
        response = httpx.Response(200, request=httpx.Request("GET", "https://movie.douban.com/subject/1/"))
        assert looks_like_challenge(response, CLEAN_PAGE) is False


class TestBoundedFetcher:
    """多地址抓取测试"""

    @pytest.mark.asyncio
    async def test_falls_back_to_next_candidate_on_challenge(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.host)
            if request.url.host == "movie.douban.com":
                return httpx.Response(200, text=CHALLENGE_PAGE)
            return httpx.Response(200, text=CLEAN_PAGE)

        fetcher = make_fetcher(handler)
        outcome = await fetcher.fetch_first_clean(
            ["https://movie.douban.com/subject/1/", "https://m.douban.com/movie/subject/1/"]
        )
        await fetcher.client.aclose()

        assert seen == ["movie.douban.com", "m.douban.com"]
        assert outcome.blocked is False
        assert outcome.body == CLEAN_PAGE
        assert outcome.url == "https://m.douban.com/movie/subject/1/"

    @pytest.mark.asyncio
    async def test_first_clean_response_wins(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(str(request.url))
            return httpx.Response(200, text=CLEAN_PAGE)

        fetcher = make_fetcher(handler)
        outcome = await fetcher.fetch_first_clean(["https://a.example/", "https://b.example/"])
        await fetcher.client.aclose()

        assert len(calls) == 1
        assert outcome.url == "https://a.example/"

    @pytest.mark.asyncio
    async def test_all_candidates_blocked(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, text=CHALLENGE_PAGE))
        outcome = await fetcher.fetch_first_clean(["https://a.example/", "https://b.example/"])
        await fetcher.client.aclose()

        assert outcome.blocked is True
        assert outcome.body == CHALLENGE_PAGE

    @pytest.mark.asyncio
    async def test_network_errors_leave_empty_outcome(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = make_fetcher(handler)
        outcome = await fetcher.fetch_first_clean(["https://a.example/", "https://b.example/"])
        await fetcher.client.aclose()

        assert outcome.body == ""
        assert outcome.response is None
        assert outcome.blocked is False

    @pytest.mark.asyncio
    async def test_failed_last_candidate_resets_previous_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "a.example":
                return httpx.Response(200, text=CHALLENGE_PAGE)
            raise httpx.ReadTimeout("timed out", request=request)

        fetcher = make_fetcher(handler)
        outcome = await fetcher.fetch_first_clean(["https://a.example/", "https://b.example/"])
        await fetcher.client.aclose()

        assert outcome.body == ""
        assert outcome.blocked is False

    @pytest.mark.asyncio
    async def test_malformed_candidate_is_skipped(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.host)
            return httpx.Response(200, text=CLEAN_PAGE)

        fetcher = make_fetcher(handler)
        outcome = await fetcher.fetch_first_clean(
            ["https://movie.douban.com/subject/12 34\x00/", "https://m.douban.com/movie/subject/1/"]
        )
        await fetcher.client.aclose()

        assert calls == ["m.douban.com"]
        assert outcome.body == CLEAN_PAGE

    @pytest.mark.asyncio
    async def test_only_malformed_candidates_leave_empty_outcome(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, text=CLEAN_PAGE))
        outcome = await fetcher.fetch_first_clean(["https://movie.douban.com/subject/\x00/"])
        await fetcher.client.aclose()

        assert outcome.body == ""
        assert outcome.response is None
        assert outcome.blocked is False

    @pytest.mark.asyncio
    async def test_fetch_text_sends_query_params(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(200, json={"id": 1})

        fetcher = make_fetcher(handler)
        response, body = await fetcher.fetch_text(
            "https://api.example/3/movie/1", params={"api_key": "k", "language": "zh-CN"}
        )
        await fetcher.client.aclose()

        assert seen == {"api_key": "k", "language": "zh-CN"}
        assert response.status_code == 200
        assert '"id"' in body


class TestCookies:
    """Cookie 工具与 warmup 测试"""

    def test_merge_and_detect(self):
        merged = merge_cookies("ll=108288;", "", "bid=abc")
        assert merged == "ll=108288; bid=abc"
        assert has_cookie(merged, "bid") is True
        assert has_cookie("xbid=1", "bid") is False

    def test_extract_from_multiple_set_cookie_headers(self):
        response = httpx.Response(
            200,
            headers=[
                ("set-cookie", "ll=108288; path=/"),
                ("set-cookie", "bid=Xy12_ab; Expires=Thu, 01 Jan 2099 00:00:00 GMT; domain=.douban.com"),
            ],
        )
        assert extract_cookie(response, "bid") == "bid=Xy12_ab"
        assert extract_cookie(response, "dbcl2") == ""

    @pytest.mark.asyncio
    async def test_warmup_reads_cookie_without_following_redirects(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                302,
                headers={"location": "https://www.douban.com/", "set-cookie": "bid=warm; path=/"},
            )

        fetcher = make_fetcher(handler)
        cookie = await warmup_session_cookie(fetcher, "https://movie.douban.com/", {}, timeout_ms=1000)
        await fetcher.client.aclose()

        assert cookie == "bid=warm"

    @pytest.mark.asyncio
    async def test_warmup_failure_degrades_to_empty(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("boom", request=request)

        fetcher = make_fetcher(handler)
        cookie = await warmup_session_cookie(fetcher, "https://movie.douban.com/", {}, timeout_ms=1000)
        await fetcher.client.aclose()

        assert cookie == ""
