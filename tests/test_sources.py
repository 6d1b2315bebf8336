"""
Tests for the source clients.

Uses httpx.MockTransport so no request leaves the process.
"""

from __future__ import annotations

import httpx
import pytest

from devscope.domain.entities import (
    GitHubSearchStrategy,
    ProblemCategory,
    RedditSearchStrategy,
    SourceName,
    StackOverflowSearchStrategy,
)
from devscope.infrastructure.sources import GitHubClient, RedditClient, StackOverflowClient
from devscope.infrastructure.sources.markup import extract_code_blocks, extract_indented_blocks, strip_html
from devscope.shared.exceptions import (
    AuthenticationError,
    NetworkError,
    RateLimitError,
    ServiceUnavailableError,
    SourceError,
)


def _json(data, status: int = 200, headers: dict[str, str] | None = None) -> httpx.Response:
    return httpx.Response(status, json=data, headers=headers)


class Recorder:
    """Mock transport handler that records requests and dispatches by path."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for prefix, responder in self.routes.items():
            if request.url.path.startswith(prefix):
                if callable(responder):
                    return responder(request)
                # fresh copy per request, a Response can only be sent once
                return httpx.Response(
                    responder.status_code, headers=responder.headers, content=responder.content
                )
        return httpx.Response(404, json={"message": "not found"})

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def client_options(fast_limiter, no_retry_delay):
    return {"limiter": fast_limiter, **no_retry_delay}


# ============================================================
# Markup Helpers
# ============================================================


class TestMarkup:
    def test_strip_html(self):
        text = (
            "<p>Hello &amp; <code>x</code></p>\n"
            '<pre><code class="lang-python">print(1)</code></pre>'
        )
        assert strip_html(text) == "Hello & `x`\n```python\nprint(1)\n```"

    def test_strip_html_empty(self):
        assert strip_html("") == ""

    def test_fenced_blocks(self):
        text = "text ```py\nprint(1)\n``` and ```\nplain\n```"
        snippets = extract_code_blocks(text)
        assert [(s.language, s.code) for s in snippets] == [("py", "print(1)"), ("plaintext", "plain")]

    def test_fenced_min_length(self):
        assert extract_code_blocks("```\nab\n```", min_length=10) == []

    def test_raw_pre_block(self):
        [snippet] = extract_code_blocks("<pre><code>let a = 1;</code></pre>")
        assert snippet.language == "plaintext"
        assert snippet.code == "let a = 1;"

    def test_indented_blocks(self):
        text = "Intro\n\n    const value = compute();\n    return value;\n\nafter"
        [snippet] = extract_indented_blocks(text)
        assert snippet.code == "const value = compute();\nreturn value;"

    def test_indented_blocks_skip_urls(self):
        text = "See\n\n    http://example.com/a/very/long/path/here\n"
        assert extract_indented_blocks(text) == []


# ============================================================
# Base Client Behaviour (via StackOverflowClient)
# ============================================================


class TestBaseClient:
    async def test_zero_results_makes_no_request(self, client_options):
        handler = Recorder({})
        client = StackOverflowClient(transport=httpx.MockTransport(handler), **client_options)
        assert await client.search("anything", 0) == []
        assert handler.requests == []
        await client.close()

    async def test_rate_limit_retried(self, client_options):
        calls = 0

        def search(request):
            nonlocal calls
            calls += 1
            if calls < 3:
                return _json({"error_id": 502}, status=429)
            return _json({"items": []})

        handler = Recorder({"/2.3/search/advanced": search})
        async with StackOverflowClient(transport=httpx.MockTransport(handler), **client_options) as client:
            assert await client.search("q", 5) == []
        assert calls == 3

    async def test_rate_limit_exhausted(self, client_options):
        handler = Recorder({"/2.3/search": _json({}, status=429, headers={"Retry-After": "12"})})
        client = StackOverflowClient(transport=httpx.MockTransport(handler), **client_options)

        with pytest.raises(RateLimitError) as exc_info:
            await client.search("q", 5)

        assert len(handler.requests) == 3
        assert exc_info.value.context.retry_after == 12.0
        assert exc_info.value.source == "stackoverflow"

    async def test_server_error_not_retried(self, client_options):
        handler = Recorder({"/2.3/search": _json({}, status=503)})
        client = StackOverflowClient(transport=httpx.MockTransport(handler), **client_options)

        with pytest.raises(ServiceUnavailableError) as exc_info:
            await client.search("q", 5)
        assert exc_info.value.status_code == 503
        assert len(handler.requests) == 1

    async def test_connection_error(self, client_options):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = StackOverflowClient(transport=httpx.MockTransport(refuse), **client_options)
        with pytest.raises(NetworkError):
            await client.search("q", 5)

    async def test_invalid_json(self, client_options):
        handler = Recorder({"/2.3/search": httpx.Response(200, text="<html>oops</html>")})
        client = StackOverflowClient(transport=httpx.MockTransport(handler), **client_options)

        with pytest.raises(SourceError) as exc_info:
            await client.search("q", 5)
        assert exc_info.value.retryable is False

    async def test_client_error(self, client_options):
        handler = Recorder({"/2.3/search": _json({}, status=400)})
        client = StackOverflowClient(transport=httpx.MockTransport(handler), **client_options)

        with pytest.raises(SourceError) as exc_info:
            await client.search("q", 5)
        assert not isinstance(exc_info.value, AuthenticationError)
        assert exc_info.value.status_code == 400

    async def test_search_after_close_reopens(self, client_options):
        handler = Recorder({"/2.3/search/advanced": _json({"items": [QUESTION_WITHOUT_ANSWER]})})
        client = StackOverflowClient(transport=httpx.MockTransport(handler), **client_options)

        assert len(await client.search("alias", 5)) == 1
        await client.close()
        await client.close()
        assert len(await client.search("alias in jest", 5)) == 1
        assert len(handler.requests) == 2
        await client.close()


# ============================================================
# Stack Overflow
# ============================================================

QUESTION_WITH_ANSWER = {
    "question_id": 1,
    "title": "Webpack alias &amp; resolve",
    "link": "https://stackoverflow.com/q/1",
    "body": "<p>My alias fails</p>",
    "owner": {"display_name": "dev &lt;1&gt;"},
    "score": 5,
    "creation_date": 1700000000,
    "last_activity_date": 1700100000,
    "tags": ["webpack"],
    "accepted_answer_id": 11,
}

QUESTION_WITHOUT_ANSWER = {
    "question_id": 2,
    "title": "Alias in jest",
    "link": "https://stackoverflow.com/q/2",
    "body": "<p>Jest ignores my alias</p>",
    "score": 3,
    "creation_date": 1700000000,
    "tags": ["jest"],
}

ACCEPTED_ANSWER = {
    "answer_id": 11,
    "is_accepted": True,
    "score": 7,
    "body": (
        "<p>Use <code>resolve.alias</code></p>\n"
        '<pre><code class="language-js">module.exports = { resolve: { alias: {} } };</code></pre>'
    ),
}


class TestStackOverflowClient:
    @pytest.fixture
    def handler(self):
        return Recorder({
            "/2.3/search/advanced": _json({
                "items": [QUESTION_WITH_ANSWER, QUESTION_WITHOUT_ANSWER, {"question_id": 3}],
                "quota_remaining": 250,
            }),
            "/2.3/answers/": _json({"items": [ACCEPTED_ANSWER]}),
        })

    async def test_search_and_normalize(self, handler, client_options):
        client = StackOverflowClient(transport=httpx.MockTransport(handler), **client_options)
        results = await client.search("webpack alias", 5)

        assert handler.paths() == ["/2.3/search/advanced", "/2.3/answers/11"]
        assert len(results) == 2

        first = results[0]
        assert first.source == SourceName.STACKOVERFLOW
        assert first.title == "Webpack alias & resolve"
        assert first.author == "dev <1>"
        assert first.is_accepted is True
        assert first.vote_count == 12
        assert first.score == 5
        assert first.content.startswith("My alias fails\n\n--- ACCEPTED ANSWER ---\n\nUse `resolve.alias`")
        assert [(s.language, s.code) for s in first.code_snippets] == [
            ("js", "module.exports = { resolve: { alias: {} } };")
        ]
        assert first.updated_at is not None

        second = results[1]
        assert second.author == "Anonymous"
        assert second.is_accepted is False
        assert second.vote_count == 3
        assert second.updated_at is None

    async def test_strategy_params(self, handler, client_options):
        client = StackOverflowClient(
            api_key="secret", transport=httpx.MockTransport(handler), **client_options
        )
        strategy = StackOverflowSearchStrategy(
            query="webpack alias", tags=("webpack", "javascript"), require_answered=True, sort_by="activity"
        )
        await client.search("ignored", 3, strategy=strategy)

        params = handler.requests[0].url.params
        assert params["q"] == "webpack alias"
        assert params["tagged"] == "webpack;javascript"
        assert params["accepted"] == "True"
        assert params["sort"] == "activity"
        assert params["pagesize"] == "3"
        assert params["key"] == "secret"
        assert params["filter"] == "withbody"

    async def test_plain_params_without_strategy(self, handler, client_options):
        client = StackOverflowClient(transport=httpx.MockTransport(handler), **client_options)
        await client.search("webpack alias", 5)

        params = handler.requests[0].url.params
        assert params["sort"] == "relevance"
        assert "tagged" not in params
        assert "accepted" not in params
        assert "key" not in params

    async def test_answers_failure_keeps_questions(self, client_options):
        handler = Recorder({
            "/2.3/search/advanced": _json({"items": [QUESTION_WITH_ANSWER]}),
            "/2.3/answers/": _json({}, status=500),
        })
        client = StackOverflowClient(transport=httpx.MockTransport(handler), **client_options)

        [result] = await client.search("webpack alias", 5)
        assert result.is_accepted is False
        assert "ACCEPTED ANSWER" not in result.content

    async def test_max_results_respected(self, client_options):
        items = [dict(QUESTION_WITHOUT_ANSWER, question_id=i, link=f"https://stackoverflow.com/q/{i}") for i in range(6)]
        handler = Recorder({"/2.3/search/advanced": _json({"items": items})})
        client = StackOverflowClient(transport=httpx.MockTransport(handler), **client_options)

        assert len(await client.search("alias", 4)) == 4

    async def test_malformed_questions_skipped(self, client_options):
        items = [
            QUESTION_WITHOUT_ANSWER,
            "not a question",
            {**QUESTION_WITHOUT_ANSWER, "question_id": 5, "owner": "ghost"},
        ]
        handler = Recorder({"/2.3/search/advanced": _json({"items": items})})
        client = StackOverflowClient(transport=httpx.MockTransport(handler), **client_options)

        [result] = await client.search("alias", 5)
        assert result.title == "Alias in jest"


# ============================================================
# GitHub
# ============================================================

REPO_URL = "https://api.github.com/repos/vitejs/vite"

CLOSED_BUG = {
    "title": "HMR broken in v5.0.2",
    "html_url": "https://github.com/vitejs/vite/issues/1",
    "user": {"login": "alice"},
    "created_at": "2025-01-01T00:00:00Z",
    "updated_at": "2025-02-01T00:00:00Z",
    "state": "closed",
    "comments": 4,
    "reactions": {"total_count": 10},
    "labels": [{"name": "bug"}],
    "body": "Steps:\n```js\nimport x from 'y'\n```",
    "repository_url": REPO_URL,
}

QUIET_QUESTION = {
    "title": "Question about config",
    "html_url": "https://github.com/vitejs/vite/issues/2",
    "user": {"login": "bob"},
    "created_at": "2025-01-02T00:00:00Z",
    "state": "open",
    "comments": 0,
    "reactions": {"total_count": 0},
    "labels": [{"name": "question"}],
    "body": "How?",
    "repository_url": REPO_URL,
}

OPEN_DISCUSSION = {
    "title": "HMR slow",
    "html_url": "https://github.com/vitejs/vite/issues/3",
    "user": {"login": "carol"},
    "created_at": "2025-01-03T00:00:00Z",
    "state": "open",
    "comments": 3,
    "reactions": {"total_count": 0},
    "labels": [],
    "body": None,
    "repository_url": REPO_URL,
}

BUG_STRATEGY = GitHubSearchStrategy(
    query="vite hmr",
    exclude_patterns=("-label:enhancement",),
    prioritize_types=("type:issue", "label:bug"),
    quality_threshold=1,
)


class TestGitHubClient:
    @pytest.fixture
    def handler(self):
        return Recorder({
            "/search/issues": _json({"items": [OPEN_DISCUSSION, QUIET_QUESTION, CLOSED_BUG]}),
            "/repos/vitejs/vite": _json({"full_name": "vitejs/vite", "stargazers_count": 60000}),
        })

    async def test_strategy_filters_and_orders(self, handler, client_options):
        client = GitHubClient(transport=httpx.MockTransport(handler), **client_options)
        results = await client.search("vite hmr", 5, strategy=BUG_STRATEGY)

        assert [r.title for r in results] == ["HMR broken in v5.0.2", "HMR slow"]
        # one repository lookup for both issues
        assert handler.paths().count("/repos/vitejs/vite") == 1

    async def test_normalize(self, handler, client_options):
        client = GitHubClient(transport=httpx.MockTransport(handler), **client_options)
        bug, slow = await client.search("vite hmr", 5, strategy=BUG_STRATEGY)

        assert bug.source == SourceName.GITHUB
        assert bug.author == "alice"
        assert bug.is_accepted is True
        assert bug.vote_count == 10
        assert bug.version == "5.0.2"
        assert bug.tags == ["bug"]
        assert bug.score == 78  # 50 stars + 8 comments + 10 reactions + 10 closed
        assert bug.content.startswith("Repository: vitejs/vite (⭐ 60000)\n\nSteps:")
        assert [(s.language, s.code) for s in bug.code_snippets] == [("js", "import x from 'y'")]
        assert bug.created_at.year == 2025 and bug.created_at.tzinfo is not None

        assert slow.is_accepted is False
        assert slow.score == 56
        assert slow.content.endswith("No description provided.")
        assert slow.version is None
        assert slow.updated_at is None

    async def test_query_params(self, handler, client_options):
        client = GitHubClient(token="ghp_test", transport=httpx.MockTransport(handler), **client_options)
        await client.search("vite hmr", 4, strategy=BUG_STRATEGY)

        request = handler.requests[0]
        assert request.url.params["q"] == "vite hmr in:title,body is:public -label:enhancement is:issue"
        assert request.url.params["sort"] == "reactions"
        assert request.url.params["per_page"] == "4"
        assert request.headers["Authorization"] == "Bearer ghp_test"
        assert request.headers["Accept"] == "application/vnd.github+json"

    async def test_no_token_no_auth_header(self, handler, client_options):
        client = GitHubClient(transport=httpx.MockTransport(handler), **client_options)
        await client.search("vite hmr", 4)
        assert "Authorization" not in handler.requests[0].headers

    async def test_repository_failure_tolerated(self, client_options):
        handler = Recorder({"/search/issues": _json({"items": [CLOSED_BUG]})})
        client = GitHubClient(transport=httpx.MockTransport(handler), **client_options)

        [result] = await client.search("vite hmr", 5)
        assert not result.content.startswith("Repository:")
        assert result.score == 28

    async def test_exhausted_quota_is_rate_limit(self, client_options):
        handler = Recorder({
            "/search/issues": _json({"message": "API rate limit exceeded"}, status=403,
                                    headers={"x-ratelimit-remaining": "0"}),
        })
        client = GitHubClient(transport=httpx.MockTransport(handler), **client_options)

        with pytest.raises(RateLimitError):
            await client.search("vite hmr", 5)
        assert len(handler.requests) == 3

    async def test_forbidden_is_authentication_error(self, client_options):
        handler = Recorder({"/search/issues": _json({"message": "Bad credentials"}, status=403)})
        client = GitHubClient(transport=httpx.MockTransport(handler), **client_options)

        with pytest.raises(AuthenticationError):
            await client.search("vite hmr", 5)
        assert len(handler.requests) == 1

    async def test_malformed_issues_skipped(self, client_options):
        items = [
            CLOSED_BUG,
            {**OPEN_DISCUSSION, "user": "ghost"},
            {**QUIET_QUESTION, "reactions": 5},
            "not an issue",
        ]
        handler = Recorder({
            "/search/issues": _json({"items": items}),
            "/repos/vitejs/vite": _json({"full_name": "vitejs/vite", "stargazers_count": 60000}),
        })
        client = GitHubClient(transport=httpx.MockTransport(handler), **client_options)

        [with_strategy] = await client.search("vite hmr", 5, strategy=BUG_STRATEGY)
        assert with_strategy.title == "HMR broken in v5.0.2"

        # without a strategy the reactions-as-number issue reaches normalization
        results = await client.search("vite hmr", 5)
        assert [r.title for r in results] == ["HMR broken in v5.0.2"]

    def test_build_search_query_without_strategy(self):
        assert GitHubClient.build_search_query("vite", None) == "vite in:title,body is:public"

    @pytest.mark.parametrize(
        ("title", "labels", "expected"),
        [
            ("Bug in 18.2", [], "18.2"),
            ("Crash", ["v3.1"], "v3.1"),
            ("Crash", ["needs version bump"], "needs version bump"),
            ("Crash", ["bug"], None),
        ],
    )
    def test_extract_version(self, title, labels, expected):
        assert GitHubClient.extract_version(title, labels) == expected


# ============================================================
# Reddit
# ============================================================

GOOD_POST = {
    "title": "React state: context or redux?",
    "permalink": "/r/reactjs/comments/abc/react_state/",
    "author": "dana",
    "subreddit": "reactjs",
    "score": 60,
    "num_comments": 12,
    "upvote_ratio": 0.95,
    "over_18": False,
    "link_flair_text": "Discussion",
    "created_utc": 1735689600,
    "edited": False,
    "is_self": True,
    "selftext": "We use\n```js\nconst store = createStore(reducer);\n```",
}

REDDIT_STRATEGY = RedditSearchStrategy(
    query="react state",
    subreddits=("reactjs", "webdev"),
    exclude_flairs=("Showcase",),
    min_engagement=10,
)


class TestRedditFilters:
    @pytest.mark.parametrize(
        "changes",
        [
            {"over_18": True},
            {"score": 5},
            {"num_comments": 1},
            {"upvote_ratio": 0.5},
            {"link_flair_text": "Showcase Saturday"},
            {"title": "I built a state library"},
            {"title": "We are hiring React devs"},
        ],
    )
    def test_rejected(self, changes):
        assert RedditClient.passes_filters({**GOOD_POST, **changes}, REDDIT_STRATEGY) is False

    def test_accepted(self):
        assert RedditClient.passes_filters(GOOD_POST, REDDIT_STRATEGY) is True

    def test_best_practice_needs_discussion(self):
        post = {**GOOD_POST, "score": 12, "num_comments": 12}
        assert RedditClient.passes_filters(post, REDDIT_STRATEGY) is True
        assert RedditClient.passes_filters(post, REDDIT_STRATEGY, ProblemCategory.BEST_PRACTICE) is False

    def test_default_flairs_without_strategy(self):
        post = {**GOOD_POST, "link_flair_text": "Career"}
        assert RedditClient.passes_filters(post, None) is False

    @pytest.mark.parametrize(
        ("changes", "expected"),
        [
            ({}, True),
            ({"score": 30, "upvote_ratio": 0.85, "num_comments": 11}, True),
            ({"score": 30, "upvote_ratio": 0.85, "num_comments": 5}, False),
        ],
    )
    def test_high_quality(self, changes, expected):
        assert RedditClient.is_high_quality({**GOOD_POST, **changes}) is expected

    def test_calculate_score(self, now):
        post = {
            "score": 200,
            "num_comments": 30,
            "upvote_ratio": 0.9,
            "created_utc": now.timestamp() - 30 * 86_400,
        }
        # 100 upvotes cap + 50 comments cap + 27 ratio + 20 freshness
        assert RedditClient.calculate_score(post, now) == 197


class TestRedditClient:
    @pytest.fixture
    def handler(self):
        listing = {
            "data": {
                "children": [
                    {"data": GOOD_POST},
                    {"data": {**GOOD_POST, "title": "NSFW", "over_18": True}},
                    {"data": {**GOOD_POST, "title": "Low", "score": 1}},
                ]
            }
        }
        return Recorder({"/r/": _json(listing)})

    async def test_search(self, handler, client_options):
        client = RedditClient(user_agent="tests/1.0", transport=httpx.MockTransport(handler), **client_options)
        [result] = await client.search("ignored", 3, strategy=REDDIT_STRATEGY)

        request = handler.requests[0]
        assert request.url.path == "/r/reactjs+webdev/search.json"
        assert request.url.params["q"] == "react state"
        assert request.url.params["limit"] == "6"
        assert request.url.params["restrict_sr"] == "on"
        assert request.url.params["t"] == "year"
        assert request.headers["User-Agent"] == "tests/1.0"

        assert result.source == SourceName.REDDIT
        assert result.url == "https://reddit.com/r/reactjs/comments/abc/react_state/"
        assert result.author == "dana"
        assert result.tags == ["reactjs", "discussion", "react"]
        assert result.is_accepted is True
        assert result.vote_count == 60
        assert result.updated_at is None
        assert result.content.startswith("Subreddit: r/reactjs\nScore: 60 | Comments: 12 | Upvote Ratio: 95%")
        assert [s.code for s in result.code_snippets] == ["const store = createStore(reducer);"]

    async def test_default_subreddits(self, handler, client_options):
        client = RedditClient(transport=httpx.MockTransport(handler), **client_options)
        await client.search("react state", 30)

        request = handler.requests[0]
        assert request.url.path == "/r/programming+webdev+askprogramming/search.json"
        assert request.url.params["limit"] == "25"

    async def test_edited_timestamp(self, client_options):
        post = {**GOOD_POST, "edited": 1735776000.0}
        handler = Recorder({"/r/": _json({"data": {"children": [{"data": post}]}})})
        client = RedditClient(transport=httpx.MockTransport(handler), **client_options)

        [result] = await client.search("react state", 3)
        assert result.updated_at is not None
        assert result.updated_at > result.created_at

    async def test_link_post_content(self, client_options):
        post = {**GOOD_POST, "is_self": False, "url": "https://example.com/article", "selftext": ""}
        handler = Recorder({"/r/": _json({"data": {"children": [{"data": post}]}})})
        client = RedditClient(transport=httpx.MockTransport(handler), **client_options)

        [result] = await client.search("react state", 3)
        assert result.content.endswith("Link post: https://example.com/article\n")

    async def test_malformed_posts_skipped(self, client_options):
        listing = {
            "data": {
                "children": [
                    {"data": {**GOOD_POST, "title": "Score as text", "score": "12"}},
                    "not a child",
                    {"data": "not a post"},
                    {"data": GOOD_POST},
                ]
            }
        }
        handler = Recorder({"/r/": _json(listing)})
        client = RedditClient(transport=httpx.MockTransport(handler), **client_options)

        [result] = await client.search("react state", 3, strategy=REDDIT_STRATEGY)
        assert result.title == GOOD_POST["title"]
