"""Tests for the Threads keyword search collector."""

import json

import httpx

from testimonials.config import Settings
from testimonials.threads import ThreadsCollector, ThreadsPost, parse_search_response

ALICE_TEXT = "Picked up my Tesla Model 3 last month and every drive is a joy."
ANON_TEXT = "特斯拉開了半年，充電方便又安靜，真的回不去油車了"

SEARCH_PAYLOAD = {
    "data": [
        {"id": "111", "text": ALICE_TEXT, "username": "alice", "timestamp": "2024-05-01T00:00:00+0000"},
        {"id": "222", "username": "imageonly"},
        {"id": "333", "text": ANON_TEXT},
        {"id": "444", "text": "not about cars at all, just a long enough sentence", "username": "bob"},
    ]
}


class TestParsing:

    def test_parse_search_response(self):
        posts = parse_search_response(SEARCH_PAYLOAD)
        assert [p.id for p in posts] == ["111", "222", "333", "444"]
        assert posts[1].text == ""

    def test_empty_response(self):
        assert parse_search_response({}) == []

    def test_author_and_url(self):
        post = ThreadsPost.from_api({"id": "111", "text": "x", "username": "alice"})
        assert post.author == "@alice"
        assert post.url == "https://www.threads.net/@alice/post/111"
        assert ThreadsPost.from_api({"id": "1", "text": "x"}).author == "Threads user"
        assert ThreadsPost.from_api({"id": "1", "text": "x"}).url is None


class TestThreadsCollector:

    def test_collects_every_configured_locale(self, content_dir, write_queries, make_client):
        settings = Settings(content_dir=content_dir, queries_path=write_queries(
            "threads:\n  en:\n    - Tesla owner review\n  zh-TW:\n    - 特斯拉 車主\n"
        ))
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=SEARCH_PAYLOAD)

        with ThreadsCollector(settings=settings, client=make_client(handler), access_token="tok") as collector:
            report = collector.run()

        assert list(report.results) == ["en", "zh-TW"]
        data = json.loads((settings.raw_dir / "threads-en.json").read_text(encoding="utf-8"))
        assert [(d["author"], d.get("url")) for d in data] == [
            ("@alice", "https://www.threads.net/@alice/post/111"),
            ("Threads user", None),
        ]
        assert data[0]["model"] == "Model 3"
        assert (settings.raw_dir / "threads-zh-TW.json").exists()

        params = requests[0].url.params
        assert requests[0].url.path == "/v1.0/keyword_search"
        assert params["q"] == "Tesla owner review"
        assert params["fields"] == "id,text,username,timestamp"
        assert params["access_token"] == "tok"

    def test_failed_query_does_not_stop_others(self, content_dir, write_queries, make_client):
        settings = Settings(content_dir=content_dir, queries_path=write_queries(
            "threads:\n  en:\n    - broken\n    - Tesla owner review\n"
        ))

        def handler(request):
            if request.url.params["q"] == "broken":
                return httpx.Response(400, json={"error": {"message": "bad query"}})
            return httpx.Response(200, json=SEARCH_PAYLOAD)

        with ThreadsCollector(settings=settings, client=make_client(handler), access_token="tok") as collector:
            report = collector.run()

        result = report.results["en"]
        assert (result.units_ok, result.units_failed) == (1, 1)
        assert len(result.records) == 2
