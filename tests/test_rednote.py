"""Tests for the RedNote collector and its response shape handling."""

import json

import httpx
import pytest

from testimonials.config import Settings
from testimonials.rednote import (
    RAPIDAPI_HOST,
    RedNoteCollector,
    RedNoteNote,
    ResponseShape,
    detect_shape,
    parse_notes,
)

NOTE_TEXT = "特斯拉 Model Y 提車三個月，續航和輔助駕駛都很滿意，推薦給正在考慮的朋友"

NOTE = {
    "note_id": "65a1b2c3",
    "title": "提車三個月心得",
    "desc": NOTE_TEXT,
    "user": {"nickname": "小紅薯123", "user_id": "u1"},
    "likes_count": 88,
}

NESTED_PAYLOAD = {"code": 0, "data": {"items": [NOTE]}}
FLAT_PAYLOAD = {"items": [NOTE]}


class TestResponseShape:

    @pytest.mark.parametrize("payload,shape", [
        (NESTED_PAYLOAD, ResponseShape.NESTED),
        (FLAT_PAYLOAD, ResponseShape.FLAT),
        ({"data": {"notes": []}}, ResponseShape.UNKNOWN),
        ({"message": "quota exceeded"}, ResponseShape.UNKNOWN),
        ([NOTE], ResponseShape.UNKNOWN),
    ])
    def test_detect_shape(self, payload, shape):
        assert detect_shape(payload) == shape

    def test_both_shapes_parse_the_same(self):
        assert parse_notes(NESTED_PAYLOAD) == parse_notes(FLAT_PAYLOAD)
        assert len(parse_notes(FLAT_PAYLOAD)) == 1

    def test_unknown_shape_parses_to_nothing(self):
        assert parse_notes({"message": "quota exceeded"}) == []


class TestRedNoteNote:

    def test_text_fallback_order(self):
        assert RedNoteNote.from_api({"desc": "d", "content": "c", "title": "t"}).text == "d"
        assert RedNoteNote.from_api({"content": "c", "title": "t"}).text == "c"
        assert RedNoteNote.from_api({"title": "t"}).text == "t"
        assert RedNoteNote.from_api({}).text == ""

    def test_author_fallback_order(self):
        assert RedNoteNote.from_api({"user": {"nickname": "a"}, "nickname": "b"}).author == "a"
        assert RedNoteNote.from_api({"nickname": "b"}).author == "b"
        assert RedNoteNote.from_api({}).author == "小紅書用戶"

    def test_url(self):
        assert RedNoteNote.from_api({"note_id": "n1", "id": "i1"}).url == "https://www.xiaohongshu.com/explore/n1"
        assert RedNoteNote.from_api({"id": "i1"}).url == "https://www.xiaohongshu.com/explore/i1"
        assert RedNoteNote.from_api({}).url is None


class TestRedNoteCollector:

    def test_collects_zh_tw(self, content_dir, write_queries, make_client):
        settings = Settings(content_dir=content_dir, queries_path=write_queries(
            "rednote:\n  - 特斯拉 车主\n  - 特斯拉 提车\n"
        ))
        requests = []
        payloads = iter([NESTED_PAYLOAD, FLAT_PAYLOAD])

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=next(payloads))

        with RedNoteCollector(settings=settings, client=make_client(handler), api_key="key") as collector:
            collector.run()

        data = json.loads((settings.raw_dir / "rednote-zh-TW.json").read_text(encoding="utf-8"))
        assert data == [{
            "id": data[0]["id"],
            "content": NOTE_TEXT,
            "source": "RedNote",
            "author": "小紅薯123",
            "model": "Model Y",
            "url": "https://www.xiaohongshu.com/explore/65a1b2c3",
            "fetchedAt": data[0]["fetchedAt"],
        }]
        assert data[0]["id"].startswith("rednote-")

        request = requests[0]
        assert request.url.host == RAPIDAPI_HOST
        assert request.url.path == "/search/notes"
        assert dict(request.url.params) == {"keyword": "特斯拉 车主", "page": "1", "sort": "general"}
        assert request.headers["x-rapidapi-key"] == "key"
        assert request.headers["x-rapidapi-host"] == RAPIDAPI_HOST
