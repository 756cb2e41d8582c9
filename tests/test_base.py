"""Tests for the shared collector pipeline in BaseCollector."""

import json
import logging

import httpx
import pytest

from testimonials.base import BaseCollector, LocaleResult, run_collector_cli, build_parser
from testimonials.errors import MissingCredentialsError, RateLimitError
from testimonials.schemas import Candidate, TestimonialSource, VehicleModel

QUALIFYING = "I have driven my Tesla for two years and it is the best car I have owned"


class StubCollector(BaseCollector):
    """Yields whatever candidates it was given, one unit of work per candidate."""

    platform = "stub"
    source = TestimonialSource.REDDIT
    locales = ["en"]
    headers = {"User-Agent": "stub-agent"}

    def __init__(self, *args, candidates=None, fail_units=0, **kwargs):
        super().__init__(*args, **kwargs)
        self.candidates = candidates or []
        self.fail_units = fail_units

    def _explode(self):
        raise httpx.ConnectError("unreachable")

    def iter_candidates(self, locale, result):
        for _ in range(self.fail_units):
            self.attempt(result, "broken unit", self._explode)
        for candidate in self.candidates:
            if self.attempt(result, "unit", lambda: candidate) is not None:
                yield candidate


class KeyedCollector(StubCollector):
    required_env = {"STUB_KEY": "api_key"}

    def __init__(self, *args, api_key, **kwargs):
        super().__init__(*args, **kwargs)
        self.api_key = api_key


class TestBuildRecord:

    def test_qualifying_candidate(self, settings):
        collector = StubCollector(settings=settings)
        record = collector.build_record(
            Candidate(content=f"  {QUALIFYING}  ", author="u/alice", url="https://x"),
            fetched_at="2024-01-01T00:00:00.000Z",
        )
        assert record.id.startswith("stub-")
        assert record.content == QUALIFYING
        assert record.source == TestimonialSource.REDDIT
        assert record.author == "u/alice"
        assert record.fetched_at == "2024-01-01T00:00:00.000Z"

    def test_unqualified_candidate(self, settings):
        collector = StubCollector(settings=settings)
        assert collector.build_record(Candidate(content="too short", author="a")) is None

    def test_min_length_per_candidate(self, settings):
        collector = StubCollector(settings=settings)
        assert collector.build_record(Candidate(content=QUALIFYING, author="a", min_length=500)) is None

    def test_model_from_context(self, settings):
        collector = StubCollector(settings=settings)
        record = collector.build_record(Candidate(content=QUALIFYING, author="a", context="[心得] Model Y"))
        assert record.model == VehicleModel.MODEL_Y

    def test_explicit_model_wins(self, settings):
        collector = StubCollector(settings=settings)
        record = collector.build_record(
            Candidate(content=QUALIFYING + " Model 3", author="a", model=VehicleModel.CYBERTRUCK)
        )
        assert record.model == VehicleModel.CYBERTRUCK

    def test_long_content_truncated_but_id_from_full_text(self, settings):
        collector = StubCollector(settings=settings)
        long_text = QUALIFYING + " and more" * 60
        record = collector.build_record(Candidate(content=long_text, author="a"))
        assert record.content.endswith("...")
        assert record.id == collector.build_record(Candidate(content=long_text, author="b")).id


class TestRun:

    def test_dedupes_and_caps(self, settings):
        settings.max_records = 3
        candidates = [Candidate(content=QUALIFYING, author="dup")] * 2 + [
            Candidate(content=f"{QUALIFYING} #{n}", author="a") for n in range(5)
        ]
        with StubCollector(settings=settings, candidates=candidates) as collector:
            report = collector.run()

        records = report.results["en"].records
        assert len(records) == 3
        assert len({r.id for r in records}) == 3

        data = json.loads((settings.raw_dir / "stub-en.json").read_text(encoding="utf-8"))
        assert [d["id"] for d in data] == [r.id for r in records]
        assert all("fetchedAt" in d for d in data)

    def test_partial_failure_still_writes(self, settings):
        candidates = [Candidate(content=QUALIFYING, author="a")]
        with StubCollector(settings=settings, candidates=candidates, fail_units=2) as collector:
            report = collector.run()

        result = report.results["en"]
        assert (result.units_ok, result.units_failed) == (1, 2)
        assert (settings.raw_dir / "stub-en.json").exists()

    def test_total_failure_leaves_existing_output(self, settings):
        settings.raw_dir.mkdir(parents=True)
        existing = settings.raw_dir / "stub-en.json"
        existing.write_text('[{"id": "stub-00000000"}]', encoding="utf-8")

        with StubCollector(settings=settings, fail_units=3) as collector:
            report = collector.run()

        assert report.written == []
        assert existing.read_text(encoding="utf-8") == '[{"id": "stub-00000000"}]'

    def test_successful_but_empty_run_writes_empty_array(self, settings):
        with StubCollector(settings=settings, candidates=[Candidate(content="nope", author="a")]) as collector:
            collector.run()
        assert (settings.raw_dir / "stub-en.json").read_text(encoding="utf-8") == "[]"

    def test_report_stats(self, settings):
        candidates = [Candidate(content=QUALIFYING, author="a")]
        with StubCollector(settings=settings, candidates=candidates, fail_units=1) as collector:
            report = collector.run()

        assert report.get_stats() == {
            "source": "Reddit",
            "records": {"en": 1},
            "units_ok": 1,
            "units_failed": 1,
            "written": [str(settings.raw_dir / "stub-en.json")],
        }

    def test_has_output(self):
        assert not LocaleResult(locale="en", units_failed=2).has_output
        assert LocaleResult(locale="en", units_ok=1).has_output


class TestNetwork:

    def test_headers_merged_per_request(self, settings, make_client):
        seen = []

        def handler(request):
            seen.append(request.headers)
            return httpx.Response(200, json={"ok": True})

        collector = StubCollector(settings=settings, client=make_client(handler))
        assert collector.get_json("https://api.example.com/x", headers={"X-Extra": "1"}) == {"ok": True}
        assert seen[0]["user-agent"] == "stub-agent"
        assert seen[0]["x-extra"] == "1"

    def test_429_is_retried_with_backoff(self, settings, make_client, clock):
        responses = iter([
            httpx.Response(429, headers={"Retry-After": "7"}),
            httpx.Response(200, json=[1]),
        ])
        collector = StubCollector(settings=settings, client=make_client(lambda request: next(responses)))

        assert collector.get_json("https://api.example.com/x") == [1]
        assert 1.0 in clock.sleeps

    def test_429_raises_rate_limit_error(self, settings, make_client):
        collector = StubCollector(
            settings=settings,
            client=make_client(lambda request: httpx.Response(429, headers={"Retry-After": "7"})),
        )
        with pytest.raises(RateLimitError) as exc_info:
            collector.get_json("https://api.example.com/x")
        assert exc_info.value.retry_after == 7

    def test_requests_are_spaced(self, settings, make_client, clock):
        collector = StubCollector(
            settings=settings,
            client=make_client(lambda request: httpx.Response(200, json={})),
        )
        for _ in range(3):
            collector.get_json("https://api.example.com/x")
        assert clock.sleeps == [1.0, 1.0]


class TestCredentials:

    def test_missing_env_raises(self, settings, monkeypatch):
        monkeypatch.delenv("STUB_KEY", raising=False)
        with pytest.raises(MissingCredentialsError) as exc_info:
            KeyedCollector.from_env(settings=settings)
        assert exc_info.value.missing == ["STUB_KEY"]

    def test_env_value_passed_to_constructor(self, settings, monkeypatch):
        monkeypatch.setenv("STUB_KEY", "secret")
        with KeyedCollector.from_env(settings=settings) as collector:
            assert collector.api_key == "secret"

    def test_cli_exits_1_without_credentials(self, settings, monkeypatch, capsys):
        monkeypatch.delenv("STUB_KEY", raising=False)
        args = build_parser("stub").parse_args(["--content-dir", str(settings.content_dir)])

        assert run_collector_cli(KeyedCollector, args, settings=settings) == 1
        assert "STUB_KEY" in capsys.readouterr().err
        assert not settings.raw_dir.exists()

    def test_cli_logs_run_stats(self, settings, caplog):
        caplog.set_level(logging.INFO, logger="testimonials.base")
        args = build_parser("stub").parse_args(["--content-dir", str(settings.content_dir)])
        candidates = [Candidate(content=QUALIFYING, author="a")]

        assert run_collector_cli(StubCollector, args, settings=settings, candidates=candidates) == 0
        assert '"units_ok": 1' in caplog.text
        assert "stub-en.json" in caplog.text
