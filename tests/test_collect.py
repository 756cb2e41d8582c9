"""Tests for the sequential run orchestrator."""

import pytest

from testimonials import collect
from testimonials.base import BaseCollector
from testimonials.collect import COLLECTORS, RunStatus, print_summary, run_all
from testimonials.schemas import Candidate, TestimonialSource

QUALIFYING = "Two years with my Tesla and I would buy it again tomorrow"


class OkCollector(BaseCollector):
    platform = "ok"
    source = TestimonialSource.PTT
    locales = ["en"]

    def iter_candidates(self, locale, result):
        result.units_ok += 1
        yield Candidate(content=QUALIFYING, author="a")


class BoomCollector(OkCollector):
    platform = "boom"

    def iter_candidates(self, locale, result):
        raise RuntimeError("kaboom")


class KeyedCollector(OkCollector):
    platform = "keyed"
    required_env = {"FAKE_KEY_ONE": "key_one", "FAKE_KEY_TWO": "key_two"}

    def __init__(self, *args, key_one, key_two, **kwargs):
        super().__init__(*args, **kwargs)
        self.keys = (key_one, key_two)


@pytest.fixture(autouse=True)
def no_fake_keys(monkeypatch):
    monkeypatch.delenv("FAKE_KEY_ONE", raising=False)
    monkeypatch.delenv("FAKE_KEY_TWO", raising=False)


class TestRegistry:

    def test_run_order(self):
        assert [name for name, _ in COLLECTORS] == ["YouTube", "Reddit", "PTT", "Threads", "Mobile01", "RedNote"]

    def test_required_env(self):
        required = {name: sorted(cls.required_env) for name, cls in COLLECTORS}
        assert required == {
            "YouTube": ["YOUTUBE_API_KEY"],
            "Reddit": ["REDDIT_CLIENT_ID", "REDDIT_CLIENT_SECRET"],
            "PTT": [],
            "Threads": ["THREADS_ACCESS_TOKEN"],
            "Mobile01": [],
            "RedNote": ["RAPIDAPI_KEY"],
        }


class TestRunAll:

    def test_statuses_in_order(self, settings):
        results = run_all(settings, [
            ("Keyed", KeyedCollector),
            ("Boom", BoomCollector),
            ("Ok", OkCollector),
        ])

        assert [(r.name, r.label) for r in results] == [
            ("Keyed", "skipped (missing env: FAKE_KEY_ONE, FAKE_KEY_TWO)"),
            ("Boom", "failed"),
            ("Ok", "success"),
        ]
        assert (settings.raw_dir / "ok-en.json").exists()
        assert not (settings.raw_dir / "keyed-en.json").exists()

    def test_only_missing_vars_are_named(self, settings, monkeypatch):
        monkeypatch.setenv("FAKE_KEY_ONE", "1")
        results = run_all(settings, [("Keyed", KeyedCollector)])
        assert results[0].label == "skipped (missing env: FAKE_KEY_TWO)"

    def test_runs_when_env_present(self, settings, monkeypatch):
        monkeypatch.setenv("FAKE_KEY_ONE", "1")
        monkeypatch.setenv("FAKE_KEY_TWO", "2")
        results = run_all(settings, [("Keyed", KeyedCollector)])
        assert results[0].status == "success"
        assert (settings.raw_dir / "keyed-en.json").exists()


class TestSummary:

    def test_markers(self, capsys):
        print_summary([
            RunStatus("YouTube", "success"),
            RunStatus("Reddit", "skipped", "missing env: REDDIT_CLIENT_ID"),
            RunStatus("PTT", "failed"),
        ])
        out = capsys.readouterr().out
        assert "  [OK] YouTube: success" in out
        assert "  [--] Reddit: skipped (missing env: REDDIT_CLIENT_ID)" in out
        assert "  [!!] PTT: failed" in out

    def test_main_always_exits_zero(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(collect, "COLLECTORS", [("Boom", BoomCollector), ("Keyed", KeyedCollector)])

        assert collect.main(["--content-dir", str(tmp_path / "content")]) == 0

        out = capsys.readouterr().out
        assert out.startswith("=== Tesla Testimonials Fetcher ===")
        assert "[!!] Boom: failed" in out
        assert "[--] Keyed: skipped" in out
