import json
import random
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest import mock

from fakes import FakeResponse, FakeSession, rss_document
from scripts import update_news
from scripts.update_news import (
    NoStoriesError,
    RawStory,
    SourceDef,
    SourceGroup,
    SourceRegistry,
    StoryEnricher,
    build_snapshot,
    collect_stories,
    default_registry,
    load_snapshot,
    run_pipeline,
    select_top,
    sort_stories,
    write_snapshot,
)

NOW = datetime(2026, 2, 19, 12, 0, tzinfo=timezone.utc)
FEED_URL = "https://official.example.com/rss.xml"


def story(sid, source_type, hours_ago, title=None):
    return RawStory(
        id=sid,
        title=title or f"Story {sid}",
        url=f"https://example.com/{sid}",
        published_at=NOW - timedelta(hours=hours_ago),
        source_name="src",
        source_type=source_type,
        source_label="",
        source_icon="",
        favicon="",
    )


class NullTranslator:
    def translate(self, text):
        return None


def small_registry(*kinds):
    groups = []
    for idx, (source_type, kind, url) in enumerate(kinds, start=1):
        groups.append(SourceGroup(source_type, source_type, source_type, idx, (SourceDef(f"{source_type}-src", kind, url, ""),)))
    return SourceRegistry(groups=tuple(groups))


class SortingTests(unittest.TestCase):
    def test_priority_beats_recency(self):
        stories = [story("c", "community", 0), story("o", "official", 48), story("t", "tech", 1)]
        ordered = sort_stories(stories, default_registry())
        self.assertEqual([s.id for s in ordered], ["o", "t", "c"])

    def test_newest_first_within_type_and_unknown_last(self):
        stories = [story("old", "tech", 10), story("x", "mystery", 0), story("new", "tech", 1)]
        ordered = sort_stories(stories, default_registry())
        self.assertEqual([s.id for s in ordered], ["new", "old", "x"])

    def test_select_top_truncates_without_reordering(self):
        stories = [story(f"t{i}", "tech", i) for i in range(15)] + [story("o", "official", 30)]
        top = select_top(stories, default_registry(), limit=10)
        self.assertEqual(len(top), 10)
        self.assertEqual([s.id for s in top], ["o"] + [f"t{i}" for i in range(9)])

    def test_duplicates_keep_highest_priority_copy(self):
        a = story("a", "community", 0, title="Same")
        b = RawStory(**{**a.__dict__, "id": "b", "source_type": "official"})
        top = select_top([a, b], default_registry())
        self.assertEqual([s.id for s in top], ["b"])


class CollectTests(unittest.TestCase):
    def test_group_order_and_pauses(self):
        registry = SourceRegistry(
            groups=(
                SourceGroup("community", "", "", 5, (SourceDef("hn", "fake", "", ""),)),
                SourceGroup("official", "", "", 1, (SourceDef("blog", "fake", "", ""),)),
                SourceGroup("tech", "", "", 3, (SourceDef("news", "fake", "", ""),)),
            )
        )
        seen = []

        def fake(session, group, source, now):
            seen.append(source.name)
            return [story(source.name, group.source_type, 1)]

        pauses = []
        stories, statuses = collect_stories(None, registry, NOW, delay=0.2, pause=pauses.append, fetchers={"fake": fake})
        self.assertEqual(seen, ["blog", "news", "hn"])
        self.assertEqual(pauses, [0.2, 0.2])
        self.assertEqual(len(stories), 3)
        self.assertTrue(all(s["ok"] for s in statuses))

    def test_unknown_kind_is_a_failed_status(self):
        registry = small_registry(("tech", "carrier-pigeon", ""))
        stories, statuses = collect_stories(None, registry, NOW, delay=0)
        self.assertEqual(stories, [])
        self.assertFalse(statuses[0]["ok"])


class PipelineTests(unittest.TestCase):
    def test_all_sources_failing_signals_no_data(self):
        session = FakeSession()
        enricher = StoryEnricher(translator=NullTranslator())
        with self.assertRaises(NoStoriesError):
            run_pipeline(session, default_registry(), NOW, enricher, pause=lambda _: None)

    def test_end_to_end_single_official_item(self):
        feed = rss_document(
            {"title": "OpenAI announces GPT-5", "link": "https://openai.example/gpt-5", "pubDate": "Thu, 19 Feb 2026 10:00:00 GMT"}
        )
        session = FakeSession({FEED_URL: FakeResponse(text=feed)})
        registry = small_registry(("official", "rss", FEED_URL), ("community", "rss", "https://down.example/rss"))
        enricher = StoryEnricher(translator=NullTranslator(), rng=random.Random(3))

        snapshot, statuses = run_pipeline(session, registry, NOW, enricher, ai_tools=[{"name": "Tool"}], delay=0)

        self.assertEqual(len(snapshot["news"]), 1)
        record = snapshot["news"][0]
        self.assertEqual(record["category"], "product")
        self.assertEqual(record["categoryHebrew"], "מוצר")
        self.assertTrue(record["isVerified"])
        self.assertTrue(record["isBreaking"])
        self.assertEqual(record["originalTitle"], "OpenAI announces GPT-5")
        self.assertTrue(record["headline"])
        self.assertTrue(record["summary"])
        self.assertEqual(len(record["summaryBullets"]), 3)
        self.assertEqual(record["publishedAt"], "2026-02-19T10:00:00Z")
        self.assertEqual(record["timeAgo"], "לפני 2 שעות")
        self.assertEqual(snapshot["aiTools"], [{"name": "Tool"}])
        self.assertEqual(snapshot["lastUpdated"], "2026-02-19T12:00:00Z")
        self.assertEqual(snapshot["sources"], {"official": ["official-src"], "community": ["community-src"]})
        self.assertEqual([s["ok"] for s in statuses], [True, False])

    def test_only_first_item_is_breaking(self):
        enricher = StoryEnricher(translator=NullTranslator())
        items = [enricher.enrich(story(f"s{i}", "tech", i), NOW) for i in range(4)]
        snapshot = build_snapshot(items, [], default_registry(), NOW)
        self.assertEqual([r["isBreaking"] for r in snapshot["news"]], [True, False, False, False])
        self.assertEqual([r["id"] for r in snapshot["news"]], [1, 2, 3, 4])


class PersistenceTests(unittest.TestCase):
    def test_missing_and_corrupt_files_give_empty_default(self):
        with TemporaryDirectory() as td:
            self.assertEqual(load_snapshot(Path(td) / "missing.json"), {"aiTools": []})
            bad = Path(td) / "bad.json"
            bad.write_text("{not json", encoding="utf-8")
            self.assertEqual(load_snapshot(bad), {"aiTools": []})
            odd = Path(td) / "odd.json"
            odd.write_text(json.dumps({"news": [], "aiTools": "nope"}), encoding="utf-8")
            self.assertEqual(load_snapshot(odd)["aiTools"], [])

    def test_main_carries_ai_tools_and_replaces_news(self):
        with TemporaryDirectory() as td:
            out = Path(td) / "data" / "news.json"
            write_snapshot(out, {"news": [{"id": 99}], "aiTools": [{"name": "Keep me"}], "lastUpdated": "old", "sources": {}})
            fake_snapshot = {"news": [{"id": 1}], "aiTools": [{"name": "Keep me"}], "lastUpdated": "new", "sources": {"tech": []}}
            with mock.patch.object(update_news, "run_pipeline", return_value=(fake_snapshot, [])) as run:
                code = update_news.main(["--output", str(out)])
            self.assertEqual(code, 0)
            self.assertEqual(run.call_args.kwargs["ai_tools"], [{"name": "Keep me"}])
            written = json.loads(out.read_text(encoding="utf-8"))
            self.assertEqual(written["news"], [{"id": 1}])
            self.assertEqual(written["aiTools"], [{"name": "Keep me"}])
            self.assertTrue((out.parent / "source-status.json").exists())

    def test_main_exits_non_zero_without_stories(self):
        with TemporaryDirectory() as td:
            out = Path(td) / "news.json"
            with mock.patch.object(update_news, "run_pipeline", side_effect=NoStoriesError("none")):
                code = update_news.main(["--output", str(out), "--no-status"])
            self.assertEqual(code, 1)
            self.assertFalse(out.exists())


if __name__ == "__main__":
    unittest.main()
