#!/usr/bin/env python3
"""Aggregate AI news from public sources and write the Hebrew news snapshot."""

from __future__ import annotations

import argparse
import json
import os
import random
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import feedparser
import requests
from bs4 import BeautifulSoup
from dateutil import parser as dtparser

UTC = timezone.utc
BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)
BOT_UA = "Mozilla/5.0 (compatible; AI-Pulse-Bot/1.0)"
REQUEST_TIMEOUT = 20

HN_API = "https://hacker-news.firebaseio.com/v0"
HN_SCAN_LIMIT = 80
HN_QUOTA = 3
RSS_ITEM_CAP = 3
RSS_DESCRIPTION_MAX = 200
TELEGRAM_CANDIDATES = 5
TELEGRAM_KEEP = 2
TELEGRAM_TEXT_MAX = 300
TELEGRAM_TITLE_MAX = 150
TELEGRAM_MIN_TEXT = 20
NEWSAPI_URL = "https://newsapi.org/v2/everything"
NEWSAPI_QUERY = "artificial intelligence OR OpenAI OR Anthropic OR NVIDIA AI"
NEWSAPI_KEEP = 5
MYMEMORY_URL = "https://api.mymemory.translated.net/get"
TARGET_LANGPAIR = "en|he"

DEFAULT_MAX_ITEMS = 10
DEFAULT_DELAY_SECONDS = 0.2
UNKNOWN_PRIORITY = 99
SOURCE_TYPE_ORDER = ("official", "local", "tech", "research", "community")


class NoStoriesError(RuntimeError):
    """No source contributed a single story in this run."""


@dataclass(frozen=True)
class SourceDef:
    name: str
    kind: str
    url: str
    favicon: str
    is_hebrew: bool = False


@dataclass(frozen=True)
class SourceGroup:
    source_type: str
    label: str
    icon: str
    priority: int
    sources: tuple[SourceDef, ...]


@dataclass(frozen=True)
class SourceRegistry:
    groups: tuple[SourceGroup, ...]

    def ordered_groups(self) -> list[SourceGroup]:
        def rank(group: SourceGroup) -> int:
            if group.source_type in SOURCE_TYPE_ORDER:
                return SOURCE_TYPE_ORDER.index(group.source_type)
            return len(SOURCE_TYPE_ORDER)

        return sorted(self.groups, key=rank)

    def priority_of(self, source_type: str) -> int:
        for group in self.groups:
            if group.source_type == source_type:
                return group.priority
        return UNKNOWN_PRIORITY

    def names_by_type(self) -> dict[str, list[str]]:
        return {g.source_type: [s.name for s in g.sources] for g in self.ordered_groups()}


@dataclass(frozen=True)
class RawStory:
    id: str
    title: str
    url: str
    published_at: datetime
    source_name: str
    source_type: str
    source_label: str
    source_icon: str
    favicon: str
    is_hebrew: bool = False
    is_verified: bool = False
    description: str | None = None
    score: int | None = None


@dataclass(frozen=True)
class EnrichedNewsItem:
    story: RawStory
    display_title: str
    headline: str
    summary: str
    summary_bullets: tuple[str, ...]
    category: str
    time_ago: str
    original_title: str | None = None


def default_registry() -> SourceRegistry:
    return SourceRegistry(
        groups=(
            SourceGroup(
                source_type="official",
                label="מקור רשמי",
                icon="verified",
                priority=1,
                sources=(
                    SourceDef("OpenAI Blog", "rss", "https://openai.com/blog/rss.xml", "https://openai.com/favicon.ico"),
                    SourceDef(
                        "NVIDIA Newsroom",
                        "rss",
                        "https://nvidianews.nvidia.com/rss.xml",
                        "https://www.nvidia.com/favicon.ico",
                    ),
                ),
            ),
            SourceGroup(
                source_type="local",
                label="עדכון מקומי",
                icon="israel",
                priority=2,
                sources=(
                    SourceDef(
                        "AI Israel Telegram",
                        "telegram",
                        "https://t.me/s/ai_tg_il",
                        "https://telegram.org/favicon.ico",
                        is_hebrew=True,
                    ),
                ),
            ),
            SourceGroup(
                source_type="tech",
                label="חדשות טכנולוגיה",
                icon="tech",
                priority=3,
                sources=(
                    SourceDef(
                        "AI News",
                        "rss",
                        "https://www.artificialintelligence-news.com/feed/",
                        "https://www.artificialintelligence-news.com/favicon.ico",
                    ),
                    SourceDef("NewsAPI", "newsapi", NEWSAPI_URL, "https://newsapi.org/favicon.ico"),
                ),
            ),
            SourceGroup(
                source_type="research",
                label="מחקר",
                icon="research",
                priority=4,
                sources=(
                    SourceDef("arXiv cs.AI", "rss", "https://rss.arxiv.org/rss/cs.AI", "https://arxiv.org/favicon.ico"),
                ),
            ),
            SourceGroup(
                source_type="community",
                label="קהילה",
                icon="community",
                priority=5,
                sources=(
                    SourceDef("Hacker News", "hackernews", HN_API, "https://news.ycombinator.com/favicon.ico"),
                ),
            ),
        )
    )


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def iso(dt: datetime | None) -> str | None:
    if not dt:
        return None
    return dt.astimezone(UTC).isoformat().replace("+00:00", "Z")


def parse_unix_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    try:
        n = float(value)
    except Exception:
        return None
    if n > 10_000_000_000:
        n /= 1000.0
    try:
        return datetime.fromtimestamp(n, tz=UTC)
    except Exception:
        return None


def parse_date_any(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        if not value.tzinfo:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    if isinstance(value, (int, float)):
        return parse_unix_timestamp(value)

    s = str(value).strip()
    if not s:
        return None
    if re.fullmatch(r"\d{9,}", s):
        return parse_unix_timestamp(int(s))
    try:
        dt = dtparser.parse(s)
    except Exception:
        return None
    if not dt.tzinfo:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def normalize_url(raw_url: str) -> str:
    try:
        parsed = urlparse(raw_url.strip())
        if not parsed.scheme:
            return raw_url.strip()
        query = [
            (k, v)
            for k, v in parse_qsl(parsed.query, keep_blank_values=True)
            if not k.lower().startswith("utm_") and k.lower() not in {"ref", "fbclid", "gclid"}
        ]
        parsed = parsed._replace(
            scheme=parsed.scheme.lower(),
            netloc=parsed.netloc.lower(),
            fragment="",
            query=urlencode(query, doseq=True),
        )
        return urlunparse(parsed).rstrip("/")
    except Exception:
        return raw_url.strip()


def first_non_empty(*values: Any) -> str:
    for value in values:
        if value is None:
            continue
        s = str(value).strip()
        if s:
            return s
    return ""


def strip_html(text: str) -> str:
    if not text:
        return ""
    return BeautifulSoup(text, "html.parser").get_text(" ", strip=True)


def collapse_ws(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def squash(text: str) -> str:
    return re.sub(r"\s+", "", text or "").lower()


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


def create_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": BROWSER_UA, "Accept-Language": "en-US,en;q=0.9,he;q=0.8"})
    return session


AI_KEYWORDS = [
    "ai",
    "artificial intelligence",
    "machine learning",
    "neural",
    "gpt",
    "openai",
    "anthropic",
    "claude",
    "nvidia",
    "llm",
    "chatgpt",
    "gemini",
    "deepmind",
    "transformer",
    "diffusion",
    "midjourney",
    "hugging face",
    "meta ai",
    "copilot",
    "llama",
    "mistral",
    "groq",
    "perplexity",
]

# Checked in order; the first group with a hit wins.
CATEGORY_KEYWORDS: list[tuple[str, list[str]]] = [
    ("funding", ["funding", "raises", "investment", "valuation", "billion", "million"]),
    ("hardware", ["chip", "gpu", "hardware", "processor", "server"]),
    ("product", ["launch", "release", "announce", "new feature", "update", "available"]),
    ("markets", ["stock", "market", "ipo", "shares", "trading"]),
]
FALLBACK_CATEGORY = "research"
CATEGORIES = ("funding", "hardware", "product", "markets", "research")
CATEGORY_LABELS = {
    "funding": "מימון",
    "hardware": "חומרה",
    "product": "מוצר",
    "markets": "שווקים",
    "research": "מחקר",
}


def contains_any_keyword(haystack: str, keywords: list[str]) -> bool:
    h = haystack.lower()
    return any(k in h for k in keywords)


def is_ai_related(text: str) -> bool:
    return contains_any_keyword(text or "", AI_KEYWORDS)


def detect_category(title: str, content: str = "") -> str:
    text = f"{title or ''} {content or ''}"
    for category, keywords in CATEGORY_KEYWORDS:
        if contains_any_keyword(text, keywords):
            return category
    return FALLBACK_CATEGORY


def make_story(group: SourceGroup, source: SourceDef, **fields: Any) -> RawStory:
    fields.setdefault("source_name", source.name)
    return RawStory(
        source_type=group.source_type,
        source_label=group.label,
        source_icon=group.icon,
        favicon=source.favicon,
        is_hebrew=source.is_hebrew,
        is_verified=group.source_type == "official",
        **fields,
    )


def fetch_hacker_news(session: requests.Session, group: SourceGroup, source: SourceDef, now: datetime) -> list[RawStory]:
    base = source.url.rstrip("/")
    r = session.get(f"{base}/topstories.json", timeout=REQUEST_TIMEOUT)
    r.raise_for_status()
    ids = r.json() or []

    out: list[RawStory] = []
    for story_id in ids[:HN_SCAN_LIMIT]:
        if len(out) >= HN_QUOTA:
            break
        r = session.get(f"{base}/item/{story_id}.json", timeout=REQUEST_TIMEOUT)
        r.raise_for_status()
        item = r.json()
        if not item or not item.get("title"):
            continue
        title = str(item["title"]).strip()
        if not is_ai_related(title):
            continue
        out.append(
            make_story(
                group,
                source,
                id=f"hn-{item.get('id', story_id)}",
                title=title,
                url=first_non_empty(item.get("url"), f"https://news.ycombinator.com/item?id={story_id}"),
                published_at=parse_unix_timestamp(item.get("time")) or now,
                score=item.get("score"),
            )
        )
    return out


def fetch_rss(session: requests.Session, group: SourceGroup, source: SourceDef, now: datetime) -> list[RawStory]:
    r = session.get(
        source.url,
        timeout=REQUEST_TIMEOUT,
        headers={"User-Agent": BOT_UA, "Accept": "application/rss+xml, application/xml, text/xml"},
    )
    r.raise_for_status()
    parsed = feedparser.parse(r.content)
    trusted = group.source_type == "official"

    out: list[RawStory] = []
    for entry in parsed.entries:
        if len(out) >= RSS_ITEM_CAP:
            break
        title = strip_html(str(entry.get("title") or ""))
        link = str(entry.get("link") or "").strip()
        if not title or not link:
            continue
        description = strip_html(str(entry.get("summary") or entry.get("description") or ""))
        description = description[:RSS_DESCRIPTION_MAX]
        if not trusted and not is_ai_related(f"{title} {description}"):
            continue
        published = parse_date_any(entry.get("published")) or parse_date_any(entry.get("updated")) or now
        out.append(
            make_story(
                group,
                source,
                id=f"rss-{slugify(source.name)}-{len(out)}",
                title=title,
                url=link,
                published_at=published,
                description=description,
            )
        )
    return out


def fetch_telegram(session: requests.Session, group: SourceGroup, source: SourceDef, now: datetime) -> list[RawStory]:
    r = session.get(source.url, timeout=REQUEST_TIMEOUT, headers={"User-Agent": BROWSER_UA})
    r.raise_for_status()
    soup = BeautifulSoup(r.text, "html.parser")
    blocks = soup.select("div.tgme_widget_message_text")[:TELEGRAM_CANDIDATES]

    stamp = int(now.timestamp() * 1000)
    out: list[RawStory] = []
    for block in blocks:
        text = collapse_ws(block.get_text(" "))[:TELEGRAM_TEXT_MAX]
        if len(text) <= TELEGRAM_MIN_TEXT:
            continue
        title = text[:TELEGRAM_TITLE_MAX] + ("..." if len(text) > TELEGRAM_TITLE_MAX else "")
        out.append(
            make_story(
                group,
                source,
                id=f"tg-{stamp}-{len(out)}",
                title=title,
                url=source.url,
                published_at=now,
            )
        )
    return out[:TELEGRAM_KEEP]


def fetch_newsapi(session: requests.Session, group: SourceGroup, source: SourceDef, now: datetime) -> list[RawStory]:
    api_key = os.getenv("NEWS_API_KEY")
    if not api_key:
        print("NEWS_API_KEY not set, skipping NewsAPI")
        return []
    r = session.get(
        source.url,
        params={
            "q": NEWSAPI_QUERY,
            "language": "en",
            "sortBy": "publishedAt",
            "pageSize": 10,
            "apiKey": api_key,
        },
        timeout=REQUEST_TIMEOUT,
    )
    payload = r.json()
    if payload.get("status") != "ok":
        raise RuntimeError(f"NewsAPI error: {payload.get('message') or r.status_code}")

    out: list[RawStory] = []
    for article in payload.get("articles", []):
        if len(out) >= NEWSAPI_KEEP:
            break
        title = str(article.get("title") or "").strip()
        url = str(article.get("url") or "").strip()
        if not title or not url:
            continue
        out.append(
            make_story(
                group,
                source,
                id=f"newsapi-{len(out)}",
                title=title,
                url=url,
                published_at=parse_date_any(article.get("publishedAt")) or now,
                source_name=first_non_empty((article.get("source") or {}).get("name"), source.name),
                description=str(article.get("description") or "").strip() or None,
            )
        )
    return out


Fetcher = Callable[[requests.Session, SourceGroup, SourceDef, datetime], list[RawStory]]

FETCHERS: dict[str, Fetcher] = {
    "hackernews": fetch_hacker_news,
    "rss": fetch_rss,
    "telegram": fetch_telegram,
    "newsapi": fetch_newsapi,
}


def run_source(
    session: requests.Session,
    group: SourceGroup,
    source: SourceDef,
    now: datetime,
    fetchers: dict[str, Fetcher] | None = None,
) -> tuple[list[RawStory], dict[str, Any]]:
    fn = (fetchers or FETCHERS).get(source.kind)
    start = time.perf_counter()
    error = None
    items: list[RawStory] = []
    try:
        if fn is None:
            raise ValueError(f"Unknown source kind: {source.kind}")
        items = fn(session, group, source, now)
    except Exception as exc:
        error = str(exc)
        print(f"[warn] {source.name} fetch failed: {error}")
    elapsed_ms = int((time.perf_counter() - start) * 1000)
    status = {
        "source": source.name,
        "source_type": group.source_type,
        "kind": source.kind,
        "ok": error is None,
        "item_count": len(items),
        "duration_ms": elapsed_ms,
        "error": error,
    }
    return items, status


def collect_stories(
    session: requests.Session,
    registry: SourceRegistry,
    now: datetime,
    delay: float = DEFAULT_DELAY_SECONDS,
    pause: Callable[[float], Any] = time.sleep,
    fetchers: dict[str, Fetcher] | None = None,
) -> tuple[list[RawStory], list[dict[str, Any]]]:
    stories: list[RawStory] = []
    statuses: list[dict[str, Any]] = []

    groups = registry.ordered_groups()
    for idx, group in enumerate(groups):
        for source in group.sources:
            items, status = run_source(session, group, source, now, fetchers=fetchers)
            print(f"{source.name}: {len(items)} stories")
            stories.extend(items)
            statuses.append(status)
        if idx < len(groups) - 1 and delay > 0:
            pause(delay)

    print(f"Total stories collected: {len(stories)}")
    return stories, statuses


def sort_stories(stories: list[RawStory], registry: SourceRegistry) -> list[RawStory]:
    return sorted(
        stories,
        key=lambda s: (registry.priority_of(s.source_type), -s.published_at.timestamp()),
    )


def dedupe_stories(stories: list[RawStory]) -> list[RawStory]:
    seen: set[str] = set()
    out: list[RawStory] = []
    for story in stories:
        key = f"{story.title.strip().lower()}||{normalize_url(story.url)}"
        if key in seen:
            continue
        seen.add(key)
        out.append(story)
    return out


def select_top(stories: list[RawStory], registry: SourceRegistry, limit: int = DEFAULT_MAX_ITEMS) -> list[RawStory]:
    ordered = dedupe_stories(sort_stories(stories, registry))
    return ordered[: max(0, limit)]


BRAND_NAMES = [
    "OpenAI",
    "Anthropic",
    "NVIDIA",
    "Google",
    "Microsoft",
    "Meta",
    "Apple",
    "Claude",
    "GPT",
    "ChatGPT",
    "Gemini",
    "Copilot",
    "Llama",
    "Mistral",
    "DeepMind",
    "Hugging Face",
    "TensorFlow",
    "PyTorch",
    "CUDA",
    "GeForce",
    "RTX",
    "DGX",
    "Omniverse",
    "DALL-E",
    "Sora",
    "Midjourney",
    "Perplexity",
    "Groq",
    "xAI",
    "Grok",
    "AWS",
    "Azure",
    "Stability AI",
]

CODE_FENCE_RE = re.compile(r"^```[A-Za-z]*\s*|\s*```$")
BULLET_PREFIX_RE = re.compile(r"^\s*(?:[-•*]+\s*|\d+[.)]\s+)")
TRANSLATION_MARKER = "🌐"
LOCAL_HEADLINE = "עדכון מקומי מקהילת AI בישראל"
FALLBACK_SUMMARY = "חדשות חמות מעולם הבינה המלאכותית. לפרטים המלאים, בקרו בקישור המקורי."

HEADLINES: dict[str, list[str]] = {
    "product": ["השקה חדשה שתשנה את התעשייה", "מוצר חדש מבטיח לחולל מהפכה", "עדכון משמעותי שכדאי להכיר"],
    "funding": ["השקעה ענקית מעידה על פוטנציאל", "גיוס הון משמעותי בתעשיית ה-AI", "משקיעים מאמינים בטכנולוגיה"],
    "hardware": ["חומרה חדשה תאיץ את עולם ה-AI", "שבב חדש מבטיח ביצועים מרשימים", "פריצת דרך בתחום החומרה"],
    "research": ["מחקר חדש חושף תובנות מרתקות", "התקדמות משמעותית בתחום", "פיתוח חדש פותח אפשרויות"],
    "markets": ["תזוזות בשוק ה-AI", "השפעה על שוק ההון", "מגמות חדשות בשוק"],
}

SUMMARY_BULLETS: dict[str, list[str]] = {
    "official": ["הודעה רשמית מחברת הטכנולוגיה המובילה", "צפי להשפעה משמעותית על השוק", "פרטים מלאים בקישור המקורי"],
    "tech": ["סיקור מקיף מאתר טכנולוגיה מוביל", "ניתוח השלכות על התעשייה", "המשך מעקב אחר ההתפתחויות"],
    "research": ["מחקר חדש בתחום הבינה המלאכותית", "תרומה לקידום הידע בתחום", "פוטנציאל ליישומים עתידיים"],
    "community": ["נושא שמסעיר את קהילת הטכנולוגיה", "דיון ער בקרב מפתחים ומומחים", "שווה לעקוב אחר התגובות"],
    "local": ["עדכון חדש מקהילת ה-AI הישראלית", "מידע רלוונטי לשוק המקומי", "לפרטים נוספים בקישור המקורי"],
}


def protect_brands(text: str) -> tuple[str, list[tuple[str, str]]]:
    processed = text
    replacements: list[tuple[str, str]] = []
    for index, brand in enumerate(BRAND_NAMES):
        pattern = re.compile(rf"\b{re.escape(brand)}\b", re.IGNORECASE)
        if pattern.search(processed):
            placeholder = f"XBRAND{index}X"
            processed = pattern.sub(placeholder, processed)
            replacements.append((placeholder, brand))
    return processed, replacements


def restore_brands(text: str, replacements: list[tuple[str, str]]) -> str:
    restored = text
    for placeholder, brand in replacements:
        restored = re.sub(rf"\s*{placeholder}\s*", f" {brand} ", restored, flags=re.IGNORECASE)
    return collapse_ws(restored)


class MyMemoryTranslator:
    def __init__(self, session: requests.Session, langpair: str = TARGET_LANGPAIR) -> None:
        self.session = session
        self.langpair = langpair

    def translate(self, text: str) -> str | None:
        s = (text or "").strip()
        if len(s) < 3:
            return None
        processed, replacements = protect_brands(s)
        try:
            r = self.session.get(
                MYMEMORY_URL,
                params={"q": processed, "langpair": self.langpair},
                timeout=REQUEST_TIMEOUT,
            )
            payload = r.json()
        except Exception as exc:
            print(f"[warn] translation failed: {exc}")
            return None
        if not isinstance(payload, dict) or payload.get("responseStatus") != 200:
            return None
        translated = str((payload.get("responseData") or {}).get("translatedText") or "").strip()
        if not translated:
            return None
        restored = restore_brands(translated, replacements)
        if not restored or squash(restored) == squash(s):
            return None
        return restored


class OpenAIWriter:
    def __init__(self, api_key: str, model: str | None = None, timeout_sec: float = REQUEST_TIMEOUT) -> None:
        from openai import OpenAI

        self._client = OpenAI(api_key=api_key)
        self._model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self._timeout = timeout_sec

    def complete(self, system: str, user: str, max_tokens: int = 200) -> str | None:
        try:
            resp = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                max_tokens=max_tokens,
                timeout=self._timeout,
            )
            content = resp.choices[0].message.content if resp and resp.choices else None
        except Exception as exc:
            print(f"[warn] OpenAI request failed: {exc}")
            return None
        if not content:
            return None
        return content.strip() or None

    def translate(self, text: str) -> str | None:
        return self.complete(
            "You are a professional Hebrew translator specializing in tech news. Translate the following "
            "English tech news headline to Hebrew. Keep brand names in English. Return ONLY the Hebrew translation.",
            text,
        )

    def headline(self, title: str) -> str | None:
        return self.complete(
            "You are a Hebrew tech journalist. Create a catchy, professional Hebrew sub-headline (15-20 words) "
            "for this news story. Return ONLY the Hebrew headline.",
            title,
            max_tokens=100,
        )

    def summary(self, title: str) -> str | None:
        return self.complete(
            "You are a Hebrew tech journalist. Write a 2-3 sentence Hebrew summary for this AI news headline. "
            "Return ONLY the Hebrew summary.",
            title,
        )

    def bullets(self, title: str) -> list[str] | None:
        content = self.complete(
            "You are a Hebrew tech journalist. Create exactly 3 bullet points in Hebrew summarizing the key points "
            "of this AI news headline. Return as JSON array of 3 strings.",
            title,
            max_tokens=300,
        )
        if not content:
            return None
        return parse_bullets(content)


def parse_bullets(content: str) -> list[str] | None:
    text = CODE_FENCE_RE.sub("", content.strip()).strip()
    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = [
            BULLET_PREFIX_RE.sub("", line).strip(" \"',")
            for line in text.splitlines()
            if line.strip() and not line.strip().startswith(("```", "[", "]", "{", "}"))
        ]
    if isinstance(parsed, dict):
        parsed = next((v for v in parsed.values() if isinstance(v, list)), None)
    return valid_bullets(parsed)


def valid_bullets(value: Any) -> list[str] | None:
    if not isinstance(value, list) or len(value) < 3:
        return None
    bullets = [str(v).strip() for v in value[:3]]
    if not all(bullets):
        return None
    return bullets


def build_writer() -> OpenAIWriter | None:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return None
    return OpenAIWriter(api_key=api_key)


def hebrew_time_ago(published_at: datetime, now: datetime) -> str:
    diff_hours = int((now - published_at).total_seconds() // 3600)
    diff_days = diff_hours // 24
    if diff_hours < 1:
        return "לפני פחות משעה"
    if diff_hours == 1:
        return "לפני שעה"
    if diff_hours < 24:
        return f"לפני {diff_hours} שעות"
    if diff_days == 1:
        return "לפני יום"
    return f"לפני {diff_days} ימים"


def canned_headline(category: str, rng: random.Random) -> str:
    return rng.choice(HEADLINES.get(category) or HEADLINES[FALLBACK_CATEGORY])


def canned_bullets(source_type: str) -> list[str]:
    return list(SUMMARY_BULLETS.get(source_type) or SUMMARY_BULLETS["tech"])


@dataclass
class StoryEnricher:
    translator: Any
    writer: OpenAIWriter | None = None
    rng: random.Random = field(default_factory=random.Random)

    def translate_title(self, title: str) -> str | None:
        if self.writer is not None:
            translated = self.writer.translate(title)
            if translated:
                return translated
        return self.translator.translate(title)

    def enrich(self, story: RawStory, now: datetime) -> EnrichedNewsItem:
        category = detect_category(story.title, story.description or "")
        time_ago = hebrew_time_ago(story.published_at, now)

        if story.is_hebrew:
            return EnrichedNewsItem(
                story=story,
                display_title=story.title,
                headline=LOCAL_HEADLINE,
                summary=story.title,
                summary_bullets=tuple(canned_bullets("local")),
                category=category,
                time_ago=time_ago,
            )

        translated = self.translate_title(story.title)
        headline = None
        summary = None
        bullets = None
        if self.writer is not None:
            headline = self.writer.headline(story.title)
            summary = self.writer.summary(story.title)
            bullets = self.writer.bullets(story.title)

        headline = headline or canned_headline(category, self.rng)
        if not summary:
            summary = f"{translated}. {headline}" if translated else FALLBACK_SUMMARY

        return EnrichedNewsItem(
            story=story,
            display_title=translated or f"{TRANSLATION_MARKER} {story.title}",
            original_title=story.title,
            headline=headline,
            summary=summary,
            summary_bullets=tuple(valid_bullets(bullets) or canned_bullets(story.source_type)),
            category=category,
            time_ago=time_ago,
        )


def news_record(item: EnrichedNewsItem, position: int) -> dict[str, Any]:
    story = item.story
    record: dict[str, Any] = {
        "id": position + 1,
        "storyId": story.id,
        "title": item.display_title,
        "originalTitle": item.original_title,
        "headline": item.headline,
        "summary": item.summary,
        "summaryBullets": list(item.summary_bullets),
        "category": item.category,
        "categoryHebrew": CATEGORY_LABELS[item.category],
        "source": story.source_name,
        "sourceUrl": story.url,
        "sourceType": story.source_type,
        "sourceTypeHebrew": story.source_label,
        "sourceIcon": story.source_icon,
        "favicon": story.favicon,
        "publishedAt": iso(story.published_at),
        "timeAgo": item.time_ago,
        "isBreaking": position == 0,
        "isVerified": story.is_verified,
        "isHebrew": story.is_hebrew,
    }
    if story.score is not None:
        record["score"] = story.score
    return record


def build_snapshot(
    items: list[EnrichedNewsItem],
    ai_tools: list[Any],
    registry: SourceRegistry,
    now: datetime,
) -> dict[str, Any]:
    return {
        "news": [news_record(item, idx) for idx, item in enumerate(items)],
        "aiTools": list(ai_tools),
        "lastUpdated": iso(now),
        "sources": registry.names_by_type(),
    }


def load_snapshot(path: Path) -> dict[str, Any]:
    empty: dict[str, Any] = {"aiTools": []}
    if not path.exists():
        return empty
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:
        print(f"[warn] Could not read existing data ({exc}), creating fresh")
        return empty
    if not isinstance(data, dict):
        return empty
    if not isinstance(data.get("aiTools"), list):
        data["aiTools"] = []
    return data


def write_snapshot(path: Path, snapshot: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(snapshot, ensure_ascii=False, indent=2), encoding="utf-8")


def run_pipeline(
    session: requests.Session,
    registry: SourceRegistry,
    now: datetime,
    enricher: StoryEnricher,
    ai_tools: list[Any] | None = None,
    max_items: int = DEFAULT_MAX_ITEMS,
    delay: float = DEFAULT_DELAY_SECONDS,
    pause: Callable[[float], Any] = time.sleep,
    fetchers: dict[str, Fetcher] | None = None,
) -> tuple[dict[str, Any], list[dict[str, Any]]]:
    stories, statuses = collect_stories(session, registry, now, delay=delay, pause=pause, fetchers=fetchers)
    if not stories:
        raise NoStoriesError("No stories found from any source")

    top = select_top(stories, registry, limit=max_items)
    items: list[EnrichedNewsItem] = []
    for idx, story in enumerate(top, start=1):
        print(f"[{idx}/{len(top)}] {story.title[:50]}")
        items.append(enricher.enrich(story, now))

    return build_snapshot(items, ai_tools or [], registry, now), statuses


def status_payload(statuses: list[dict[str, Any]], now: datetime, news_count: int) -> dict[str, Any]:
    return {
        "generated_at": iso(now),
        "sources": statuses,
        "successful_sources": sum(1 for s in statuses if s["ok"]),
        "failed_sources": [s["source"] for s in statuses if not s["ok"]],
        "zero_item_sources": [s["source"] for s in statuses if s["ok"] and int(s.get("item_count") or 0) == 0],
        "fetched_stories": sum(int(s.get("item_count") or 0) for s in statuses),
        "news_count": news_count,
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Aggregate AI news into the Hebrew news snapshot")
    parser.add_argument("--output", default="data/news.json", help="Snapshot JSON file to write")
    parser.add_argument("--max-items", type=int, default=DEFAULT_MAX_ITEMS, help="Max news items to keep")
    parser.add_argument("--delay", type=float, default=DEFAULT_DELAY_SECONDS, help="Pause in seconds between source groups")
    parser.add_argument("--no-status", action="store_true", help="Skip writing source-status.json")
    args = parser.parse_args(argv)

    now = utc_now()
    output_path = Path(args.output)
    status_path = output_path.parent / "source-status.json"
    print(f"Starting news update at {iso(now)}")

    existing = load_snapshot(output_path)
    session = create_session()
    enricher = StoryEnricher(translator=MyMemoryTranslator(session), writer=build_writer())

    try:
        snapshot, statuses = run_pipeline(
            session,
            default_registry(),
            now,
            enricher,
            ai_tools=existing["aiTools"],
            max_items=max(0, args.max_items),
            delay=max(0.0, args.delay),
        )
    except NoStoriesError as exc:
        print(f"[error] {exc}")
        return 1

    write_snapshot(output_path, snapshot)
    print(f"Wrote: {output_path} ({len(snapshot['news'])} items)")
    if not args.no_status:
        write_snapshot(status_path, status_payload(statuses, now, len(snapshot["news"])))
        print(f"Wrote: {status_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
