"""Hashtag extraction and the trending-topics pass.

Every post contributes its explicit tags plus the ``#hashtags`` found in its
text. Each mention is weighted by the age of the post so that a burst of
recent posts outranks an old but larger pile.
"""
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .models import Post, TrendingTopic

HASHTAG_PATTERN = re.compile(r"(?<![\w#])#(\w+(?:[.+-]\w+)*)")

RECENCY_HALF_LIFE_HOURS = 72.0

CATEGORY_KEYWORDS = [
    ("Web Dev", ("js", "script", "html", "css", "web")),
    ("AI", ("ai", "ml", "gpt", "learning")),
    ("Cloud", ("cloud", "aws", "azure", "kubernetes")),
    ("Security", ("security", "crypto", "hack", "privacy")),
    ("Mobile", ("mobile", "android", "ios", "app")),
]
DEFAULT_CATEGORY = "General"

SAMPLE_TOPICS = [
    TrendingTopic(id="1", category="Web Dev", name="#TypeScript5.0", post_count=4218, score=4218),
    TrendingTopic(id="2", category="AI", name="#GPT4", post_count=3112, score=3112),
    TrendingTopic(id="3", category="Cloud", name="#Kubernetes", post_count=2854, score=2854),
    TrendingTopic(id="4", category="Security", name="#ZeroTrust", post_count=1932, score=1932),
]


def _unique(tags: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for tag in tags:
        key = tag.lower()
        if tag and key not in seen:
            seen.add(key)
            result.append(tag)
    return result


def extract_hashtags(text: Optional[str]) -> List[str]:
    """Return the hashtags in ``text`` without the leading ``#``."""
    if not text:
        return []
    return _unique(HASHTAG_PATTERN.findall(text))


def categorize(tag: str) -> str:
    lowered = tag.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def post_hashtags(post: Post) -> List[str]:
    tags = [tag.strip().lstrip('#') for tag in post.tags or []]
    return _unique(tags + extract_hashtags(post.content))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def recency_weight(created_at: datetime, now: Optional[datetime] = None) -> float:
    now = _as_utc(now or datetime.now(timezone.utc))
    age_hours = (now - _as_utc(created_at)).total_seconds() / 3600
    if age_hours <= 0:
        return 1.0
    return 0.5 ** (age_hours / RECENCY_HALF_LIFE_HOURS)


def compute_trending(posts: Iterable[Post], now: Optional[datetime] = None) -> List[TrendingTopic]:
    now = now or datetime.now(timezone.utc)
    stats: Dict[str, dict] = {}

    for post in posts:
        weight = recency_weight(post.created_at, now)
        for tag in post_hashtags(post):
            entry = stats.setdefault(tag.lower(), {
                "name": f"#{tag}",
                "category": categorize(tag),
                "count": 0,
                "score": 0.0,
            })
            entry["count"] += 1
            entry["score"] += weight

    ranked = sorted(stats.values(), key=lambda s: (-s["score"], -s["count"], s["name"].lower()))
    return [
        TrendingTopic(
            id=f"tag-{rank}",
            name=entry["name"],
            category=entry["category"],
            post_count=entry["count"],
            score=round(entry["score"], 4),
        )
        for rank, entry in enumerate(ranked)
    ]


def filter_topics(topics: Iterable[TrendingTopic], term: Optional[str]) -> List[TrendingTopic]:
    needle = (term or "").strip().lstrip('#').lower()
    if not needle:
        return []
    return [topic for topic in topics if needle in topic.name.lower()]
