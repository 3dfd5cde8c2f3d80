"""
Mock collaborators for pipeline testing (mock_mode=True).

Three tight incidents so every stage gets realistic input. Each raw article
is (topic, title, body, source_id); the topic is carried in the article URL,
which is what MockClusterer groups on. MockSummarizer is extractive, so its
summaries pass the fact guard unless a test injects a fabricated fact.
"""

import re
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Dict, List

from ..schemas.news import (
    ArticleIn, CandidateSummary, ClusterAssignment, ClusterRef,
    IncidentContext, StoredArticle,
)

MOCK_ARTICLES_RAW = [
    # ── Incident 1: fuel price revision ─────────────────────────────────────
    (
        "fuel-price",
        "Fuel Prices Cut From Midnight",
        "The Ceylon Petroleum Corporation reduced the price of Petrol 92 by Rs. 12 "
        "to Rs. 299 per litre from midnight on 1 March 2025. Auto Diesel drops by Rs. 7.",
        "dailymirror",
    ),
    (
        "fuel-price",
        "CPC Announces Monthly Fuel Price Revision",
        "Under the monthly pricing formula the Ceylon Petroleum Corporation cut Petrol 92 "
        "by Rs. 12 to Rs. 299. Kerosene prices remain unchanged.",
        "newsfirst",
    ),
    (
        "fuel-price",
        "Three-Wheeler Fares Unchanged Despite Fuel Cut",
        "The All Island Three Wheeler Drivers Association said fares stay the same "
        "even after the Rs. 12 reduction announced on 1 March 2025.",
        "adaderana",
    ),

    # ── Incident 2: floods in the Western Province ──────────────────────────
    (
        "floods",
        "Floods Displace Thousands in Colombo District",
        "The Disaster Management Centre said 4,350 families were affected after 210 mm "
        "of rain fell in 24 hours. Kelani River levels are rising near Hanwella.",
        "adaderana",
    ),
    (
        "floods",
        "Schools Closed as Heavy Rain Continues",
        "The Ministry of Education closed schools in Colombo and Gampaha districts. "
        "The Disaster Management Centre reported 4,350 affected families.",
        "dailymirror",
    ),
    (
        "floods",
        "Flood Warning Issued for Kelani River Basin",
        "The Irrigation Department issued a flood warning for low-lying areas along the "
        "Kelani River. Rainfall of 210 mm was recorded in Colombo.",
        "newsfirst",
    ),

    # ── Incident 3: policy rate decision ────────────────────────────────────
    (
        "policy-rate",
        "Central Bank Holds Policy Rate at 8.0 Percent",
        "The Central Bank of Sri Lanka kept the Overnight Policy Rate unchanged at 8.0 "
        "percent, citing inflation of 2.1 percent in February.",
        "economynext",
    ),
    (
        "policy-rate",
        "CBSL Keeps Rates Steady, Sees Inflation Rising Gradually",
        "Governor Nandalal Weerasinghe said inflation is expected to move towards the "
        "5 percent target. The Overnight Policy Rate stays at 8.0 percent.",
        "dailyft",
    ),
]

MOCK_TOPIC_META: Dict[str, Dict] = {
    "fuel-price": {
        "headline": "Fuel prices reduced in monthly revision",
        "translations": {
            "si": "මාසික සංශෝධනයෙන් ඉන්ධන මිල අඩු කෙරේ",
            "ta": "மாதாந்த திருத்தத்தில் எரிபொருள் விலை குறைப்பு",
        },
        "category": "economy",
        "topics": ["fuel", "prices"],
    },
    "floods": {
        "headline": "Floods hit Colombo and Gampaha districts",
        "translations": {
            "si": "කොළඹ සහ ගම්පහ දිස්ත්‍රික්කවල ගංවතුර",
            "ta": "கொழும்பு மற்றும் கம்பஹா மாவட்டங்களில் வெள்ளம்",
        },
        "category": "local",
        "topics": ["weather", "disaster"],
    },
    "policy-rate": {
        "headline": "Central Bank keeps policy rate unchanged",
        "translations": {
            "si": "මහ බැංකුව ප්‍රතිපත්ති පොලී අනුපාතය නොවෙනස්ව තබයි",
            "ta": "மத்திய வங்கி கொள்கை வட்டி வீதத்தை மாற்றாமல் வைத்துள்ளது",
        },
        "category": "business",
        "topics": ["economy", "banking"],
    },
}

# Labels prefixed to translated mock summaries
_LANG_LABELS = {"si": "සාරාංශය:", "ta": "சுருக்கம்:"}

_TOPIC_FROM_URL = re.compile(r"https://[^/]+/([^/]+)/")


def build_mock_articles() -> List[ArticleIn]:
    now = datetime.now(timezone.utc)
    return [
        ArticleIn(
            source_id=source_id,
            url=f"https://{source_id}.example/{topic}/{i}",
            title=title,
            raw_text=body,
            language="en",
            published_at=now,
        )
        for i, (topic, title, body, source_id) in enumerate(MOCK_ARTICLES_RAW)
    ]


class MockIngestor:
    async def fetch(self) -> List[ArticleIn]:
        return build_mock_articles()


class MockClusterer:
    """Groups articles by the topic segment of their URL."""

    async def assign(
        self, articles: List[StoredArticle], existing: List[ClusterRef],
    ) -> List[ClusterAssignment]:
        by_headline = {c.headline: c.id for c in existing}
        groups: "OrderedDict[str, List[str]]" = OrderedDict()
        for article in articles:
            match = _TOPIC_FROM_URL.match(article.url)
            topic = match.group(1) if match else "general"
            groups.setdefault(topic, []).append(article.id)

        assignments = []
        for topic, article_ids in groups.items():
            meta = MOCK_TOPIC_META.get(topic, {"headline": topic.replace("-", " ").title()})
            assignments.append(ClusterAssignment(
                cluster_id=by_headline.get(meta["headline"]),
                headline=meta["headline"],
                headline_translations=meta.get("translations", {}),
                category=meta.get("category"),
                topics=meta.get("topics", []),
                article_ids=article_ids,
            ))
        return assignments


class MockSummarizer:
    """Extractive: first sentence of each of the first two sources."""

    async def summarize(self, incident: IncidentContext) -> List[CandidateSummary]:
        sentences = []
        for text in incident.source_texts[:2]:
            body = text.split("\n", 1)[-1]
            first = re.split(r"(?<=\.)\s+(?=[A-Z])", body.strip(), maxsplit=1)[0]
            if first and first not in sentences:
                sentences.append(first)
        english = " ".join(sentences) or incident.headline

        summaries = []
        for lang in incident.languages:
            if lang == "en":
                summaries.append(CandidateSummary(lang=lang, text=english))
            else:
                label = _LANG_LABELS.get(lang, f"[{lang}]")
                summaries.append(CandidateSummary(lang=lang, text=f"{label} {english}"))
        return summaries
