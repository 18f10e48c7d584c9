"""
Mapping between the landing page analysis payload and ledger sections.
"""

from typing import Any, Callable, Dict, List, Tuple

from app.models.analysis import SectionName

# (payload key, section, envelope builder)
SECTION_PAYLOADS: List[Tuple[str, SectionName, Callable[[Any], Dict[str, Any]]]] = [
    ("customerInsight", SectionName.CUSTOMER_INSIGHT, lambda value: {"cards": value}),
    ("campaignTargeting", SectionName.CAMPAIGN_TARGETING, lambda value: {"cards": value}),
    ("mediaPlan", SectionName.MEDIA_PLAN, lambda value: {"weeks": value}),
    # already shaped as {"competitors": [...], "insights": [...]}
    ("competitiveAnalysis", SectionName.COMPETITIVE_ANALYSIS,
     lambda value: value if isinstance(value, dict) else {"competitors": value}),
    ("adCreatives", SectionName.AD_CREATIVE, lambda value: {"creatives": value}),
]


def extract_sections(analysis: Any) -> Dict[SectionName, Dict[str, Any]]:
    """Return the ledger payload for every section present in an analysis result.

    A section whose value is missing or empty counts as not produced, and so
    does every section when the analysis is not an object.
    """
    if not isinstance(analysis, dict):
        return {}

    sections = {}
    for key, section, envelope in SECTION_PAYLOADS:
        value = analysis.get(key)
        if value:
            sections[section] = envelope(value)
    return sections


def competitors_of(section_data: Any) -> List[Dict[str, Any]]:
    if not isinstance(section_data, dict):
        return []
    competitors = section_data.get("competitors")
    if not isinstance(competitors, list):
        return []
    return [c for c in competitors if isinstance(c, dict)]
