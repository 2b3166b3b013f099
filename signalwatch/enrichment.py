"""Derived metadata for signals: inferred industries and confidence."""

from __future__ import annotations

from .schema import Severity, SignalCandidate, SourceType

# industry -> keywords matched as lower-case substrings
_INDUSTRY_KEYWORDS: dict[str, list[str]] = {
    "healthcare": ["hospital", "medical", "healthcare", "patient", "clinic", "pharmacy"],
    "finance": ["bank", "financial", "payment", "credit card", "fintech"],
    "government": ["government", "federal", "agency", "military", "defense"],
    "manufacturing": ["manufacturing", "factory", "plant", "scada"],
    "energy": ["energy", "utility", "power plant", "electric"],
    "telecommunications": ["telecom", "isp", "network provider", "carrier"],
    "education": ["university", "college", "school", "education"],
    "retail": ["retail", "store", "shopping", "ecommerce"],
    "technology": ["technology", "software", "cloud", "saas"],
    "transportation": ["transportation", "airline", "shipping", "logistics"],
}

BASE_CONFIDENCE = 50
_SEVERITY_BONUS = {Severity.CRITICAL: 10, Severity.HIGH: 5}


def infer_industries(text: str) -> list[str]:
    """Return industries whose keywords appear anywhere in *text*.

    Matching is plain substring search, so "isp" also hits "display".
    """
    lowered = text.lower()
    return [
        industry
        for industry, keywords in _INDUSTRY_KEYWORDS.items()
        if any(kw in lowered for kw in keywords)
    ]


def calculate_confidence(candidate: SignalCandidate) -> int:
    """Additive confidence heuristic, capped at 100."""
    confidence = BASE_CONFIDENCE
    if candidate.cve_ids:
        confidence += 30
    if candidate.is_verified:
        confidence += 15
    confidence += _SEVERITY_BONUS.get(candidate.severity, 0)
    if candidate.is_featured:
        confidence += 5
    return min(100, confidence)


def enrich_signal(candidate: SignalCandidate) -> SignalCandidate:
    """Return a copy of *candidate* with missing derived fields filled in."""
    updates: dict = {}

    if not candidate.target_industries:
        text = " ".join(
            (candidate.title, candidate.summary or "", candidate.full_content or "")
        )
        updates["target_industries"] = infer_industries(text)

    if candidate.confidence_level is None:
        updates["confidence_level"] = max(0, min(100, calculate_confidence(candidate)))

    if candidate.source_type is None:
        updates["source_type"] = SourceType.MANUAL

    return candidate.model_copy(update=updates)
