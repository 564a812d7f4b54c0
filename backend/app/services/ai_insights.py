"""
AI Insight Generators
=====================

WHAT: LLM-backed analyses over Google Ads snapshots: campaign
      recommendations, search term classification, RSA ad copy and audit
      executive summaries.
WHY: Heuristics find the obvious waste; the model adds context-aware
     wording and prioritisation the UI can show as-is.
REFERENCES:
    - backend/app/routers/insights.py (consumer)
    - backend/app/telemetry/llm_trace.py (langfuse tracing)

HOW IT WORKS:
    1. Build a JSON-only prompt from the snapshot (truncated to keep tokens bounded)
    2. client.chat.completions.create() with the configured model
    3. Strip ```json fences and json.loads()
    4. Validate and normalise the structure
    5. On API error or unparseable output: log and return a deterministic
       fallback marked "fallback": true. No retries.
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional

from openai import OpenAI

from app.deps import get_settings
from app.services.analyzers.custom_rules import evaluate_rules
from app.services.exceptions import AIInsightError
from app.telemetry import log_fallback, log_generation

logger = logging.getLogger(__name__)

SYSTEM_MESSAGE = (
    "You are a Google Ads optimization expert. "
    "Always respond with valid JSON only."
)

SEARCH_TERM_LABELS = ("BOOST", "BLOCK", "TEST", "REFINE")
PRIORITIES = ("High", "Medium", "Low")

MAX_HEADLINE_CHARS = 30
MAX_HEADLINES = 15
MAX_DESCRIPTION_CHARS = 90
MAX_DESCRIPTIONS = 4

# Rows sent to the model per request
MAX_CAMPAIGNS_IN_PROMPT = 25
MAX_TERMS_IN_PROMPT = 100

CAMPAIGN_ANALYSIS_PROMPT = """Analyze these Google Ads campaigns and recommend optimizations.

Campaigns (last 30 days, costs in account currency):
{campaigns}

Return ONLY a JSON object:
{{
    "summary": "2-3 sentence overview",
    "recommendations": [
        {{
            "title": "short action title",
            "campaign_id": "id or null",
            "priority": "High|Medium|Low",
            "estimated_impact": "e.g. +15% conversions",
            "confidence": 0-100,
            "steps": ["concrete step", "..."]
        }}
    ]
}}
Give at most 5 recommendations, most important first."""

SEARCH_TERMS_PROMPT = """Classify each search term for a Google Ads account.

Labels:
- BOOST: converting or clearly high-intent, add as keyword
- BLOCK: irrelevant or wasteful, add as negative keyword
- TEST: not enough data yet
- REFINE: relevant but needs a tighter match type or landing page

Search terms:
{terms}

Return ONLY a JSON object:
{{"classifications": [{{"search_term": "...", "classification": "BOOST|BLOCK|TEST|REFINE", "reason": "...", "confidence": 0-100}}]}}"""

AD_COPY_PROMPT = """Write responsive search ad assets.

Business: {business}
Keywords: {keywords}

Rules:
- Up to {max_headlines} headlines, each at most {headline_chars} characters
- Up to {max_descriptions} descriptions, each at most {description_chars} characters
- Include keywords naturally, vary the angles (benefit, offer, trust, call to action)

Return ONLY a JSON object: {{"headlines": ["..."], "descriptions": ["..."]}}"""

AUDIT_SUMMARY_PROMPT = """Write an executive summary of this Google Ads audit for a business owner.

Audit:
{audit}

Return ONLY a JSON object:
{{"summary": "one paragraph", "key_findings": ["..."], "next_steps": ["..."]}}"""


def _get_client() -> OpenAI:
    settings = get_settings()
    if not settings.OPENAI_API_KEY:
        raise AIInsightError("OPENAI_API_KEY is not configured")
    return OpenAI(api_key=settings.OPENAI_API_KEY)


def _strip_fences(text: str) -> str:
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0]
    elif "```" in text:
        text = text.split("```")[1].split("```")[0]
    return text.strip()


def _complete_json(
    name: str,
    prompt: str,
    client: Optional[Any] = None,
    max_tokens: int = 1500,
    temperature: float = 0.3,
) -> Dict[str, Any]:
    """
    One chat completion parsed as a JSON object.

    Raises:
        AIInsightError: API failure, empty output or invalid JSON
    """
    client = client or _get_client()
    model = get_settings().OPENAI_MODEL
    messages = [
        {"role": "system", "content": SYSTEM_MESSAGE},
        {"role": "user", "content": prompt},
    ]

    start = time.time()
    try:
        response = client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
        )
    except Exception as e:
        raise AIInsightError(f"OpenAI request failed: {e}") from e
    latency_ms = int((time.time() - start) * 1000)

    raw = response.choices[0].message.content or ""
    usage = getattr(response, "usage", None)
    log_generation(
        name=name,
        model=model,
        input_messages=messages,
        output=raw,
        usage={
            "input": usage.prompt_tokens,
            "output": usage.completion_tokens,
            "total": usage.total_tokens,
        } if usage is not None and isinstance(getattr(usage, "total_tokens", None), int) else None,
        latency_ms=latency_ms,
    )

    try:
        parsed = json.loads(_strip_fences(raw))
    except json.JSONDecodeError as e:
        logger.error("[AI_INSIGHTS] %s returned invalid JSON: %s", name, raw[:500])
        raise AIInsightError(f"Invalid JSON from model: {e}") from e
    if not isinstance(parsed, dict):
        raise AIInsightError("Model returned JSON that is not an object")
    return parsed


def _confidence(value: Any, default: int = 50) -> int:
    try:
        return max(0, min(100, int(round(float(value)))))
    except (TypeError, ValueError):
        return default


def _compact_campaign(c: Dict[str, Any]) -> Dict[str, Any]:
    return {
        k: c.get(k)
        for k in ("id", "name", "status", "budget", "impressions", "clicks", "cost", "conversions", "ctr", "average_cpc")
    }


# =============================================================================
# CAMPAIGN ANALYSIS
# =============================================================================

def _fallback_campaign_analysis(campaigns: List[Dict[str, Any]]) -> Dict[str, Any]:
    optimizations = evaluate_rules(campaigns)
    recommendations = [
        {
            "title": o.title,
            "campaign_id": o.campaign_id,
            "priority": o.impact,
            "estimated_impact": o.estimated_impact,
            "confidence": o.confidence,
            "steps": [o.description],
        }
        for o in optimizations[:5]
    ]
    total_cost = sum(float(c.get("cost") or 0) for c in campaigns)
    total_conversions = sum(float(c.get("conversions") or 0) for c in campaigns)
    return {
        "summary": (
            f"{len(campaigns)} campaigns spent ${total_cost:.2f} for {total_conversions:.0f} conversions. "
            f"{len(optimizations)} rule-based issue(s) found."
        ),
        "recommendations": recommendations,
        "fallback": True,
    }


def analyze_campaigns(campaigns: List[Dict[str, Any]], client: Optional[Any] = None) -> Dict[str, Any]:
    """Prioritised recommendations with impact, confidence and steps."""
    if not campaigns:
        return {"summary": "No campaigns to analyze.", "recommendations": [], "fallback": False}

    prompt = CAMPAIGN_ANALYSIS_PROMPT.format(
        campaigns=json.dumps([_compact_campaign(c) for c in campaigns[:MAX_CAMPAIGNS_IN_PROMPT]], indent=2)
    )
    try:
        data = _complete_json("analyze_campaigns", prompt, client=client)
    except AIInsightError as e:
        logger.warning("[AI_INSIGHTS] Campaign analysis fell back to rules: %s", e)
        log_fallback("analyze_campaigns", str(e))
        return _fallback_campaign_analysis(campaigns)

    recommendations = []
    for rec in data.get("recommendations") or []:
        if not isinstance(rec, dict) or not rec.get("title"):
            continue
        priority = str(rec.get("priority", "Medium")).capitalize()
        recommendations.append({
            "title": rec["title"],
            "campaign_id": str(rec["campaign_id"]) if rec.get("campaign_id") else None,
            "priority": priority if priority in PRIORITIES else "Medium",
            "estimated_impact": rec.get("estimated_impact") or "",
            "confidence": _confidence(rec.get("confidence")),
            "steps": [str(s) for s in rec.get("steps") or []],
        })
    return {"summary": data.get("summary") or "", "recommendations": recommendations, "fallback": False}


# =============================================================================
# SEARCH TERMS
# =============================================================================

def classify_term_by_rules(term: Dict[str, Any]) -> Dict[str, Any]:
    """Deterministic BOOST/BLOCK/TEST label for one search term."""
    text = str(term.get("search_term") or "")
    cost = float(term.get("cost") or 0)
    conversions = float(term.get("conversions") or 0)

    if "free" in text.lower() and cost > 10 and conversions == 0:
        label, reason, confidence = "BLOCK", f"'free' query spent ${cost:.2f} with no conversions", 85
    elif conversions > 0:
        label, reason, confidence = "BOOST", f"{conversions:g} conversion(s)", 80
    else:
        label, reason, confidence = "TEST", "Not enough data to decide", 50
    return {"search_term": text, "classification": label, "reason": reason, "confidence": confidence}


def classify_search_terms(terms: List[Dict[str, Any]], client: Optional[Any] = None) -> Dict[str, Any]:
    """
    Label each search term BOOST/BLOCK/TEST/REFINE.

    Every input term gets exactly one classification; terms the model
    skipped or mislabelled are classified by rules.
    """
    if not terms:
        return {"classifications": [], "fallback": False}

    subset = terms[:MAX_TERMS_IN_PROMPT]
    prompt = SEARCH_TERMS_PROMPT.format(terms=json.dumps([
        {k: t.get(k) for k in ("search_term", "impressions", "clicks", "cost", "conversions", "campaign_name")}
        for t in subset
    ], indent=2))

    try:
        data = _complete_json("classify_search_terms", prompt, client=client, max_tokens=3000)
    except AIInsightError as e:
        logger.warning("[AI_INSIGHTS] Search term classification fell back to rules: %s", e)
        log_fallback("classify_search_terms", str(e))
        return {"classifications": [classify_term_by_rules(t) for t in terms], "fallback": True}

    by_term: Dict[str, Dict[str, Any]] = {}
    for item in data.get("classifications") or []:
        if not isinstance(item, dict):
            continue
        label = str(item.get("classification", "")).upper()
        if label in SEARCH_TERM_LABELS and item.get("search_term"):
            by_term[str(item["search_term"]).lower()] = {
                "classification": label,
                "reason": item.get("reason") or "",
                "confidence": _confidence(item.get("confidence")),
            }

    classifications = []
    for t in terms:
        model_result = by_term.get(str(t.get("search_term") or "").lower())
        if model_result:
            classifications.append({"search_term": t.get("search_term"), **model_result})
        else:
            classifications.append(classify_term_by_rules(t))
    return {"classifications": classifications, "fallback": False}


# =============================================================================
# AD COPY
# =============================================================================

def _fit(lines: Any, max_chars: int, max_count: int) -> List[str]:
    """Drop over-long, empty and duplicate lines; cap the count."""
    out: List[str] = []
    seen = set()
    for line in lines or []:
        text = str(line).strip()
        if not text or len(text) > max_chars or text.lower() in seen:
            continue
        seen.add(text.lower())
        out.append(text)
        if len(out) == max_count:
            break
    return out


def _fallback_ad_copy(business: str, keywords: List[str]) -> Dict[str, Any]:
    name = business.strip()
    headlines = [name] + [kw.title() for kw in keywords] + [
        f"Top Rated {keywords[0].title()}" if keywords else "Top Rated Service",
        "Get A Free Quote Today",
        "Trusted By Local Customers",
        "Fast, Friendly Service",
        "Call Now For Details",
    ]
    descriptions = [
        f"{name} offers {', '.join(keywords[:3])}. Contact us today." if keywords else f"{name}. Contact us today.",
        "Quality service at a fair price. Get in touch for a free, no-obligation quote.",
        "Experienced team, fast response and great reviews. Book your appointment online now.",
    ]
    return {
        "headlines": _fit(headlines, MAX_HEADLINE_CHARS, MAX_HEADLINES),
        "descriptions": _fit(descriptions, MAX_DESCRIPTION_CHARS, MAX_DESCRIPTIONS),
        "fallback": True,
    }


def generate_ad_copy(business: str, keywords: List[str], client: Optional[Any] = None) -> Dict[str, Any]:
    """RSA headlines (<= 30 chars, up to 15) and descriptions (<= 90 chars, up to 4)."""
    prompt = AD_COPY_PROMPT.format(
        business=business,
        keywords=", ".join(keywords),
        max_headlines=MAX_HEADLINES,
        headline_chars=MAX_HEADLINE_CHARS,
        max_descriptions=MAX_DESCRIPTIONS,
        description_chars=MAX_DESCRIPTION_CHARS,
    )
    try:
        data = _complete_json("generate_ad_copy", prompt, client=client, temperature=0.7)
    except AIInsightError as e:
        logger.warning("[AI_INSIGHTS] Ad copy fell back to templates: %s", e)
        log_fallback("generate_ad_copy", str(e))
        return _fallback_ad_copy(business, keywords)

    headlines = _fit(data.get("headlines"), MAX_HEADLINE_CHARS, MAX_HEADLINES)
    descriptions = _fit(data.get("descriptions"), MAX_DESCRIPTION_CHARS, MAX_DESCRIPTIONS)
    if not headlines or not descriptions:
        logger.warning("[AI_INSIGHTS] Ad copy had no usable lines, using templates")
        return _fallback_ad_copy(business, keywords)
    return {"headlines": headlines, "descriptions": descriptions, "fallback": False}


# =============================================================================
# AUDIT SUMMARY
# =============================================================================

def _audit_recommendations(audit: Dict[str, Any]) -> List[Dict[str, Any]]:
    recs = audit.get("recommendations")
    if not isinstance(recs, list):
        return []
    return [r for r in recs if isinstance(r, dict)]


def _fallback_audit_summary(audit: Dict[str, Any]) -> Dict[str, Any]:
    recs = _audit_recommendations(audit)
    health = audit.get("health_score")
    if isinstance(health, dict):
        health = health.get("overall")
    top = recs[:3]
    titles = [str(r.get("title") or "Untitled recommendation") for r in top]

    summary = (
        f"Account health score is {health}. " if health is not None else ""
    ) + f"The audit found {len(recs)} recommendation(s)."
    if top:
        summary += " Most urgent: " + "; ".join(
            f"{title} ({r.get('priority') or 'Unrated'})" for title, r in zip(titles, top)
        ) + "."
    return {
        "summary": summary,
        "key_findings": [str(r.get("description") or title) for title, r in zip(titles, top)],
        "next_steps": titles,
        "fallback": True,
    }


def summarize_audit(audit: Dict[str, Any], client: Optional[Any] = None) -> Dict[str, Any]:
    compact = {
        "health_score": audit.get("health_score"),
        "comparison": audit.get("comparison"),
        "recommendations": _audit_recommendations(audit)[:10],
    }
    prompt = AUDIT_SUMMARY_PROMPT.format(audit=json.dumps(compact, indent=2, default=str))
    try:
        data = _complete_json("summarize_audit", prompt, client=client, max_tokens=800)
    except AIInsightError as e:
        logger.warning("[AI_INSIGHTS] Audit summary fell back to template: %s", e)
        log_fallback("summarize_audit", str(e))
        return _fallback_audit_summary(audit)

    if not data.get("summary"):
        return _fallback_audit_summary(audit)
    return {
        "summary": data["summary"],
        "key_findings": [str(f) for f in data.get("key_findings") or []],
        "next_steps": [str(s) for s in data.get("next_steps") or []],
        "fallback": False,
    }
