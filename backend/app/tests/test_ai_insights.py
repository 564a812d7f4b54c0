"""Tests for the AI insight generators and their deterministic fallbacks.

The OpenAI client is always the `mock_llm` fixture (or missing), so no test
reaches the network.
"""

import json

import pytest

from app.deps import Settings
from app.services import ai_insights
from app.services.ai_insights import (
    SYSTEM_MESSAGE,
    analyze_campaigns,
    classify_search_terms,
    classify_term_by_rules,
    generate_ad_copy,
    summarize_audit,
)

from conftest import make_campaign


@pytest.fixture
def no_api_key(monkeypatch):
    settings = Settings(OPENAI_API_KEY=None, _env_file=None)
    monkeypatch.setattr(ai_insights, "get_settings", lambda: settings)
    return settings


def sent_messages(mock_llm):
    return mock_llm.chat.completions.create.call_args.kwargs["messages"]


class TestCompleteJson:
    def test_system_message_demands_json(self, mock_llm):
        mock_llm.set_response({"ok": True})

        assert ai_insights._complete_json("test", "prompt", client=mock_llm) == {"ok": True}

        messages = sent_messages(mock_llm)
        assert messages[0] == {"role": "system", "content": SYSTEM_MESSAGE}
        assert SYSTEM_MESSAGE.endswith("Always respond with valid JSON only.")

    def test_code_fences_are_stripped(self, mock_llm):
        mock_llm.set_response('Here you go:\n```json\n{"ok": true}\n```')
        assert ai_insights._complete_json("test", "prompt", client=mock_llm) == {"ok": True}

    def test_invalid_json_raises(self, mock_llm):
        mock_llm.set_response("not json at all")
        with pytest.raises(ai_insights.AIInsightError):
            ai_insights._complete_json("test", "prompt", client=mock_llm)

    def test_non_object_raises(self, mock_llm):
        mock_llm.set_response("[1, 2]")
        with pytest.raises(ai_insights.AIInsightError):
            ai_insights._complete_json("test", "prompt", client=mock_llm)

    def test_api_error_is_wrapped(self, mock_llm):
        mock_llm.chat.completions.create.side_effect = RuntimeError("timeout")
        with pytest.raises(ai_insights.AIInsightError):
            ai_insights._complete_json("test", "prompt", client=mock_llm)

    def test_generation_is_traced(self, mock_llm, monkeypatch):
        calls = []
        monkeypatch.setattr(ai_insights, "log_generation", lambda **kw: calls.append(kw))
        mock_llm.set_response({"ok": True})

        ai_insights._complete_json("analyze_campaigns", "prompt", client=mock_llm)

        assert calls[0]["name"] == "analyze_campaigns"
        assert calls[0]["usage"] is None


class TestAnalyzeCampaigns:
    def test_empty_input(self, mock_llm):
        result = analyze_campaigns([], client=mock_llm)

        assert result == {"summary": "No campaigns to analyze.", "recommendations": [], "fallback": False}
        mock_llm.chat.completions.create.assert_not_called()

    def test_model_output_is_normalised(self, mock_llm):
        mock_llm.set_response({
            "summary": "Brand is doing fine.",
            "recommendations": [
                {"title": "Raise budget", "campaign_id": 111, "priority": "high", "confidence": 130, "steps": ["Raise"]},
                {"title": "", "priority": "Low"},
                {"title": "Check landing page", "priority": "urgent", "confidence": "n/a"},
            ],
        })

        result = analyze_campaigns([make_campaign()], client=mock_llm)

        assert result["fallback"] is False
        assert result["summary"] == "Brand is doing fine."
        assert result["recommendations"][0] == {
            "title": "Raise budget",
            "campaign_id": "111",
            "priority": "High",
            "estimated_impact": "",
            "confidence": 100,
            "steps": ["Raise"],
        }
        assert result["recommendations"][1]["priority"] == "Medium"
        assert result["recommendations"][1]["confidence"] == 50
        assert len(result["recommendations"]) == 2

    def test_invalid_json_falls_back_to_rules(self, mock_llm):
        mock_llm.set_response("I think you should pause it")
        wasteful = make_campaign(id="9", name="Generic", clicks=80, conversions=0, cost=200.0)

        result = analyze_campaigns([wasteful], client=mock_llm)

        assert result["fallback"] is True
        assert result["recommendations"][0]["campaign_id"] == "9"
        assert "1 campaigns spent $200.00" in result["summary"]

    def test_missing_api_key_falls_back(self, no_api_key):
        result = analyze_campaigns([make_campaign()])
        assert result["fallback"] is True


class TestSearchTerms:
    def test_rule_classification(self):
        assert classify_term_by_rules({"search_term": "free shoes", "cost": 12.0, "conversions": 0})["classification"] == "BLOCK"
        assert classify_term_by_rules({"search_term": "free shoes", "cost": 5.0, "conversions": 0})["classification"] == "TEST"
        assert classify_term_by_rules({"search_term": "buy shoes", "cost": 5.0, "conversions": 2})["classification"] == "BOOST"

    def test_every_term_gets_a_label(self, mock_llm):
        mock_llm.set_response({"classifications": [
            {"search_term": "Buy Running Shoes", "classification": "boost", "reason": "converts", "confidence": 90},
            {"search_term": "shoe repair", "classification": "MAYBE", "reason": "?"},
        ]})
        terms = [
            {"search_term": "buy running shoes", "cost": 20.0, "conversions": 3},
            {"search_term": "shoe repair", "cost": 15.0, "conversions": 0},
            {"search_term": "free shoes", "cost": 30.0, "conversions": 0},
        ]

        result = classify_search_terms(terms, client=mock_llm)

        labels = [c["classification"] for c in result["classifications"]]
        assert labels == ["BOOST", "TEST", "BLOCK"]
        assert result["classifications"][0]["confidence"] == 90
        assert result["fallback"] is False

    def test_api_failure_classifies_all_by_rules(self, mock_llm):
        mock_llm.chat.completions.create.side_effect = RuntimeError("boom")
        terms = [{"search_term": "free stuff", "cost": 11.0, "conversions": 0}]

        result = classify_search_terms(terms, client=mock_llm)

        assert result["fallback"] is True
        assert result["classifications"][0]["classification"] == "BLOCK"

    def test_empty(self, mock_llm):
        assert classify_search_terms([], client=mock_llm) == {"classifications": [], "fallback": False}


class TestAdCopy:
    def test_limits_are_enforced(self, mock_llm):
        mock_llm.set_response({
            "headlines": ["Fast Plumbing", "fast plumbing", "x" * 31] + [f"Headline {i}" for i in range(20)],
            "descriptions": ["Licensed plumbers, same-day service.", "y" * 91, "Call now.", "Free quotes.", "Fair prices.", "Extra."],
        })

        result = generate_ad_copy("Acme Plumbing", ["plumber", "drain cleaning"], client=mock_llm)

        assert result["fallback"] is False
        assert len(result["headlines"]) == 15
        assert result["headlines"][0] == "Fast Plumbing"
        assert all(len(h) <= 30 for h in result["headlines"])
        assert len({h.lower() for h in result["headlines"]}) == 15
        assert len(result["descriptions"]) == 4
        assert all(len(d) <= 90 for d in result["descriptions"])

    def test_unusable_output_uses_templates(self, mock_llm):
        mock_llm.set_response({"headlines": ["z" * 40], "descriptions": []})

        result = generate_ad_copy("Acme Plumbing", ["plumber"], client=mock_llm)

        assert result["fallback"] is True
        assert "Acme Plumbing" in result["headlines"]
        assert all(len(h) <= 30 for h in result["headlines"])
        assert all(len(d) <= 90 for d in result["descriptions"])

    def test_prompt_mentions_limits(self, mock_llm):
        mock_llm.set_response({"headlines": ["A"], "descriptions": ["B"]})
        generate_ad_copy("Acme", ["plumber"], client=mock_llm)

        prompt = sent_messages(mock_llm)[1]["content"]
        assert "at most 30 characters" in prompt
        assert "at most 90 characters" in prompt


class TestAuditSummary:
    AUDIT = {
        "health_score": {"overall": 62.5},
        "recommendations": [
            {"priority": "Critical", "title": "Fix broken final URLs", "description": "2 ad(s) broken"},
            {"priority": "High", "title": "Spend dropped sharply", "description": "Spend is down 40.0%"},
            {"priority": "Medium", "title": "Add sitelinks", "description": "1 sitelink(s) active"},
            {"priority": "Low", "title": "Health check warning", "description": "QS low"},
        ],
    }

    def test_model_summary(self, mock_llm):
        mock_llm.set_response({"summary": "Fix URLs first.", "key_findings": ["URLs"], "next_steps": ["Fix"]})

        result = summarize_audit(self.AUDIT, client=mock_llm)

        assert result == {"summary": "Fix URLs first.", "key_findings": ["URLs"], "next_steps": ["Fix"], "fallback": False}
        audit_json = sent_messages(mock_llm)[1]["content"]
        assert json.dumps("Fix broken final URLs") in audit_json

    def test_fallback_uses_top_three(self, mock_llm):
        mock_llm.set_response("{}")

        result = summarize_audit(self.AUDIT, client=mock_llm)

        assert result["fallback"] is True
        assert result["summary"].startswith("Account health score is 62.5.")
        assert result["next_steps"] == ["Fix broken final URLs", "Spend dropped sharply", "Add sitelinks"]

    def test_fallback_tolerates_partial_audit(self, mock_llm):
        mock_llm.chat.completions.create.side_effect = RuntimeError("model down")
        audit = {"recommendations": [{"title": "Fix URLs", "priority": "Critical"}, "stray"], "health_score": 71}

        result = summarize_audit(audit, client=mock_llm)

        assert result == {
            "summary": "Account health score is 71. The audit found 1 recommendation(s). Most urgent: Fix URLs (Critical).",
            "key_findings": ["Fix URLs"],
            "next_steps": ["Fix URLs"],
            "fallback": True,
        }
