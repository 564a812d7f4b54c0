"""Google Ads REST client service abstraction.

WHAT:
    Encapsulates Google Ads REST API usage behind a small, testable service
    layer. Provides GAQL search with paging, account discovery, entity
    listings (campaigns, ads, keywords, search terms) and the mutations the
    dashboard pushes back (pause, budget, negative keywords, bids, campaign
    creation). Includes retries and rate limiting.

WHY:
    - Separation of concerns: keep HTTP/GAQL details out of routers.
    - Single responsibility: this module only talks to Google Ads.
    - Testability: the HTTP client is injected, so tests pass a fake.

REFERENCES:
    https://developers.google.com/google-ads/api/rest/overview
    app/services/mcc_resolver.py (decides login_customer_id)
    app/services/credential_service.py (supplies access/developer tokens)
"""

from __future__ import annotations

import logging
import random
import re
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import httpx

from app.services.exceptions import GoogleAdsError, GoogleAdsPermissionError, QuotaExhaustedError

logger = logging.getLogger(__name__)

API_BASE_URL = "https://googleads.googleapis.com"
DEFAULT_API_VERSION = "v18"
MICROS_PER_UNIT = 1_000_000

DATE_RANGE_PRESETS = {
    "TODAY",
    "YESTERDAY",
    "LAST_7_DAYS",
    "LAST_14_DAYS",
    "LAST_30_DAYS",
    "THIS_MONTH",
    "LAST_MONTH",
}

DateRange = Union[str, Tuple[date, date]]


def clean_customer_id(value: Any) -> str:
    """Normalize a customer ID: drop `customers/` prefix, dashes and whitespace.

    "customers/123-456-7890" -> "1234567890"
    """
    if value is None:
        return ""
    cleaned = str(value).strip()
    if cleaned.startswith("customers/"):
        cleaned = cleaned[len("customers/"):]
    return cleaned.replace("-", "").replace(" ", "")


def to_micros(amount: float) -> int:
    """Currency units to micros ($10 = 10,000,000 micros)."""
    return int(round(float(amount) * MICROS_PER_UNIT))


def from_micros(value: Any) -> float:
    # REST encodes int64 fields as strings
    return int(value or 0) / MICROS_PER_UNIT


def _get(row: Dict[str, Any], path: str, default: Any = None) -> Any:
    """Dotted lookup into a REST result row: _get(row, "campaign.id")."""
    node: Any = row
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def _date_clause(date_range: DateRange) -> str:
    if isinstance(date_range, tuple):
        start, end = date_range
        return f"segments.date BETWEEN '{start.isoformat()}' AND '{end.isoformat()}'"
    if date_range not in DATE_RANGE_PRESETS:
        raise ValueError(f"Unsupported date range: {date_range}")
    return f"segments.date DURING {date_range}"


# =============================================================================
# RETRIES / RATE LIMITING
# =============================================================================

def _extract_retry_seconds(error_str: str) -> Optional[int]:
    """Parse hints like "Retry in 723 seconds" from a quota error message."""
    match = re.search(r'[Rr]etry in (\d+) seconds', error_str)
    if match:
        return int(match.group(1))
    return None


class GoogleAdsRateLimiter:
    """Simple token bucket rate limiter.

    WHAT:
        Guard outgoing requests to honor QPS/quota. Defaults are conservative.
    WHY:
        Avoid RESOURCE_EXHAUSTED errors and smooth out bursts (hierarchy
        detection and MCC probing fire many small queries back to back).
    """

    def __init__(self, capacity: int = 15, refill_per_sec: float = 5.0) -> None:
        self.capacity = capacity
        self.tokens = capacity
        self.refill_per_sec = refill_per_sec
        self.last = time.monotonic()

    def acquire(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last
        self.last = now
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_per_sec)
        if self.tokens < 1:
            missing = 1 - self.tokens
            time.sleep(max(0.0, missing / self.refill_per_sec))
            self.tokens = 0
        self.tokens = max(0.0, self.tokens - 1)


def _is_quota_error(e: Exception) -> bool:
    if isinstance(e, QuotaExhaustedError):
        return True
    error_str = str(e)
    return (
        getattr(e, "status_code", None) == 429
        or 'RESOURCE_EXHAUSTED' in error_str
        or 'Too many requests' in error_str
    )


def _is_transient(e: Exception) -> bool:
    if isinstance(e, httpx.TransportError):
        return True
    status_code = getattr(e, "status_code", None)
    if status_code is not None and status_code >= 500:
        return True
    error_str = str(e)
    return any(k in error_str for k in ('UNAVAILABLE', 'INTERNAL', 'deadline exceeded'))


def _with_retries(func):
    """Retry decorator with exponential backoff and jitter.

    WHAT:
        Retries transient errors (UNAVAILABLE, INTERNAL, 5xx, network) up to
        3 attempts. Quota exhaustion raises QuotaExhaustedError carrying
        Google's retry hint instead of hammering the API.

    WHY:
        Reads are safe to repeat. Mutations are NOT wrapped: a create that
        timed out may still have been applied.
    """

    def wrapper(self, *args, **kwargs):  # type: ignore
        max_attempts = 3
        base = 1.0
        for attempt in range(1, max_attempts + 1):
            try:
                return func(self, *args, **kwargs)
            except Exception as e:  # noqa: BLE001
                error_str = str(e)

                if _is_quota_error(e):
                    retry_seconds = getattr(e, "retry_seconds", None) or _extract_retry_seconds(error_str)
                    if retry_seconds and retry_seconds <= 120 and attempt < max_attempts:
                        logger.info(
                            "[GOOGLE_ADS] Quota warning (attempt %d/%d), waiting %ds",
                            attempt, max_attempts, retry_seconds
                        )
                        time.sleep(retry_seconds)
                        continue
                    logger.warning(
                        "[GOOGLE_ADS] Quota exhausted, retry hint %ss. Giving up.",
                        retry_seconds
                    )
                    if isinstance(e, QuotaExhaustedError):
                        raise
                    raise QuotaExhaustedError(
                        f"Google Ads quota exhausted: {error_str[:200]}",
                        retry_seconds=retry_seconds or 600,
                    ) from e

                if not _is_transient(e) or attempt == max_attempts:
                    raise

                sleep_s = min(base * (2 ** (attempt - 1)) * (1 + random.random()), 30.0)
                logger.info(
                    "[GOOGLE_ADS] Transient error (attempt %d/%d), retrying in %.1fs: %s",
                    attempt, max_attempts, sleep_s, error_str[:100]
                )
                time.sleep(sleep_s)
    wrapper.__name__ = func.__name__
    wrapper.__doc__ = func.__doc__
    return wrapper


def _error_from_response(response: Any) -> GoogleAdsError:
    """Build a typed error from a non-2xx REST response.

    Google returns `{"error": {"code", "message", "status", "details"}}`.
    """
    status_code = response.status_code
    details = None
    message = (response.text or "")[:300]
    upstream_status = ""
    try:
        body = response.json()
        err = body.get("error", {}) if isinstance(body, dict) else {}
        message = err.get("message") or message
        upstream_status = err.get("status") or ""
        details = err.get("details")
    except ValueError:
        pass

    label = f"{status_code} {upstream_status}" if upstream_status else str(status_code)
    text = f"Google Ads API error {label}: {message}"
    if status_code == 429 or upstream_status == "RESOURCE_EXHAUSTED":
        return QuotaExhaustedError(text, retry_seconds=_extract_retry_seconds(message) or 600)
    if status_code == 403:
        return GoogleAdsPermissionError(text, status_code=status_code, details=details)
    return GoogleAdsError(text, status_code=status_code, details=details)


# =============================================================================
# CLIENT
# =============================================================================

@dataclass
class CampaignDraft:
    """Everything needed to create a paused Search campaign in one go."""

    name: str
    daily_budget: float
    keywords: List[str] = field(default_factory=list)
    headlines: List[str] = field(default_factory=list)
    descriptions: List[str] = field(default_factory=list)
    final_url: Optional[str] = None
    match_type: str = "PHRASE"
    cpc_bid: Optional[float] = None
    ad_group_name: Optional[str] = None


class GAdsClient:
    """Testable wrapper around the Google Ads REST API.

    WHAT:
        - Sends authenticated requests (Bearer + developer-token, and
          login-customer-id when acting through a manager).
        - Provides GAQL search and convenience methods for common listings
          and mutations. Monetary values are returned in currency units.
    WHY:
        - Keep routers/services free from REST/GAQL details.
    """

    def __init__(
        self,
        access_token: str,
        developer_token: str,
        login_customer_id: Optional[str] = None,
        api_version: str = DEFAULT_API_VERSION,
        http_client: Optional[Any] = None,
        rate_limiter: Optional[GoogleAdsRateLimiter] = None,
    ) -> None:
        self.access_token = access_token
        self.developer_token = developer_token
        self.login_customer_id = clean_customer_id(login_customer_id) or None
        self.api_version = api_version
        self._http = http_client or httpx.Client(timeout=30.0)
        self._rate = rate_limiter or GoogleAdsRateLimiter()

    def with_login_customer_id(self, login_customer_id: Optional[str]) -> "GAdsClient":
        """Same credentials, HTTP client and rate limiter; different login header."""
        return GAdsClient(
            access_token=self.access_token,
            developer_token=self.developer_token,
            login_customer_id=login_customer_id,
            api_version=self.api_version,
            http_client=self._http,
            rate_limiter=self._rate,
        )

    # --- Transport ------------------------------------------------------
    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "developer-token": self.developer_token,
            "Content-Type": "application/json",
        }
        if self.login_customer_id:
            headers["login-customer-id"] = self.login_customer_id
        return headers

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{API_BASE_URL}/{self.api_version}/{path}"
        self._rate.acquire()
        response = self._http.request(method, url, headers=self._headers(), json=payload)
        if response.status_code >= 400:
            error = _error_from_response(response)
            logger.warning("[GOOGLE_ADS] %s %s failed: %s", method, path, error)
            raise error
        return response.json() if response.text else {}

    # --- Core API -------------------------------------------------------
    @_with_retries
    def list_accessible_customers(self) -> List[str]:
        """Customer IDs directly accessible to the OAuth identity (no header needed)."""
        data = self._request("GET", "customers:listAccessibleCustomers")
        return [clean_customer_id(rn) for rn in data.get("resourceNames", [])]

    @_with_retries
    def _search_page(self, customer_id: str, query: str, page_token: Optional[str]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"query": query}
        if page_token:
            payload["pageToken"] = page_token
        return self._request("POST", f"customers/{customer_id}/googleAds:search", payload)

    def search(self, customer_id: str, query: str) -> List[Dict[str, Any]]:
        """Run a GAQL query and return all result rows across pages."""
        customer_id = clean_customer_id(customer_id)
        rows: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        while True:
            data = self._search_page(customer_id, query, page_token)
            rows.extend(data.get("results", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return rows

    def mutate(self, customer_id: str, resource: str, operations: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
        """POST `{resource}:mutate` (e.g. resource="campaigns")."""
        customer_id = clean_customer_id(customer_id)
        logger.info("[GOOGLE_ADS] Mutating %s for %s (%d ops)", resource, customer_id, len(operations))
        return self._request(
            "POST",
            f"customers/{customer_id}/{resource}:mutate",
            {"operations": list(operations)},
        )

    def probe(self, customer_id: str) -> bool:
        """Minimal query proving the current login header grants access.

        Quota errors propagate; any other API error means "no access".
        """
        try:
            self.search(customer_id, "SELECT customer.id FROM customer LIMIT 1")
            return True
        except QuotaExhaustedError:
            raise
        except GoogleAdsError as e:
            logger.debug(
                "[GOOGLE_ADS] Probe of %s via %s failed: %s",
                customer_id, self.login_customer_id, e
            )
            return False

    # --- Accounts -------------------------------------------------------
    def get_account_info(self, customer_id: str) -> Dict[str, Any]:
        rows = self.search(
            customer_id,
            """
            SELECT
                customer.id,
                customer.descriptive_name,
                customer.currency_code,
                customer.time_zone,
                customer.manager,
                customer.test_account
            FROM customer
            LIMIT 1
            """,
        )
        row = rows[0] if rows else {}
        return {
            "customer_id": clean_customer_id(_get(row, "customer.id", customer_id)),
            "name": _get(row, "customer.descriptiveName"),
            "currency_code": _get(row, "customer.currencyCode"),
            "time_zone": _get(row, "customer.timeZone"),
            "is_manager": bool(_get(row, "customer.manager", False)),
            "is_test_account": bool(_get(row, "customer.testAccount", False)),
        }

    def list_accounts(self) -> List[Dict[str, Any]]:
        """Accessible customers enriched with their info.

        Accounts that cannot be read directly (e.g. cancelled, or only
        reachable through a manager) are still listed with accessible=False.
        """
        out: List[Dict[str, Any]] = []
        for customer_id in self.list_accessible_customers():
            try:
                info = self.get_account_info(customer_id)
                info["accessible"] = True
            except QuotaExhaustedError:
                raise
            except GoogleAdsError as e:
                logger.info("[GOOGLE_ADS] Account %s not directly readable: %s", customer_id, e)
                info = {"customer_id": customer_id, "name": None, "accessible": False, "error": e.message}
            out.append(info)
        return out

    def list_child_accounts(self, manager_customer_id: str) -> List[Dict[str, Any]]:
        """Direct (level 1) clients of a manager account."""
        manager_customer_id = clean_customer_id(manager_customer_id)
        rows = self.with_login_customer_id(manager_customer_id).search(
            manager_customer_id,
            """
            SELECT
                customer_client.id,
                customer_client.descriptive_name,
                customer_client.manager,
                customer_client.level,
                customer_client.status
            FROM customer_client
            WHERE customer_client.level = 1
            """,
        )
        return [
            {
                "customer_id": clean_customer_id(_get(r, "customerClient.id")),
                "name": _get(r, "customerClient.descriptiveName"),
                "is_manager": bool(_get(r, "customerClient.manager", False)),
                "level": int(_get(r, "customerClient.level", 1) or 1),
                "status": _get(r, "customerClient.status"),
            }
            for r in rows
        ]

    # --- Listings -------------------------------------------------------
    def list_campaigns(
        self,
        customer_id: str,
        date_range: DateRange = "LAST_30_DAYS",
        active_only: bool = False,
    ) -> List[Dict[str, Any]]:
        """Campaigns with budget and aggregated metrics for the date range."""
        status_clause = "campaign.status = 'ENABLED'" if active_only else "campaign.status != 'REMOVED'"
        q = f"""
            SELECT
                campaign.id,
                campaign.name,
                campaign.status,
                campaign.advertising_channel_type,
                campaign_budget.resource_name,
                campaign_budget.amount_micros,
                metrics.impressions,
                metrics.clicks,
                metrics.cost_micros,
                metrics.conversions,
                metrics.conversions_value,
                metrics.ctr,
                metrics.average_cpc,
                metrics.search_impression_share
            FROM campaign
            WHERE {_date_clause(date_range)} AND {status_clause}
            ORDER BY metrics.cost_micros DESC
        """
        out: List[Dict[str, Any]] = []
        for r in self.search(customer_id, q):
            out.append({
                "id": str(_get(r, "campaign.id")),
                "name": _get(r, "campaign.name"),
                "status": _get(r, "campaign.status"),
                "channel_type": _get(r, "campaign.advertisingChannelType"),
                "budget": from_micros(_get(r, "campaignBudget.amountMicros")),
                "budget_resource_name": _get(r, "campaignBudget.resourceName"),
                "impressions": int(_get(r, "metrics.impressions", 0) or 0),
                "clicks": int(_get(r, "metrics.clicks", 0) or 0),
                "cost": from_micros(_get(r, "metrics.costMicros")),
                "conversions": float(_get(r, "metrics.conversions", 0) or 0),
                "conversion_value": float(_get(r, "metrics.conversionsValue", 0) or 0),
                "ctr": float(_get(r, "metrics.ctr", 0) or 0),
                "average_cpc": from_micros(_get(r, "metrics.averageCpc")),
                "search_impression_share": _get(r, "metrics.searchImpressionShare"),
            })
        return out

    def list_ads(self, customer_id: str, campaign_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Ads with RSA assets, final URLs, approval status and lifetime metrics."""
        q = """
            SELECT
                ad_group_ad.ad.id,
                ad_group_ad.ad.type,
                ad_group_ad.ad.final_urls,
                ad_group_ad.ad.responsive_search_ad.headlines,
                ad_group_ad.ad.responsive_search_ad.descriptions,
                ad_group_ad.status,
                ad_group_ad.policy_summary.approval_status,
                ad_group.id,
                ad_group.name,
                campaign.id,
                campaign.name,
                metrics.impressions,
                metrics.clicks,
                metrics.cost_micros,
                metrics.conversions
            FROM ad_group_ad
            WHERE ad_group_ad.status != 'REMOVED'
        """
        if campaign_id:
            q += f" AND campaign.id = {int(campaign_id)}"

        out: List[Dict[str, Any]] = []
        for r in self.search(customer_id, q):
            rsa = _get(r, "adGroupAd.ad.responsiveSearchAd", {}) or {}
            out.append({
                "ad_id": str(_get(r, "adGroupAd.ad.id")),
                "type": _get(r, "adGroupAd.ad.type"),
                "final_urls": list(_get(r, "adGroupAd.ad.finalUrls", []) or []),
                "headlines": [h.get("text") for h in rsa.get("headlines", []) if h.get("text")],
                "descriptions": [d.get("text") for d in rsa.get("descriptions", []) if d.get("text")],
                "status": _get(r, "adGroupAd.status"),
                "approval_status": _get(r, "adGroupAd.policySummary.approvalStatus"),
                "ad_group_id": str(_get(r, "adGroup.id")),
                "ad_group_name": _get(r, "adGroup.name"),
                "campaign_id": str(_get(r, "campaign.id")),
                "campaign_name": _get(r, "campaign.name"),
                "impressions": int(_get(r, "metrics.impressions", 0) or 0),
                "clicks": int(_get(r, "metrics.clicks", 0) or 0),
                "cost": from_micros(_get(r, "metrics.costMicros")),
                "conversions": float(_get(r, "metrics.conversions", 0) or 0),
            })
        return out

    def list_keywords(
        self,
        customer_id: str,
        campaign_id: Optional[str] = None,
        date_range: DateRange = "LAST_30_DAYS",
    ) -> List[Dict[str, Any]]:
        """Keywords with match type, quality score, current bid and metrics."""
        q = f"""
            SELECT
                ad_group_criterion.criterion_id,
                ad_group_criterion.keyword.text,
                ad_group_criterion.keyword.match_type,
                ad_group_criterion.status,
                ad_group_criterion.quality_info.quality_score,
                ad_group_criterion.effective_cpc_bid_micros,
                ad_group.id,
                campaign.id,
                campaign.name,
                metrics.impressions,
                metrics.clicks,
                metrics.cost_micros,
                metrics.conversions
            FROM keyword_view
            WHERE {_date_clause(date_range)} AND ad_group_criterion.status != 'REMOVED'
        """
        if campaign_id:
            q += f" AND campaign.id = {int(campaign_id)}"

        out: List[Dict[str, Any]] = []
        for r in self.search(customer_id, q):
            quality = _get(r, "adGroupCriterion.qualityInfo.qualityScore")
            out.append({
                "criterion_id": str(_get(r, "adGroupCriterion.criterionId")),
                "text": _get(r, "adGroupCriterion.keyword.text"),
                "match_type": _get(r, "adGroupCriterion.keyword.matchType"),
                "status": _get(r, "adGroupCriterion.status"),
                "quality_score": int(quality) if quality is not None else None,
                "cpc_bid": from_micros(_get(r, "adGroupCriterion.effectiveCpcBidMicros")),
                "ad_group_id": str(_get(r, "adGroup.id")),
                "campaign_id": str(_get(r, "campaign.id")),
                "campaign_name": _get(r, "campaign.name"),
                "impressions": int(_get(r, "metrics.impressions", 0) or 0),
                "clicks": int(_get(r, "metrics.clicks", 0) or 0),
                "cost": from_micros(_get(r, "metrics.costMicros")),
                "conversions": float(_get(r, "metrics.conversions", 0) or 0),
            })
        return out

    def list_search_terms(
        self,
        customer_id: str,
        campaign_id: Optional[str] = None,
        date_range: DateRange = "LAST_30_DAYS",
    ) -> List[Dict[str, Any]]:
        """Search terms that triggered ads, most expensive first."""
        q = f"""
            SELECT
                search_term_view.search_term,
                search_term_view.status,
                campaign.id,
                campaign.name,
                ad_group.id,
                metrics.impressions,
                metrics.clicks,
                metrics.cost_micros,
                metrics.conversions,
                metrics.ctr
            FROM search_term_view
            WHERE {_date_clause(date_range)}
        """
        if campaign_id:
            q += f" AND campaign.id = {int(campaign_id)}"
        q += " ORDER BY metrics.cost_micros DESC LIMIT 500"

        out: List[Dict[str, Any]] = []
        for r in self.search(customer_id, q):
            out.append({
                "search_term": _get(r, "searchTermView.searchTerm"),
                "status": _get(r, "searchTermView.status"),
                "campaign_id": str(_get(r, "campaign.id")),
                "campaign_name": _get(r, "campaign.name"),
                "ad_group_id": str(_get(r, "adGroup.id")),
                "impressions": int(_get(r, "metrics.impressions", 0) or 0),
                "clicks": int(_get(r, "metrics.clicks", 0) or 0),
                "cost": from_micros(_get(r, "metrics.costMicros")),
                "conversions": float(_get(r, "metrics.conversions", 0) or 0),
                "ctr": float(_get(r, "metrics.ctr", 0) or 0),
            })
        return out

    def count_sitelinks(self, customer_id: str) -> int:
        """Distinct enabled sitelink assets attached to campaigns."""
        rows = self.search(
            customer_id,
            """
            SELECT campaign_asset.asset
            FROM campaign_asset
            WHERE campaign_asset.field_type = 'SITELINK' AND campaign_asset.status = 'ENABLED'
            """,
        )
        return len({_get(r, "campaignAsset.asset") for r in rows})

    def get_campaign_budget(self, customer_id: str, campaign_id: str) -> Dict[str, Any]:
        rows = self.search(
            customer_id,
            f"""
            SELECT campaign.id, campaign_budget.resource_name, campaign_budget.amount_micros
            FROM campaign
            WHERE campaign.id = {int(campaign_id)}
            """,
        )
        if not rows:
            raise GoogleAdsError(f"Campaign {campaign_id} not found", status_code=404)
        return {
            "resource_name": _get(rows[0], "campaignBudget.resourceName"),
            "amount": from_micros(_get(rows[0], "campaignBudget.amountMicros")),
        }

    # --- Mutations ------------------------------------------------------
    def _campaign_resource(self, customer_id: str, campaign_id: str) -> str:
        return f"customers/{clean_customer_id(customer_id)}/campaigns/{campaign_id}"

    def set_campaign_status(self, customer_id: str, campaign_id: str, status: str) -> Dict[str, Any]:
        return self.mutate(customer_id, "campaigns", [{
            "update": {"resourceName": self._campaign_resource(customer_id, campaign_id), "status": status},
            "updateMask": "status",
        }])

    def pause_campaign(self, customer_id: str, campaign_id: str) -> Dict[str, Any]:
        return self.set_campaign_status(customer_id, campaign_id, "PAUSED")

    def enable_campaign(self, customer_id: str, campaign_id: str) -> Dict[str, Any]:
        return self.set_campaign_status(customer_id, campaign_id, "ENABLED")

    def update_campaign_budget(self, customer_id: str, budget_resource_name: str, amount: float) -> Dict[str, Any]:
        """Set a budget's daily amount (currency units, converted to micros)."""
        if amount <= 0:
            raise ValueError("Budget amount must be positive")
        return self.mutate(customer_id, "campaignBudgets", [{
            "update": {"resourceName": budget_resource_name, "amountMicros": str(to_micros(amount))},
            "updateMask": "amountMicros",
        }])

    def add_negative_keywords(
        self,
        customer_id: str,
        campaign_id: str,
        keywords: Iterable[str],
        match_type: str = "BROAD",
    ) -> Dict[str, Any]:
        """Create campaign-level negative keyword criteria (deduplicated)."""
        unique: List[str] = []
        for kw in keywords:
            text = (kw or "").strip().lower()
            if text and text not in unique:
                unique.append(text)
        if not unique:
            raise ValueError("No negative keywords to add")

        campaign = self._campaign_resource(customer_id, campaign_id)
        operations = [
            {"create": {"campaign": campaign, "negative": True, "keyword": {"text": text, "matchType": match_type}}}
            for text in unique
        ]
        return self.mutate(customer_id, "campaignCriteria", operations)

    def update_keyword_bids(
        self,
        customer_id: str,
        updates: Sequence[Tuple[str, str, float]],
    ) -> Dict[str, Any]:
        """Update CPC bids; each update is (ad_group_id, criterion_id, cpc_bid)."""
        customer_id = clean_customer_id(customer_id)
        operations = [
            {
                "update": {
                    "resourceName": f"customers/{customer_id}/adGroupCriteria/{ad_group_id}~{criterion_id}",
                    "cpcBidMicros": str(to_micros(bid)),
                },
                "updateMask": "cpcBidMicros",
            }
            for ad_group_id, criterion_id, bid in updates
        ]
        return self.mutate(customer_id, "adGroupCriteria", operations)

    def update_keyword_bid(self, customer_id: str, ad_group_id: str, criterion_id: str, cpc_bid: float) -> Dict[str, Any]:
        return self.update_keyword_bids(customer_id, [(ad_group_id, criterion_id, cpc_bid)])

    def create_campaign(self, customer_id: str, draft: CampaignDraft) -> Dict[str, Any]:
        """Create budget, paused Search campaign, ad group, keywords and RSA.

        The campaign is created PAUSED so nothing spends before review.
        Keywords and the ad are skipped when the draft has none (an RSA
        needs a final URL, 3+ headlines and 2+ descriptions).
        """
        customer_id = clean_customer_id(customer_id)
        stamp = datetime.utcnow().strftime("%Y%m%d%H%M%S")

        budget = self.mutate(customer_id, "campaignBudgets", [{"create": {
            "name": f"{draft.name} Budget {stamp}",
            "amountMicros": str(to_micros(draft.daily_budget)),
            "deliveryMethod": "STANDARD",
            "explicitlyShared": False,
        }}])
        budget_rn = budget["results"][0]["resourceName"]

        campaign = self.mutate(customer_id, "campaigns", [{"create": {
            "name": draft.name,
            "status": "PAUSED",
            "advertisingChannelType": "SEARCH",
            "campaignBudget": budget_rn,
            "manualCpc": {},
            "networkSettings": {
                "targetGoogleSearch": True,
                "targetSearchNetwork": True,
                "targetContentNetwork": False,
            },
        }}])
        campaign_rn = campaign["results"][0]["resourceName"]

        ad_group_payload: Dict[str, Any] = {
            "name": draft.ad_group_name or f"{draft.name} Ad Group",
            "campaign": campaign_rn,
            "status": "ENABLED",
            "type": "SEARCH_STANDARD",
        }
        if draft.cpc_bid:
            ad_group_payload["cpcBidMicros"] = str(to_micros(draft.cpc_bid))
        ad_group = self.mutate(customer_id, "adGroups", [{"create": ad_group_payload}])
        ad_group_rn = ad_group["results"][0]["resourceName"]

        keyword_rns: List[str] = []
        if draft.keywords:
            kw_result = self.mutate(customer_id, "adGroupCriteria", [
                {"create": {
                    "adGroup": ad_group_rn,
                    "status": "ENABLED",
                    "keyword": {"text": kw, "matchType": draft.match_type},
                }}
                for kw in draft.keywords
            ])
            keyword_rns = [r["resourceName"] for r in kw_result.get("results", [])]

        ad_rn = None
        if draft.final_url and len(draft.headlines) >= 3 and len(draft.descriptions) >= 2:
            ad_result = self.mutate(customer_id, "adGroupAds", [{"create": {
                "adGroup": ad_group_rn,
                "status": "ENABLED",
                "ad": {
                    "finalUrls": [draft.final_url],
                    "responsiveSearchAd": {
                        "headlines": [{"text": h} for h in draft.headlines[:15]],
                        "descriptions": [{"text": d} for d in draft.descriptions[:4]],
                    },
                },
            }}])
            ad_rn = ad_result["results"][0]["resourceName"]

        logger.info("[GOOGLE_ADS] Created campaign %s for %s", campaign_rn, customer_id)
        return {
            "budget": budget_rn,
            "campaign": campaign_rn,
            "campaign_id": campaign_rn.rsplit("/", 1)[-1],
            "ad_group": ad_group_rn,
            "keywords": keyword_rns,
            "ad": ad_rn,
        }
