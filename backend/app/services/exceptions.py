"""
Google Ads Service Exceptions
=============================

Custom exception types for credential resolution, MCC resolution and
Google Ads REST calls.

WHY THIS FILE EXISTS
--------------------
Calls to Google Ads fail in ways the UI must tell apart:
- No credentials at all (route the user to setup)
- OAuth refresh rejected (user must re-authenticate)
- No manager account grants access to the target customer
- Quota exhaustion

Every exception carries the HTTP status the API should answer with, so
app/main.py can render them all as `{"success": false, "error": ...}`.

RELATED FILES
-------------
- app/services/credential_service.py: Raises CredentialsNotConfiguredError, TokenRefreshError
- app/services/mcc_resolver.py: Raises NoAccessPathError
- app/services/google_ads_client.py: Raises GoogleAdsError and subclasses
- app/main.py: Exception handlers
"""

from typing import Any, Optional


class GoogleAdsError(Exception):
    """
    Base exception for all Google Ads service errors.

    WHAT:
        Parent class carrying a message, the HTTP status to answer with and
        optional structured details from the upstream response.

    USAGE:
        try:
            client.list_campaigns(customer_id)
        except GoogleAdsError as e:
            return e.to_dict()
    """

    http_status: int = 502

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details

    def to_user_message(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.to_user_message()}


class CredentialsNotConfiguredError(GoogleAdsError):
    """
    Neither the user's own nor the shared credentials are available.

    RECOVERY:
        The UI routes the user to the credentials setup flow.
    """

    http_status = 412

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "No credentials available (neither user nor shared)")

    def to_dict(self) -> dict:
        return {"success": False, "error": self.to_user_message(), "needs_setup": True}


class TokenRefreshError(GoogleAdsError):
    """
    OAuth refresh-token grant failed.

    RECOVERY:
        User must re-authorize Google Ads access.
    """

    http_status = 401

    def to_user_message(self) -> str:
        return f"{self.message}. Please reconnect your Google Ads account."

    def to_dict(self) -> dict:
        return {"success": False, "error": self.to_user_message(), "needs_reauth": True}


class NoAccessPathError(GoogleAdsError):
    """
    No directly accessible account and no manager probe succeeded.

    ATTRIBUTES:
        customer_id: Target customer that could not be reached
        candidates_tried: Manager IDs probed, in order
    """

    http_status = 403

    def __init__(self, customer_id: str, candidates_tried: Optional[list] = None):
        self.customer_id = customer_id
        self.candidates_tried = list(candidates_tried or [])
        super().__init__(
            f"No valid access path to customer {customer_id} "
            f"(tried {len(self.candidates_tried)} manager account(s))"
        )


class GoogleAdsPermissionError(GoogleAdsError):
    """Google answered 403 (wrong login-customer-id or missing access)."""

    http_status = 403


class QuotaExhaustedError(GoogleAdsError):
    """
    Google Ads API quota exhausted.

    ATTRIBUTES:
        retry_seconds: Seconds Google suggests to wait (default 10 min)
    """

    http_status = 429

    def __init__(self, message: str, retry_seconds: int = 600):
        super().__init__(message, status_code=429)
        self.retry_seconds = retry_seconds

    def to_user_message(self) -> str:
        if self.retry_seconds < 300:
            return "The Google Ads API is temporarily unavailable. Please try again in a few minutes."
        return f"Google Ads API quota exhausted. Retry in {self.retry_seconds} seconds."


class AIInsightError(GoogleAdsError):
    """OpenAI call failed or returned unusable output. ai_insights falls back on it."""

    http_status = 503
