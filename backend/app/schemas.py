"""Pydantic schemas for request/response payloads."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class ErrorResponse(BaseModel):
    """Standard error response."""

    success: bool = Field(default=False, description="Always false for errors")
    error: str = Field(description="Error message")

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": False,
                "error": "No credentials available (neither user nor shared)"
            }
        }
    }


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service status")

    model_config = {
        "json_schema_extra": {
            "example": {"status": "ok"}
        }
    }


# =============================================================================
# CREDENTIALS
# =============================================================================

class CredentialsUpdate(BaseModel):
    """Payload for saving Google Ads credentials.

    Secrets left empty keep their stored value.
    """

    uses_own_credentials: bool = Field(description="Use the user's own developer token and OAuth client")
    customer_id: Optional[str] = Field(default=None, description="Default Google Ads customer ID")
    developer_token: Optional[str] = Field(default=None, description="Google Ads developer token")
    client_id: Optional[str] = Field(default=None, description="OAuth client ID")
    client_secret: Optional[str] = Field(default=None, description="OAuth client secret")
    refresh_token: Optional[str] = Field(default=None, description="OAuth refresh token")

    model_config = {
        "json_schema_extra": {
            "example": {
                "uses_own_credentials": True,
                "customer_id": "123-456-7890",
                "developer_token": "dev-token",
                "client_id": "1234.apps.googleusercontent.com",
                "client_secret": "secret",
                "refresh_token": "1//refresh"
            }
        }
    }


class CredentialsStatusResponse(BaseModel):
    configured: bool
    uses_own_credentials: bool
    own_credentials_complete: bool
    shared_available: bool
    customer_id: Optional[str] = None


# =============================================================================
# ACCOUNTS
# =============================================================================

class HierarchyDetectRequest(BaseModel):
    primary_customer_id: Optional[str] = Field(
        default=None,
        description="Root account to detect from; defaults to the credentials' customer ID"
    )


class LoginCustomerIdResponse(BaseModel):
    customer_id: str
    login_customer_id: Optional[str] = None
    detection_method: Literal["hierarchy_table", "dynamic_detection", "direct_access"]


# =============================================================================
# CAMPAIGNS
# =============================================================================

class CampaignCreateRequest(BaseModel):
    """Payload for creating a paused Search campaign."""

    name: str = Field(min_length=1, max_length=255)
    daily_budget: float = Field(gt=0, description="Daily budget in account currency")
    keywords: List[str] = Field(default_factory=list)
    headlines: List[str] = Field(default_factory=list)
    descriptions: List[str] = Field(default_factory=list)
    final_url: Optional[str] = None
    match_type: Literal["EXACT", "PHRASE", "BROAD"] = "PHRASE"
    cpc_bid: float = Field(default=1.0, gt=0)
    ad_group_name: Optional[str] = None

    @field_validator("headlines")
    @classmethod
    def _headline_length(cls, v: List[str]) -> List[str]:
        too_long = [h for h in v if len(h) > 30]
        if too_long:
            raise ValueError(f"Headlines must be at most 30 characters: {too_long}")
        return v

    @field_validator("descriptions")
    @classmethod
    def _description_length(cls, v: List[str]) -> List[str]:
        too_long = [d for d in v if len(d) > 90]
        if too_long:
            raise ValueError(f"Descriptions must be at most 90 characters: {too_long}")
        return v


class BudgetUpdateRequest(BaseModel):
    amount: float = Field(gt=0, description="New daily budget in account currency")


class NegativeKeywordsRequest(BaseModel):
    campaign_id: str
    keywords: List[str] = Field(min_length=1)
    match_type: Literal["EXACT", "PHRASE", "BROAD"] = "BROAD"


# =============================================================================
# ANALYSIS / OPTIMIZATIONS
# =============================================================================

class CustomRulesRequest(BaseModel):
    """A custom rule set; see CustomRule.from_dict for the rule shape."""

    rules: List[Dict[str, Any]] = Field(min_length=1)


class SuggestRequest(BaseModel):
    use_ai: bool = Field(default=False, description="Classify search terms with the model instead of rules")
    rules: Optional[List[Dict[str, Any]]] = None


class OptimizationItem(BaseModel):
    id: str
    type: str = Field(description="Optimization type, e.g. pause_campaign")
    campaign_id: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    title: Optional[str] = None


class ExecuteRequest(BaseModel):
    """Optimizations to execute; with approved_ids set, only those run."""

    optimizations: List[OptimizationItem]
    approved_ids: Optional[List[str]] = None


# =============================================================================
# INSIGHTS
# =============================================================================

class AdCopyRequest(BaseModel):
    business: str = Field(min_length=1, description="Business name and short description")
    keywords: List[str] = Field(default_factory=list)


class AuditSummaryRequest(BaseModel):
    audit: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Audit result to summarize; a fresh audit is run when omitted"
    )
