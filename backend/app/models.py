"""SQLAlchemy ORM models and enums.

This module defines the persisted schema: users, their Google Ads
credentials, the detected MCC hierarchy, and an execution log for
optimization mutations. Campaign and account snapshots are never
persisted; they are fetched live per request.
"""

import uuid
from datetime import datetime
import enum

from sqlalchemy import Column, String, DateTime, Enum, Integer, ForeignKey, JSON, Text, Boolean, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, declarative_base


# Single Base used by the entire application
Base = declarative_base()


# Enums ---------------------------------------------------------

class OptimizationTypeEnum(str, enum.Enum):
    """Mutations the optimization executor knows how to apply."""
    pause_campaign = "pause_campaign"
    enable_campaign = "enable_campaign"
    add_negative_keywords = "add_negative_keywords"
    adjust_bids = "adjust_bids"
    reduce_budget = "reduce_budget"
    update_budget = "update_budget"
    alert_only = "alert_only"


# Models --------------------------------------------------------

class User(Base):
    """A person who signs in to the dashboard.

    Identity comes from the JWT `sub` claim (email). Google Ads access is
    configured separately in `UserGoogleAdsCredentials`.
    """
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    google_ads_credentials = relationship(
        "UserGoogleAdsCredentials",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )
    hierarchy = relationship("McCHierarchyRecord", back_populates="user", cascade="all, delete-orphan")

    def __str__(self):
        return f"{self.name or 'user'} ({self.email})"


class UserGoogleAdsCredentials(Base):
    """Per-user Google Ads credential bundle.

    WHAT:
        Either a flag to use the shared service credentials, or the user's
        own developer token + OAuth client + refresh token. A short-lived
        access token may be cached alongside its expiry.
    WHY:
        Agencies bring their own developer token; everyone else rides on the
        shared one. Secrets are Fernet-encrypted (see app/security.py).
    """
    __tablename__ = "user_google_ads_credentials"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, unique=True)

    uses_own_credentials = Column(Boolean, default=False, nullable=False)
    is_configured = Column(Boolean, default=False, nullable=False)
    customer_id = Column(String, nullable=True)

    developer_token_enc = Column(Text, nullable=True)
    client_id = Column(String, nullable=True)
    client_secret_enc = Column(Text, nullable=True)
    refresh_token_enc = Column(Text, nullable=True)
    access_token_enc = Column(Text, nullable=True)
    access_token_expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="google_ads_credentials")

    def __str__(self):
        mode = "own" if self.uses_own_credentials else "shared"
        return f"Google Ads credentials ({mode}, configured={self.is_configured})"


class McCHierarchyRecord(Base):
    """One node of a two-level manager/client tree.

    Level 0 is a manager or a standalone account, level 1 a client under
    `manager_customer_id`. A client's manager must itself be stored for the
    same user with `is_manager = True`. Rows are rebuilt wholesale by
    hierarchy detection and are otherwise only added by the resolver.
    """
    __tablename__ = "mcc_hierarchy"
    __table_args__ = (UniqueConstraint("user_id", "customer_id", name="uq_mcc_hierarchy_user_customer"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    customer_id = Column(String, nullable=False)
    manager_customer_id = Column(String, nullable=True)
    is_manager = Column(Boolean, default=False, nullable=False)
    level = Column(Integer, default=0, nullable=False)
    account_name = Column(String, nullable=True)
    detected_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="hierarchy")

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "manager_customer_id": self.manager_customer_id,
            "is_manager": bool(self.is_manager),
            "level": self.level,
            "account_name": self.account_name,
        }

    def __str__(self):
        return f"{self.customer_id} (level {self.level}, manager={self.manager_customer_id})"


class OptimizationExecution(Base):
    """Audit log of executed optimization items, one row per item."""
    __tablename__ = "optimization_executions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    customer_id = Column(String, nullable=False)
    optimization_id = Column(String, nullable=False)
    action_type = Column(Enum(OptimizationTypeEnum, values_callable=lambda obj: [e.value for e in obj]), nullable=True)
    campaign_id = Column(String, nullable=True)
    success = Column(Boolean, nullable=False)
    error = Column(Text, nullable=True)
    response = Column(JSON, nullable=True)
    executed_at = Column(DateTime, default=datetime.utcnow)
