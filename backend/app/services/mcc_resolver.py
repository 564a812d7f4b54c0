"""
Manager Account (MCC) Resolver
==============================

Decides which `login-customer-id` header a Google Ads call needs.

WHY THIS FILE EXISTS
--------------------
When the target customer is a client under a manager account, every call
must carry `login-customer-id: <manager>`. The wrong value fails with a
permission error and the right one is not knowable in advance, so we:

1. Check the in-process memo cache (customer_id -> login_customer_id | None)
2. Check the persisted hierarchy table
3. List customers directly accessible to the OAuth identity; a direct hit
   needs no header
4. Otherwise probe each accessible account as a candidate manager, in
   listing order, with a minimal query. First success wins.
5. Persist the discovered (client -> manager) pair and cache it

Probing is sequential: worst case is one probe per accessible account.

RELATED FILES
-------------
- app/services/google_ads_client.py: probe(), list_child_accounts()
- app/models.py: McCHierarchyRecord
- app/routers/accounts.py: Hierarchy detection and lookup endpoints
"""

import logging
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.models import McCHierarchyRecord
from app.services.exceptions import GoogleAdsError, NoAccessPathError
from app.services.google_ads_client import GAdsClient, clean_customer_id

logger = logging.getLogger(__name__)

__all__ = [
    "LoginCustomerIdCache",
    "ManagerAccountResolver",
    "clean_customer_id",
    "detect_hierarchy",
    "get_login_customer_id",
    "validate_hierarchy",
]

_MISSING = object()


class LoginCustomerIdCache:
    """
    Thread-safe memo of resolved login-customer-ids.

    WHAT:
        Maps (user scope, customer_id) -> login_customer_id, where None means
        "directly accessible, no header". Entries expire after `ttl_seconds`
        so account moves between managers are eventually picked up.
    """

    def __init__(self, ttl_seconds: float = 3600.0):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[Tuple[str, str], Tuple[Optional[str], float]] = {}
        self._lock = threading.Lock()

    def get(self, scope: str, customer_id: str) -> Any:
        """Return the cached value (possibly None) or `_MISSING`."""
        with self._lock:
            entry = self._entries.get((scope, customer_id))
            if entry is None:
                return _MISSING
            value, stored_at = entry
            if time.monotonic() - stored_at > self.ttl_seconds:
                del self._entries[(scope, customer_id)]
                return _MISSING
            return value

    def set(self, scope: str, customer_id: str, login_customer_id: Optional[str]) -> None:
        with self._lock:
            self._entries[(scope, customer_id)] = (login_customer_id, time.monotonic())

    def invalidate(self, scope: str, customer_id: Optional[str] = None) -> None:
        with self._lock:
            if customer_id is None:
                for key in [k for k in self._entries if k[0] == scope]:
                    del self._entries[key]
            else:
                self._entries.pop((scope, customer_id), None)


# Shared across requests in this process
login_customer_id_cache = LoginCustomerIdCache()


class ManagerAccountResolver:
    """
    Resolves the login-customer-id for a target customer.

    USAGE:
        resolver = ManagerAccountResolver(client, db=db, user_id=user.id)
        login_id = resolver.resolve("123-456-7890")   # None => direct access
        scoped = client.with_login_customer_id(login_id)
    """

    def __init__(
        self,
        client: GAdsClient,
        db: Optional[Session] = None,
        user_id: Optional[Any] = None,
        cache: Optional[LoginCustomerIdCache] = None,
    ):
        self.client = client
        self.db = db
        self.user_id = user_id
        self.cache = cache if cache is not None else login_customer_id_cache
        self._scope = str(user_id) if user_id is not None else "anonymous"
        self.last_method: Optional[str] = None

    def _lookup_hierarchy(self, customer_id: str) -> Any:
        if self.db is None or self.user_id is None:
            return _MISSING
        record = (
            self.db.query(McCHierarchyRecord)
            .filter(
                McCHierarchyRecord.user_id == self.user_id,
                McCHierarchyRecord.customer_id == customer_id,
            )
            .first()
        )
        if record is None:
            return _MISSING
        return record.manager_customer_id

    def _persist(self, customer_id: str, manager_id: str) -> None:
        """Store manager (level 0) and client (level 1) rows if missing."""
        if self.db is None or self.user_id is None:
            return

        existing = {
            r.customer_id: r
            for r in self.db.query(McCHierarchyRecord).filter(
                McCHierarchyRecord.user_id == self.user_id,
                McCHierarchyRecord.customer_id.in_([customer_id, manager_id]),
            )
        }
        manager = existing.get(manager_id)
        if manager is None:
            self.db.add(McCHierarchyRecord(
                user_id=self.user_id, customer_id=manager_id, is_manager=True, level=0,
            ))
        elif not manager.is_manager:
            manager.is_manager = True

        client_row = existing.get(customer_id)
        if client_row is None:
            self.db.add(McCHierarchyRecord(
                user_id=self.user_id, customer_id=customer_id, manager_customer_id=manager_id,
                is_manager=False, level=1,
            ))
        else:
            client_row.manager_customer_id = manager_id
            client_row.level = 1
        self.db.commit()

    def resolve(self, customer_id: str) -> Optional[str]:
        """
        Return the login-customer-id for `customer_id`, or None for direct access.

        RAISES:
            NoAccessPathError: No direct access and no manager probe succeeded.
            QuotaExhaustedError: Propagated from the API.
        """
        target = clean_customer_id(customer_id)

        cached = self.cache.get(self._scope, target)
        if cached is not _MISSING:
            self.last_method = "cache"
            return cached

        stored = self._lookup_hierarchy(target)
        if stored is not _MISSING:
            # A row without a manager is a standalone or manager account: direct access
            logger.info("[MCC] %s resolved from hierarchy table via %s", target, stored or "direct access")
            self.last_method = "hierarchy_table"
            self.cache.set(self._scope, target, stored)
            return stored

        accessible = self.client.list_accessible_customers()
        if target in accessible:
            logger.info("[MCC] %s is directly accessible", target)
            self.last_method = "direct_access"
            self.cache.set(self._scope, target, None)
            return None

        tried: List[str] = []
        for candidate in accessible:
            if candidate == target:
                continue
            tried.append(candidate)
            if self.client.with_login_customer_id(candidate).probe(target):
                logger.info("[MCC] %s reachable through manager %s (probe %d)", target, candidate, len(tried))
                self.last_method = "dynamic_detection"
                self._persist(target, candidate)
                self.cache.set(self._scope, target, candidate)
                return candidate

        logger.warning("[MCC] No access path to %s after %d probes", target, len(tried))
        raise NoAccessPathError(target, tried)

    def resolve_or_direct(self, customer_id: str) -> Optional[str]:
        """Like resolve(), but falls back to direct access (None) when nothing works."""
        try:
            return self.resolve(customer_id)
        except NoAccessPathError:
            self.last_method = "direct_access_fallback"
            return None

    def client_for(self, customer_id: str) -> GAdsClient:
        """Client carrying the right login header for `customer_id`."""
        return self.client.with_login_customer_id(self.resolve_or_direct(customer_id))

    def invalidate(self, customer_id: Optional[str] = None) -> None:
        self.cache.invalidate(self._scope, clean_customer_id(customer_id) if customer_id else None)


def validate_hierarchy(records: List[Dict[str, Any]]) -> List[str]:
    """
    List violations of the hierarchy invariant.

    A client's manager_customer_id, if present, must exist as a record with
    is_manager = True.
    """
    by_id = {r["customer_id"]: r for r in records}
    problems = []
    for r in records:
        manager_id = r.get("manager_customer_id")
        if not manager_id:
            continue
        manager = by_id.get(manager_id)
        if manager is None:
            problems.append(f"{r['customer_id']}: manager {manager_id} missing")
        elif not manager.get("is_manager"):
            problems.append(f"{r['customer_id']}: manager {manager_id} is not a manager account")
    return problems


def detect_hierarchy(
    db: Session,
    user_id: Any,
    client: GAdsClient,
    primary_customer_id: str,
    cache: Optional[LoginCustomerIdCache] = None,
) -> Dict[str, Any]:
    """
    Rebuild the user's MCC hierarchy from the primary account.

    WHAT:
        - Primary is a manager: store it at level 0 and its direct clients at
          level 1 with manager_customer_id = primary.
        - Otherwise: store it as a standalone level 0 account.
        Old rows for the user are deleted first; records are deduplicated
        by customer_id.

    RETURNS:
        {"primary_customer_id", "is_manager", "accounts", "managers",
         "clients", "recommendations": {customer_id: {...}}}
    """
    primary = clean_customer_id(primary_customer_id)
    info = client.get_account_info(primary)
    is_manager = info.get("is_manager", False)

    records: Dict[str, Dict[str, Any]] = {
        primary: {
            "customer_id": primary,
            "manager_customer_id": None,
            "is_manager": is_manager,
            "level": 0,
            "account_name": info.get("name"),
        }
    }

    if is_manager:
        for child in client.list_child_accounts(primary):
            child_id = child["customer_id"]
            if not child_id or child_id in records:
                continue
            records[child_id] = {
                "customer_id": child_id,
                "manager_customer_id": primary,
                "is_manager": child.get("is_manager", False),
                "level": 1,
                "account_name": child.get("name"),
            }

    accounts = list(records.values())
    problems = validate_hierarchy(accounts)
    if problems:
        raise GoogleAdsError(f"Inconsistent hierarchy detected: {'; '.join(problems)}")

    db.query(McCHierarchyRecord).filter(McCHierarchyRecord.user_id == user_id).delete(synchronize_session=False)
    for account in accounts:
        db.add(McCHierarchyRecord(user_id=user_id, **account))
    db.commit()

    (cache if cache is not None else login_customer_id_cache).invalidate(str(user_id))

    recommendations = {
        a["customer_id"]: {
            "login_customer_id": a["manager_customer_id"],
            "requires_login_customer_id": a["manager_customer_id"] is not None,
        }
        for a in accounts
    }

    logger.info(
        "[MCC] Detected hierarchy for user %s: primary=%s manager=%s clients=%d",
        user_id, primary, is_manager, len(accounts) - 1
    )
    return {
        "primary_customer_id": primary,
        "is_manager": is_manager,
        "accounts": accounts,
        "managers": [a for a in accounts if a["is_manager"]],
        "clients": [a for a in accounts if a["level"] == 1],
        "recommendations": recommendations,
    }


def get_login_customer_id(
    db: Session,
    user_id: Any,
    customer_id: str,
    resolver: ManagerAccountResolver,
) -> Dict[str, Any]:
    """
    Look up the login-customer-id, hierarchy table first.

    RETURNS:
        {"customer_id", "login_customer_id", "detection_method"} where
        detection_method is "hierarchy_table", "dynamic_detection" or
        "direct_access".
    """
    target = clean_customer_id(customer_id)
    record = (
        db.query(McCHierarchyRecord)
        .filter(McCHierarchyRecord.user_id == user_id, McCHierarchyRecord.customer_id == target)
        .first()
    )
    if record is not None:
        return {
            "customer_id": target,
            "login_customer_id": record.manager_customer_id,
            "detection_method": "hierarchy_table",
        }

    try:
        login_id = resolver.resolve(target)
    except NoAccessPathError:
        login_id = None

    if login_id is None:
        method = "direct_access"
    elif resolver.last_method == "hierarchy_table":
        method = "hierarchy_table"
    else:
        method = "dynamic_detection"
    return {
        "customer_id": target,
        "login_customer_id": login_id,
        "detection_method": method,
    }
