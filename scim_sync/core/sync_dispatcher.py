"""Multi-provider SCIM synchronisation.

Pushes one user or group lifecycle event to every enabled provider and
reports whether at least one of them accepted it.

Architecture:
    lifecycle event ──> SyncDispatcher.sync()
                          ├─ ScimTransformer (once)
                          └─ per enabled provider (bounded thread pool):
                               acquire_credential → build_request → send → SyncOutcome

Failure policy:
    - A failure in one provider never affects the others.
    - Credential failures are logged; the request is still sent without an
      Authorization header unless ``require_credential`` is set, in which
      case that provider is recorded as failed and nothing is sent.
    - sync() never raises. Callers only see the aggregate boolean; per-provider
      detail goes to the log and, when enabled, to the audit trail.
    - Once the ``sync_timeout`` budget expires, providers that have not sent
      their request yet send nothing; responses arriving late are logged as
      late, never as successes.
"""
from __future__ import annotations
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Dict, List, Optional, Sequence, Union

import requests

from scim_sync.core import audit
from scim_sync.core.models import Group, ProviderConfig, SyncOutcome, User
from scim_sync.core.providers import (
    GROUPS,
    REQUEST_TIMEOUT,
    USERS,
    acquire_credential,
    build_request,
)
from scim_sync.core.scim_transformer import ScimTransformer

logger = logging.getLogger(__name__)

DEFAULT_SYNC_TIMEOUT = 30
DEFAULT_MAX_WORKERS = 4


class SyncDispatcher:
    """Fan out SCIM resources to the configured providers.

    Usage:
        dispatcher = SyncDispatcher(settings.providers, session=requests.Session())
        ok = dispatcher.sync(user, "create")
    """

    def __init__(
        self,
        providers: Sequence[ProviderConfig],
        session: Optional[requests.Session] = None,
        *,
        base_url: str = "/scim/v2",
        timeout: float = REQUEST_TIMEOUT,
        sync_timeout: float = DEFAULT_SYNC_TIMEOUT,
        max_workers: int = DEFAULT_MAX_WORKERS,
        require_credential: bool = False,
        audit_enabled: bool = False,
    ):
        """Initialize dispatcher.

        Args:
            providers: Provider entries in configured order (never mutated)
            session: Shared pooled HTTP session (created when omitted)
            base_url: Local SCIM base path used for ``meta.location``
            timeout: Per-provider request timeout in seconds
            sync_timeout: Budget in seconds for one sync() call across all providers.
                Providers still queued behind ``max_workers`` when it expires are
                never attempted and are recorded as "not started".
            max_workers: Maximum providers contacted concurrently (1 = sequential)
            require_credential: Skip providers whose credential could not be acquired
            audit_enabled: Append each provider outcome to the audit trail
        """
        self.providers = tuple(providers)
        self.session = session or requests.Session()
        self.base_url = base_url
        self.timeout = timeout
        self.sync_timeout = sync_timeout
        self.max_workers = max(1, max_workers)
        self.require_credential = require_credential
        self.audit_enabled = audit_enabled

    @classmethod
    def from_settings(cls, cfg, session: Optional[requests.Session] = None) -> "SyncDispatcher":
        """Build a dispatcher from an AppConfig."""
        return cls(
            cfg.providers,
            session=session,
            base_url=cfg.scim_base_url,
            timeout=cfg.request_timeout,
            sync_timeout=cfg.sync_timeout,
            max_workers=cfg.max_workers,
            require_credential=cfg.require_credential,
            audit_enabled=cfg.audit_enabled,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def sync(self, entity: Union[User, Group], operation: str) -> bool:
        """Sync a user or group; True iff at least one enabled provider succeeded."""
        if isinstance(entity, Group):
            return self.sync_group(entity, operation)
        return self.sync_user(entity, operation)

    def sync_user(self, user: User, operation: str) -> bool:
        try:
            body = ScimTransformer.user_to_scim(user, self.base_url)
            outcomes = self.dispatch(USERS, user.scim_id, body, operation, label=user.email)
            return _succeeded(outcomes)
        except Exception as exc:
            name = getattr(user, "email", user)
            logger.error(f"Error syncing user {name} with operation {operation}: {exc}", exc_info=True)
            return False

    def sync_group(self, group: Group, operation: str) -> bool:
        try:
            body = ScimTransformer.group_to_scim(group, self.base_url)
            outcomes = self.dispatch(GROUPS, group.scim_id, body, operation, label=group.display_name)
            return _succeeded(outcomes)
        except Exception as exc:
            name = getattr(group, "display_name", group)
            logger.error(f"Error syncing group {name} with operation {operation}: {exc}", exc_info=True)
            return False

    def dispatch(
        self,
        resource_kind: str,
        scim_id: Optional[str],
        body: Dict[str, Any],
        operation: str,
        label: str = "",
    ) -> List[SyncOutcome]:
        """Send ``body`` to every enabled provider.

        Returns:
            One SyncOutcome per enabled provider, in configured order.
            Disabled providers produce no outcome.
        """
        enabled = [p for p in self.providers if p.enabled]
        if not enabled:
            logger.info(f"No enabled providers; {operation} of {resource_kind} {label} not synced")
            return []

        expired = threading.Event()
        workers = min(self.max_workers, len(enabled))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scim-sync")
        try:
            futures = [
                executor.submit(
                    self._sync_provider, provider, resource_kind, scim_id, body, operation, label, expired
                )
                for provider in enabled
            ]
            wait(futures, timeout=self.sync_timeout)
        finally:
            # Set before shutdown so a worker picking up a queued provider sends nothing
            expired.set()
            executor.shutdown(wait=False, cancel_futures=True)

        outcomes = []
        for provider, future in zip(enabled, futures):
            if future.cancelled():
                logger.warning(f"Sync of {resource_kind} {label} to {provider.name} not started within "
                               f"{self.sync_timeout}s budget")
                outcomes.append(SyncOutcome(provider.name, False, error="not started"))
            elif future.done():
                outcomes.append(future.result())
            else:
                logger.warning(f"Sync of {resource_kind} {label} to {provider.name} exceeded "
                               f"{self.sync_timeout}s budget")
                outcomes.append(SyncOutcome(provider.name, False, error="timed out"))

        if self.audit_enabled:
            for outcome in outcomes:
                audit.safe_log_sync_event(
                    resource_kind,
                    scim_id or "",
                    operation,
                    outcome.provider,
                    success=outcome.success,
                    status_code=outcome.status_code,
                    error=outcome.error,
                )
        return outcomes

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _sync_provider(
        self,
        provider: ProviderConfig,
        resource_kind: str,
        scim_id: Optional[str],
        body: Dict[str, Any],
        operation: str,
        label: str,
        expired: Optional[threading.Event] = None,
    ) -> SyncOutcome:
        """Process one provider. Every exception stops here."""
        expired = expired or threading.Event()
        try:
            if expired.is_set():
                return SyncOutcome(provider.name, False, error="not started")

            credential = acquire_credential(provider, session=self.session, timeout=self.timeout)
            if credential is None and self.require_credential:
                logger.warning(f"Skipping {provider.name}: no credential for {operation} of {label}")
                return SyncOutcome(provider.name, False, error="credential unavailable")

            request = build_request(operation, provider.base_url, resource_kind, scim_id, body)

            headers = {"Accept": "application/scim+json, application/json"}
            if credential is not None:
                headers["Authorization"] = credential.header_value
            if request.body is not None:
                headers["Content-Type"] = "application/json"

            if expired.is_set():
                logger.warning(f"Not sending {operation} of {label} to {provider.name}: sync budget expired")
                return SyncOutcome(provider.name, False, error="timed out")

            resp = self.session.request(
                request.method,
                request.url,
                json=request.body,
                headers=headers,
                timeout=self.timeout,
            )
            if expired.is_set():
                logger.warning(f"{provider.name} answered {operation} of {label} with status {resp.status_code} "
                               f"after the {self.sync_timeout}s budget; recorded as timed out")
                return SyncOutcome(provider.name, False, status_code=resp.status_code, error="timed out")
            if 200 <= resp.status_code < 300:
                logger.info(f"Successfully synced {label} to {provider.name} with operation {operation}")
                return SyncOutcome(provider.name, True, status_code=resp.status_code)

            logger.warning(f"Failed to sync {label} to {provider.name} with operation {operation}. "
                           f"Status: {resp.status_code}")
            return SyncOutcome(provider.name, False, status_code=resp.status_code, error=resp.text[:500])
        except requests.RequestException as exc:
            logger.warning(f"Transport error syncing {label} to {provider.name} with operation {operation}: {exc}")
            return SyncOutcome(provider.name, False, error=str(exc))
        except Exception as exc:
            logger.error(f"Error syncing {label} to {provider.name} with operation {operation}: {exc}",
                         exc_info=True)
            return SyncOutcome(provider.name, False, error=str(exc))


def _succeeded(outcomes: List[SyncOutcome]) -> bool:
    return sum(1 for o in outcomes if o.success) > 0
