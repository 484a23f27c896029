"""Signed audit trail of per-provider sync outcomes."""

from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import os
import sys
from pathlib import Path
from typing import Any, Literal, Optional

AUDIT_LOG_DIR = Path(os.environ.get("SCIM_AUDIT_LOG_DIR", ".runtime/audit"))
AUDIT_LOG_FILE = AUDIT_LOG_DIR / "sync-events.jsonl"

Operation = Literal["create", "update", "delete"]


def _get_signing_key() -> bytes:
    """Get the audit signing key.

    Priority: file named by SCIM_AUDIT_SIGNING_KEY_FILE, SCIM_AUDIT_SIGNING_KEY
    (an empty value disables signing), then the demo default.
    """
    key_file = os.environ.get("SCIM_AUDIT_SIGNING_KEY_FILE")
    if key_file:
        path = Path(key_file)
        if path.exists():
            try:
                return path.read_text(encoding="utf-8").strip().encode("utf-8")
            except OSError:
                pass
    if "SCIM_AUDIT_SIGNING_KEY" in os.environ:
        return os.environ.get("SCIM_AUDIT_SIGNING_KEY", "").strip().encode("utf-8")
    demo_default = os.environ.get("SCIM_AUDIT_SIGNING_KEY_DEMO", "demo-audit-signing-key-change-in-production")
    return demo_default.encode("utf-8")


def _ensure_audit_dir() -> None:
    AUDIT_LOG_DIR.mkdir(parents=True, exist_ok=True)
    AUDIT_LOG_DIR.chmod(0o700)


def _sign_event(event: dict[str, Any]) -> str:
    """HMAC-SHA256 over the canonical JSON form; empty when no key is configured."""
    signing_key = _get_signing_key()
    if not signing_key:
        return ""
    canonical = json.dumps(event, sort_keys=True, separators=(",", ":"))
    return hmac.new(signing_key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def log_sync_event(
    resource_kind: str,
    resource_id: str,
    operation: Operation | str,
    provider: str,
    *,
    success: bool,
    status_code: Optional[int] = None,
    error: Optional[str] = None,
) -> None:
    """Append one provider outcome to the audit trail.

    Args:
        resource_kind: "Users" or "Groups"
        resource_id: Stable SCIM id of the resource
        operation: Lifecycle operation that was synced
        provider: Provider entry name
        success: Whether the provider accepted the request
        status_code: HTTP status returned by the provider, if any
        error: Error detail for failed attempts
    """
    _ensure_audit_dir()

    event = {
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "resource_kind": resource_kind,
        "resource_id": resource_id,
        "operation": operation,
        "provider": provider,
        "success": success,
        "status_code": status_code,
        "error": error,
    }

    signature = _sign_event(event)
    if signature:
        event["signature"] = signature

    with AUDIT_LOG_FILE.open("a", encoding="utf-8") as f:
        f.write(json.dumps(event, ensure_ascii=False) + "\n")

    AUDIT_LOG_FILE.chmod(0o600)


def safe_log_sync_event(
    resource_kind: str,
    resource_id: str,
    operation: Operation | str,
    provider: str,
    *,
    success: bool,
    status_code: Optional[int] = None,
    error: Optional[str] = None,
) -> bool:
    """Like log_sync_event() but never raises.

    Returns:
        True if the event was written, False if writing failed
    """
    try:
        log_sync_event(
            resource_kind,
            resource_id,
            operation,
            provider,
            success=success,
            status_code=status_code,
            error=error,
        )
        return True
    except Exception as e:
        print(
            f"[audit] Warning: Failed to log {operation} sync of {resource_id} to {provider}: {e}",
            file=sys.stderr
        )
        return False


def read_sync_events() -> list[dict[str, Any]]:
    """Return all events in the audit trail (malformed lines skipped)."""
    if not AUDIT_LOG_FILE.exists():
        return []
    events = []
    with AUDIT_LOG_FILE.open("r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue
    return events


def verify_audit_log() -> tuple[int, int]:
    """Verify all signatures in the audit log.

    Returns:
        Tuple of (total_events, valid_signatures)
    """
    if not AUDIT_LOG_FILE.exists():
        return 0, 0

    total = 0
    valid = 0

    with AUDIT_LOG_FILE.open("r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            total += 1
            try:
                event = json.loads(line)
                stored_sig = event.pop("signature", "")
                if not stored_sig:
                    continue
                computed_sig = _sign_event(event)
                if hmac.compare_digest(stored_sig, computed_sig):
                    valid += 1
            except (json.JSONDecodeError, KeyError):
                continue

    return total, valid
