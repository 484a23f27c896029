"""Command-line wrapper around the sync dispatcher.

Examples:
    scim-sync providers
    scim-sync push-user --file alice.json --operation create
    scim-sync push-group --file engineering.json --operation delete
    scim-sync verify-audit
"""
from __future__ import annotations
import argparse
import json
import logging
import os
import sys
import uuid
from pathlib import Path
from typing import Optional, Sequence

from scim_sync.config.settings import load_settings
from scim_sync.core import audit
from scim_sync.core.scim_transformer import ScimTransformer
from scim_sync.core.sync_dispatcher import SyncDispatcher

OPERATIONS = ("create", "update", "delete")


def _read_document(path: str) -> dict:
    if path == "-":
        return json.load(sys.stdin)
    with Path(path).open("r", encoding="utf-8") as handle:
        return json.load(handle)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Push SCIM users and groups to external identity providers")
    parser.add_argument("--providers-file", help="Override SCIM_PROVIDERS_FILE")
    parser.add_argument("--verbose", "-v", action="store_true")

    sub = parser.add_subparsers(dest="cmd")

    sub.add_parser("providers", help="List configured providers")

    for cmd in ("push-user", "push-group"):
        sp = sub.add_parser(cmd)
        sp.add_argument("--file", required=True, help="SCIM JSON document ('-' for stdin)")
        sp.add_argument("--operation", choices=OPERATIONS, default="create")

    sub.add_parser("verify-audit", help="Verify sync audit log signatures")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd is None:
        parser.print_help()
        return 2

    if args.cmd == "verify-audit":
        total, valid = audit.verify_audit_log()
        print(f"Audit log: {valid}/{total} events with valid signatures")
        return 0 if total == valid else 1

    if args.providers_file:
        os.environ["SCIM_PROVIDERS_FILE"] = args.providers_file
    cfg = load_settings()

    if args.cmd == "providers":
        for provider in cfg.providers:
            state = "enabled" if provider.enabled else "disabled"
            print(f"{provider.name}\t{provider.kind.value}\t{state}\t{provider.base_url}")
        return 0

    document = _read_document(args.file)
    dispatcher = SyncDispatcher.from_settings(cfg)
    if args.cmd == "push-user":
        entity = ScimTransformer.scim_to_user(document)
    else:
        entity = ScimTransformer.scim_to_group(document)

    if not entity.scim_id:
        if args.operation != "create":
            print("[scim-sync] Document has no id; update and delete need the stable SCIM id", file=sys.stderr)
            return 2
        entity.scim_id = str(uuid.uuid4())

    ok = dispatcher.sync(entity, args.operation)
    print(f"[scim-sync] {args.operation} {'succeeded' if ok else 'failed'}")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
