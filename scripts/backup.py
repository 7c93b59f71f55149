#!/usr/bin/env python3
"""
Export or restore the dashboard document using the configured backend.

Usage:
  python scripts/backup.py export [-o backup.json]
  python scripts/backup.py import backup.json --yes

Import overwrites the stored document without any version check: concurrent
edits made since the backup was taken are lost.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from opsdeck.core.config import get_settings
from opsdeck.core.logging_config import setup_logging
from opsdeck.services.backup_service import BackupService, backup_filename
from opsdeck.storage import build_store


def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser(description="Backup/restore the opsdeck document")
    sub = ap.add_subparsers(dest="command", required=True)

    exp = sub.add_parser("export", help="write the current document to a file")
    exp.add_argument("-o", "--output", help="destination file (default: opsdeck-<timestamp>.json)")

    imp = sub.add_parser("import", help="overwrite the stored document with a backup file")
    imp.add_argument("file", help="backup file to restore")
    imp.add_argument("--yes", action="store_true", help="confirm the unconditional overwrite")
    args = ap.parse_args(argv)

    settings = get_settings()
    setup_logging(settings.log_level)
    store = build_store(settings)
    service = BackupService(store)
    try:
        if args.command == "export":
            target = Path(args.output or backup_filename())
            target.write_text(service.export_document(), encoding="utf-8")
            print(f"OK: document exported to {target}")
            return

        if not args.yes:
            raise SystemExit("Import overwrites the stored document; re-run with --yes to confirm")
        document = service.import_document(Path(args.file).read_bytes())
        print("OK: document imported")
        print(f"  Servers: {len(document.servers)}")
        print(f"  Services: {len(document.services)}")
        print(f"  Domains: {len(document.domain_order)}")
    finally:
        store.close()


if __name__ == "__main__":
    try:
        main()
    except SystemExit:
        raise
    except Exception as exc:  # pragma: no cover - CLI usage
        sys.stderr.write(f"Error: {exc}\n")
        raise SystemExit(1)
