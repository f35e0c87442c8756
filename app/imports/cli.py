from __future__ import annotations

import argparse
import sys
from pathlib import Path

from app.db import SessionLocal
from app.services.subscriber_import import import_subscribers_from_csv


def import_subscribers(tenant_id: str, path: str) -> int:
    db = SessionLocal()
    try:
        content = Path(path).expanduser().read_text(encoding="utf-8")
        result = import_subscribers_from_csv(db, tenant_id, content)
    finally:
        db.close()
    print(f"created={result.created} errors={result.failed}")
    for err in result.errors:
        print(f"row={err.row} username={err.username or '-'} error={err.error}", file=sys.stderr)
    return 1 if result.errors else 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Import CSV data into the AAA provisioning service")
    parser.add_argument(
        "resource",
        choices=["subscribers"],
        help="Resource to import from CSV",
    )
    parser.add_argument("path", help="Path to CSV file")
    parser.add_argument("--tenant-id", required=True, help="Owning tenant id")
    args = parser.parse_args(argv)

    if args.resource == "subscribers":
        raise SystemExit(import_subscribers(args.tenant_id, args.path))


if __name__ == "__main__":
    main()
