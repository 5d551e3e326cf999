"""CLI commands for AllergyCare."""

import argparse
import logging
import sys
from pathlib import Path

from sqlalchemy.orm import Session

from app.config import settings
from app.database import SessionLocal, init_db
from app.services.backup_service import BackupImportError, BackupService
from app.services.record_store import SqlRecordStore, StoreWriteError


def export_backup(output: str | None = None) -> None:
    """Write the whole diary to a backup file."""
    db: Session = SessionLocal()

    try:
        path = Path(output or BackupService.backup_filename())
        path.write_text(BackupService(SqlRecordStore(db)).export_json(), encoding="utf-8")
        print(f"Backup written to {path}")

    finally:
        db.close()


def import_backup(path: str) -> None:
    """Replace the diary with the contents of a backup file."""
    try:
        text = Path(path).read_bytes()
    except OSError as e:
        print(f"Error: Could not read '{path}': {e}")
        sys.exit(1)

    db: Session = SessionLocal()

    try:
        result = BackupService(SqlRecordStore(db)).import_json(text)
    except (BackupImportError, StoreWriteError) as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        db.close()

    print(
        f"Imported {result.profiles} profiles, {result.food_entries} food entries, "
        f"{result.symptom_entries} symptom entries."
    )
    for warning in result.warnings:
        print(f"Warning: {warning}")


def clean_data() -> None:
    """Remove references to profiles that no longer exist."""
    db: Session = SessionLocal()

    try:
        removed = SqlRecordStore(db).prune_orphans()
    except StoreWriteError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        db.close()

    print(
        f"Removed {removed['food_refs_removed']} stale profile references and "
        f"{removed['symptoms_removed']} orphaned symptom entries."
    )


def main():
    logging.basicConfig(level=settings.log_level)

    parser = argparse.ArgumentParser(description="AllergyCare CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    export_parser = subparsers.add_parser(
        "export-backup", help="Export all data to a JSON backup file"
    )
    export_parser.add_argument(
        "--output", help="Output path (default: allergycare-backup-YYYY-MM-DD.json)"
    )

    import_parser = subparsers.add_parser(
        "import-backup", help="Replace all data with a JSON backup file"
    )
    import_parser.add_argument("path", help="Backup file to import")

    subparsers.add_parser(
        "clean-data", help="Remove data that references deleted profiles"
    )

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    init_db()

    if args.command == "export-backup":
        export_backup(args.output)
    elif args.command == "import-backup":
        import_backup(args.path)
    elif args.command == "clean-data":
        clean_data()


if __name__ == "__main__":
    main()
