"""
Command-line book import.

Runs the same parse -> review -> confirm flow as the API against a local
database. Review choices are given as flags instead of clicks.

Usage:
    python scripts/import_books.py goodreads_library_export.csv --user me
    python scripts/import_books.py books.json --user me --include-not-found --dry-run
"""

import argparse
import asyncio
from pathlib import Path

from dotenv import load_dotenv

# Load env vars
load_dotenv()

from shelfwise.api.dependencies import ServiceContainer, get_settings
from shelfwise.importing import (
    Bucket,
    ReviewSession,
    SelectAll,
    collect_skipped_rows,
    format_from_filename,
    reduce,
    render_skipped_csv,
)
from shelfwise.storage import RecordKind


def parse_args():
    parser = argparse.ArgumentParser(description="Import read or owned books from a file.")
    parser.add_argument("file", type=Path, help="JSON, CSV, XLSX or XLS file")
    parser.add_argument("--user", required=True, help="User ID to import for")
    parser.add_argument(
        "--target",
        choices=[k.value for k in RecordKind],
        default=RecordKind.COMPLETED.value,
        help="Import as completed books (default) or library books",
    )
    parser.add_argument("--database-url", help="Override DATABASE_URL")
    parser.add_argument(
        "--include-not-found",
        action="store_true",
        help="Import books the metadata lookup could not find, using the file's own fields",
    )
    parser.add_argument(
        "--skip-library-updates",
        action="store_true",
        help="Do not mark matching library books as read",
    )
    parser.add_argument("--skipped-csv", type=Path, help="Write skipped items to this CSV file")
    parser.add_argument("--dry-run", action="store_true", help="Classify only; write nothing")
    return parser.parse_args()


def print_item(item):
    entry = item.payload
    author = f" by {entry.author}" if entry.author else ""
    isbn = f" [{entry.isbn}]" if entry.isbn else ""
    print(f"   - {entry.display_title}{author}{isbn}")


async def main():
    args = parse_args()

    settings = get_settings()
    if args.database_url:
        settings.database_url = args.database_url

    container = ServiceContainer(settings)
    service = container.import_service
    target = RecordKind(args.target)

    try:
        content = args.file.read_bytes()
        fmt = format_from_filename(args.file.name)

        print(f"Parsing {args.file} ({fmt}) for user {args.user}...")
        result = await service.parse(args.user, content, fmt, target)

        session = ReviewSession.start(result)
        if args.include_not_found:
            session = reduce(session, SelectAll(Bucket.NOT_FOUND, True))
        if args.skip_library_updates:
            session = reduce(session, SelectAll(Bucket.LIBRARY_UPDATE, False))

        print(f"\nTotal rows: {result.total}")
        for bucket in Bucket:
            items = result.bucket(bucket)
            print(f"{bucket.value}: {len(items)}")
            for item in items:
                print_item(item)
        print(f"Invalid: {len(result.invalid)}")
        if result.skipped_shelves:
            print(f"Skipped (not on the read shelf): {result.skipped_shelves}")

        if args.skipped_csv:
            rows = collect_skipped_rows(
                skipped_not_found=[item.original for item in session.skipped_items()],
                duplicates=[item.original for item in result.duplicates],
                invalid=result.invalid,
                target=target,
            )
            args.skipped_csv.write_text(render_skipped_csv(rows), encoding="utf-8")
            print(f"\nWrote {len(rows)} skipped items to {args.skipped_csv}")

        if args.dry_run:
            print("\nDry run: nothing written.")
            return

        commit = service.confirm(args.user, session.decisions())

        print(f"\n{commit.message}")
        for note in commit.notes:
            print(f"   ! {note}")

    finally:
        await container.close()


if __name__ == "__main__":
    asyncio.run(main())
