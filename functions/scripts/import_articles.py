"""
CLI helper to create articles from web pages.

Each URL is fetched, its title, summary and image are extracted, and the
result is stored as an article when it passes article validation.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sikuwat.config import get_settings
from sikuwat.db import ArticleRecord, DbClient, new_record_id
from sikuwat.dependencies import get_db_client
from sikuwat.fetch_utils import FetchError, fetch_article_preview
from sikuwat.validation import validate_article

logger = logging.getLogger(__name__)

IMPORT_USER = "import-script"


def import_article(
    db: DbClient, url: str, *, timeout: float, dry_run: bool = False
) -> bool:
    try:
        preview = fetch_article_preview(url, timeout=timeout)
    except FetchError as exc:
        logger.error("Skipping %s: %s", url, exc)
        return False

    result = validate_article(preview.as_dict())
    if not result.is_valid:
        logger.error("Skipping %s: %s", url, "; ".join(result.errors))
        return False
    for warning in result.warnings:
        logger.warning("%s: %s", url, warning)

    if dry_run:
        logger.info("Would import %r from %s", preview.title, preview.source)
        return True

    record = db.add_article(
        ArticleRecord(
            id=new_record_id("article"),
            title=preview.title,
            content=preview.content,
            source=preview.source,
            url=preview.url,
            image_url=preview.image_url,
            created_by=IMPORT_USER,
        )
    )
    logger.info("Imported %s as %s", url, record.id)
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="Import articles from URLs")
    parser.add_argument("urls", nargs="*", help="Article URLs")
    parser.add_argument(
        "-f",
        "--file",
        type=Path,
        default=None,
        help="File with one URL per line",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Fetch and validate without storing",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")

    urls = list(args.urls)
    if args.file:
        urls.extend(
            line.strip()
            for line in args.file.read_text(encoding="utf-8").splitlines()
            if line.strip() and not line.startswith("#")
        )
    if not urls:
        parser.error("no URLs given")

    settings = get_settings()
    db = get_db_client()
    imported = sum(
        import_article(db, url, timeout=settings.request_timeout, dry_run=args.dry_run)
        for url in urls
    )
    logger.info("Imported %s of %s articles", imported, len(urls))
    return 0 if imported == len(urls) else 1


if __name__ == "__main__":
    raise SystemExit(main())
