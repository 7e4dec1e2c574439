"""
Backfill missing thumbnails for stored images.

Scans the uploads directory and creates ``thumb_<name>.jpg`` for every
original image that does not have one yet.
"""

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from app.core.config import get_settings
from app.services.thumbnail_service import ThumbnailGenerator
from app.storage.local import LocalStorage


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Generate missing thumbnails for images in the uploads directory",
        epilog="""
Examples:
  %(prog)s                  # Only create thumbnails that are missing
  %(prog)s --force          # Regenerate every thumbnail
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--force",
        action="store_true",
        help="Regenerate thumbnails that already exist",
    )

    parser.add_argument(
        "--uploads-dir",
        type=Path,
        default=None,
        help="Uploads directory (default: from settings)",
    )

    args = parser.parse_args(argv)

    settings = get_settings()
    storage = LocalStorage(args.uploads_dir, settings=settings)
    generator = ThumbnailGenerator(storage, width=settings.thumbnail_width, quality=settings.thumbnail_quality)

    print(f"Scanning {storage.base_dir}")
    report = generator.backfill(force=args.force)

    for name in report.generated:
        print(f"  Generated: {name}")
    for name in report.failed:
        print(f"  Failed: {name}", file=sys.stderr)

    print(f"\nDone: {report.summary()}")
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
