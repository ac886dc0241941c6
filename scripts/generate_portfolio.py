"""Generate public/data/portfolio.json from the portfolio/ folder structure."""

import pathlib
import sys

from hommemade.portfolio import build_manifest, scan_portfolio, write_manifest

PORTFOLIO_DIR = pathlib.Path("portfolio")
OUTPUT_FILE = pathlib.Path("public/data/portfolio.json")


def generate():
    """Scan portfolio sections and write the gallery manifest."""
    try:
        sections = scan_portfolio(PORTFOLIO_DIR)
    except FileNotFoundError as e:
        print(e)
        print("Please create the portfolio folder structure first.")
        sys.exit(1)

    for section in sections:
        print(f"  + Section: {section['title']} ({len(section['media'])} media files)")

    if not sections:
        print("No portfolio sections found. Add folders and media files to portfolio/.")
        return

    manifest = build_manifest(sections)
    backup = write_manifest(manifest, OUTPUT_FILE)
    if backup:
        print(f"Created backup: {backup}")

    stats = manifest["generated"]
    print(f"\nGenerated {OUTPUT_FILE}: {stats['totalSections']} sections, {stats['totalMedia']} media files")


if __name__ == "__main__":
    generate()
