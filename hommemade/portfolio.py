"""Portfolio manifest: scans portfolio/<section>/ media folders into gallery JSON.

Media filenames may carry metadata as ``title__description__tags.ext`` where
tags are separated by '-'.
"""

from __future__ import annotations

import json
import pathlib
import re
import shutil
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

SUPPORTED_EXTENSIONS = {
    "image": {".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg"},
    "video": {".mp4", ".webm", ".mov", ".avi"},
    "pdf": {".pdf"},
}

PLACEHOLDER_THUMBNAIL = "https://via.placeholder.com/400x300?text="

GALLERY_SETTINGS = {
    "autoPlay": False,
    "showTitles": True,
    "showDescriptions": True,
    "lazyLoad": True,
    "thumbnailQuality": "medium",
}


def media_type(filename: str) -> str:
    ext = pathlib.PurePath(filename).suffix.lower()
    for kind, extensions in SUPPORTED_EXTENSIONS.items():
        if ext in extensions:
            return kind
    return "unknown"


def format_title(name: str) -> str:
    """'brand-identity_v2' -> 'Brand Identity V2'."""
    words = [w for w in re.split(r"[-_\s]+", pathlib.PurePath(name).stem) if w]
    return " ".join(w[:1].upper() + w[1:].lower() for w in words)


def parse_filename(filename: str) -> dict:
    """Title, description and tags from a title__description__tags filename."""
    stem = pathlib.PurePath(filename).stem
    parts = stem.split("__")
    return {
        "title": format_title(parts[0] or stem),
        "description": parts[1] if len(parts) > 1 else "",
        "tags": parts[2].split("-") if len(parts) > 2 and parts[2] else [],
    }


def section_id(folder: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", folder.lower())


def scan_section(portfolio_dir: pathlib.Path, folder: str) -> dict:
    files = sorted(
        p.name for p in (portfolio_dir / folder).iterdir()
        if p.is_file() and media_type(p.name) != "unknown"
    )

    media = []
    for name in files:
        info = parse_filename(name)
        media.append({
            "src": f"portfolio/{folder}/{name}",
            "title": info["title"],
            "description": info["description"] or f"{info['title']} from {folder} collection",
            "type": media_type(name),
            "tags": info["tags"],
        })

    thumbnail = next(
        (m["src"] for m in media if m["type"] == "image"),
        PLACEHOLDER_THUMBNAIL + quote(folder),
    )
    title = format_title(folder)
    return {
        "id": section_id(folder),
        "title": title,
        "description": f"{title} portfolio collection",
        "thumbnail": thumbnail,
        "media": media,
    }


def scan_portfolio(portfolio_dir: pathlib.Path) -> list[dict]:
    """One section per sub-folder, sorted by folder name.

    Raises:
        FileNotFoundError: portfolio_dir does not exist
    """
    if not portfolio_dir.is_dir():
        raise FileNotFoundError(f"Portfolio directory '{portfolio_dir}' not found")
    folders = sorted(p.name for p in portfolio_dir.iterdir() if p.is_dir())
    return [scan_section(portfolio_dir, folder) for folder in folders]


def build_manifest(sections: list[dict], generated_at: Optional[datetime] = None) -> dict:
    generated_at = generated_at or datetime.now(timezone.utc)
    return {
        "gallery": {
            "title": "Creative Portfolio",
            "description": "A showcase of creative work and projects",
            "sections": sections,
        },
        "settings": dict(GALLERY_SETTINGS),
        "generated": {
            "timestamp": generated_at.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "totalSections": len(sections),
            "totalMedia": sum(len(s["media"]) for s in sections),
        },
    }


def write_manifest(manifest: dict, output: pathlib.Path) -> Optional[pathlib.Path]:
    """Write the manifest, keeping the previous one as <name>.backup.json.

    Returns:
        Backup path if an existing manifest was backed up
    """
    output.parent.mkdir(parents=True, exist_ok=True)
    backup = None
    if output.exists():
        backup = output.with_name(f"{output.stem}.backup{output.suffix}")
        shutil.copyfile(output, backup)
    output.write_text(json.dumps(manifest, indent=2, ensure_ascii=False), encoding="utf-8")
    return backup
