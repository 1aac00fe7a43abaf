from __future__ import annotations

import mimetypes
from pathlib import Path

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".tif", ".tiff", ".dng", ".heic"}

def is_image(p: Path) -> bool:
    return p.suffix.lower() in IMAGE_SUFFIXES

def is_macos_artifact(p: Path) -> bool:
    name = p.name
    if name.startswith("._") or name == ".DS_Store":
        return True
    parts = p.parts
    return "__MACOSX" in parts

def guess_mime_type(p: Path) -> str:
    mime, _ = mimetypes.guess_type(p.name)
    if mime:
        return mime
    if p.suffix.lower() in {".dng"}:
        return "image/x-adobe-dng"
    return "image/jpeg"

def collect_images(paths: list[Path]) -> list[Path]:
    """Expand folders into the image files they contain, sorted, skipping macOS junk."""
    found: list[Path] = []
    for p in paths:
        if p.is_dir():
            for child in sorted(p.rglob("*")):
                if child.is_file() and is_image(child) and not is_macos_artifact(child):
                    found.append(child)
        elif p.is_file() and is_image(p) and not is_macos_artifact(p):
            found.append(p)
    return found
