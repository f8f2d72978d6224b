"""Catalogs of transition clips and background tracks.

Each catalog directory may hold a ``manifest.json``; without one (or when it
cannot be read) the directory is scanned for media files.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from reelsmith.errors import ValidationError

log = logging.getLogger(__name__)


@dataclass
class Asset:
    id: str
    filename: str
    name: str
    duration: float | None = None
    category: str | None = None


class AssetCatalog:
    """Assets of one kind stored in ``directory``."""

    def __init__(self, directory: Path, manifest_key: str, extensions: tuple[str, ...], kind: str):
        self.directory = Path(directory)
        self.manifest_key = manifest_key
        self.extensions = extensions
        self.kind = kind

    @property
    def manifest_path(self) -> Path:
        return self.directory / "manifest.json"

    def _from_manifest(self) -> list[Asset] | None:
        if not self.manifest_path.exists():
            return None
        try:
            data = json.loads(self.manifest_path.read_text(encoding="utf-8"))
            entries = data.get(self.manifest_key) or []
            return [
                Asset(
                    id=str(e["id"]),
                    filename=str(e["filename"]),
                    name=str(e.get("name") or e["id"]),
                    duration=float(e["duration"]) if e.get("duration") is not None else None,
                    category=e.get("category") or e.get("mood"),
                )
                for e in entries
            ]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            log.warning("Failed to read %s, falling back to directory scan: %s", self.manifest_path, e)
            return None

    def _scan(self) -> list[Asset]:
        if not self.directory.is_dir():
            return []
        return [
            Asset(
                id=p.stem,
                filename=p.name,
                name=p.stem.replace("-", " ").replace("_", " ").title(),
            )
            for p in sorted(self.directory.iterdir())
            if p.is_file() and p.suffix.lower() in self.extensions
        ]

    def list(self) -> list[Asset]:
        assets = self._from_manifest()
        return assets if assets is not None else self._scan()

    def get(self, asset_id: str) -> Asset | None:
        return next((a for a in self.list() if a.id == asset_id), None)

    def by_category(self, category: str) -> list[Asset]:
        needle = category.lower()
        return [a for a in self.list() if a.category and needle in a.category.lower()]

    def resolve(self, asset_id: str) -> tuple[Asset, Path]:
        """Return the asset and its file path, or raise ValidationError."""
        asset = self.get(asset_id)
        if asset is None:
            raise ValidationError(f"{self.kind} '{asset_id}' not found")
        path = self.directory / asset.filename
        if not path.is_file():
            raise ValidationError(f"{self.kind} file '{asset.filename}' not found")
        return asset, path


def transition_catalog(assets_dir: Path) -> AssetCatalog:
    return AssetCatalog(
        Path(assets_dir) / "transitions", "transitions", (".mp4", ".mov", ".avi"), "Transition"
    )


def track_catalog(assets_dir: Path) -> AssetCatalog:
    return AssetCatalog(
        Path(assets_dir) / "background-audio", "tracks", (".mp3", ".wav"), "Background audio track"
    )
