"""Versioned snapshot storage for knowledge base blue/green activation."""

from __future__ import annotations

import hashlib
import json
import os
import pathlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict

from .loader import KnowledgeBaseError


def payload_checksum(payload: Dict[str, Any]) -> str:
    canonical = json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class KnowledgeSnapshot:
    """An exported knowledge base document pinned to a version."""

    version: str
    created_at: str
    checksum: str
    payload: Dict[str, Any]

    @classmethod
    def create(cls, version: str, payload: Dict[str, Any]) -> "KnowledgeSnapshot":
        return cls(
            version=version,
            created_at=datetime.now(tz=timezone.utc).isoformat(),
            checksum=payload_checksum(payload),
            payload=payload,
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "version": self.version,
            "created_at": self.created_at,
            "checksum": self.checksum,
            "payload": self.payload,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeSnapshot":
        payload = dict(data.get("payload", {}))
        checksum = payload_checksum(payload)
        recorded = data.get("checksum")
        if recorded is not None and recorded != checksum:
            raise KnowledgeBaseError(f"Snapshot {data['version']} does not match its checksum")
        return cls(
            version=str(data["version"]),
            created_at=str(data["created_at"]),
            checksum=checksum,
            payload=payload,
        )


class SnapshotStore:
    """Knowledge snapshots on disk plus the pointer naming the active one.

    Both the snapshot files and the pointer are written to a temporary file
    and moved into place, so a reader never sees a partial write.
    """

    def __init__(self, base_dir: pathlib.Path):
        self.base_dir = pathlib.Path(base_dir)
        self.versions_dir = self.base_dir / "versions"
        self.pointer_path = self.base_dir / "active_version.txt"
        self.versions_dir.mkdir(parents=True, exist_ok=True)

    def save_snapshot(self, snapshot: KnowledgeSnapshot) -> pathlib.Path:
        path = self._path(snapshot.version)
        _write_atomic(path, json.dumps(snapshot.to_dict(), ensure_ascii=False, indent=2))
        return path

    def load_snapshot(self, version: str) -> KnowledgeSnapshot:
        path = self._path(version)
        if not path.exists():
            raise KeyError(f"Snapshot not found: {version}")
        return KnowledgeSnapshot.from_dict(json.loads(path.read_text(encoding="utf-8")))

    def versions(self) -> list[str]:
        return sorted(path.stem for path in self.versions_dir.glob("*.json"))

    def activate(self, version: str) -> None:
        """Points the store at a saved version; unknown versions are refused."""

        if not self._path(version).exists():
            raise KeyError(f"Snapshot not found: {version}")
        _write_atomic(self.pointer_path, version)

    def active_version(self) -> str | None:
        if not self.pointer_path.exists():
            return None
        return self.pointer_path.read_text(encoding="utf-8").strip() or None

    def load_active_snapshot(self) -> KnowledgeSnapshot | None:
        version = self.active_version()
        return self.load_snapshot(version) if version else None

    def _path(self, version: str) -> pathlib.Path:
        # Versions become file names; keep them to one path segment.
        safe = version.replace("/", "_").replace("\\", "_")
        return self.versions_dir / f"{safe}.json"


def _write_atomic(path: pathlib.Path, text: str) -> None:
    temp = path.with_name(path.name + ".tmp")
    temp.write_text(text, encoding="utf-8")
    os.replace(temp, path)
