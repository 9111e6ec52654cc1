"""
Export descriptor embedded in Navidrome playlist comments.

When a playlist is exported, its Navidrome comment receives a descriptor
linking it back to the Spotify playlist and snapshot it was generated from.
Re-reading the comment lets an export recognize playlists it already created
even when the local export cache has been deleted.

Comment format (two lines):
    Exported from Spotify by spot-navidrome
    [spot-navidrome] {"sourcePlaylistId": "...", "sourceSnapshotId": "...", ...}

The human-readable first line is free text. Only the tagged JSON line is parsed.
"""

import json
import re
from dataclasses import dataclass
from typing import Any


DESCRIPTOR_TAG = "[spot-navidrome]"
DESCRIPTOR_HEADLINE = "Exported from Spotify by spot-navidrome"

_DESCRIPTOR_PATTERN = re.compile(r"^\s*" + re.escape(DESCRIPTOR_TAG) + r"\s*(\{.*\})\s*$", re.MULTILINE)


@dataclass(frozen=True)
class ExportDescriptor:
    """
    Link between a Navidrome playlist and its Spotify source.

    Attributes:
        source_playlist_id: Spotify playlist ID.
        source_snapshot_id: Spotify snapshot ID at the time of the export.
        destination_playlist_id: Navidrome playlist ID, when known.
        exported_at: ISO timestamp of the export.
        track_count: Number of Spotify tracks at the time of the export.
    """

    source_playlist_id: str
    source_snapshot_id: str
    destination_playlist_id: str | None
    exported_at: str
    track_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "sourcePlaylistId": self.source_playlist_id,
            "sourceSnapshotId": self.source_snapshot_id,
            "destinationPlaylistId": self.destination_playlist_id,
            "exportedAt": self.exported_at,
            "trackCount": self.track_count,
        }

    def with_destination(self, destination_playlist_id: str) -> "ExportDescriptor":
        """Return a copy with the Navidrome playlist id filled in."""
        return ExportDescriptor(
            source_playlist_id=self.source_playlist_id,
            source_snapshot_id=self.source_snapshot_id,
            destination_playlist_id=destination_playlist_id,
            exported_at=self.exported_at,
            track_count=self.track_count,
        )

    def to_comment(self) -> str:
        """Serialize into a playlist comment."""
        payload = json.dumps(self.to_dict(), separators=(",", ":"))
        return f"{DESCRIPTOR_HEADLINE}\n{DESCRIPTOR_TAG} {payload}"

    @classmethod
    def from_comment(cls, text: str | None) -> "ExportDescriptor | None":
        """
        Parse a descriptor out of a playlist comment.

        Args:
            text: Raw Navidrome playlist comment (may be None or empty).

        Returns:
            The descriptor, or None if the comment has no tagged line, the
            JSON is invalid, or the source playlist id is missing.
        """
        if not text:
            return None

        match = _DESCRIPTOR_PATTERN.search(text)
        if match is None:
            return None

        try:
            data = json.loads(match.group(1))
        except json.JSONDecodeError:
            return None

        if not isinstance(data, dict) or not data.get("sourcePlaylistId"):
            return None

        try:
            track_count = int(data.get("trackCount") or 0)
        except (TypeError, ValueError):
            track_count = 0

        return cls(
            source_playlist_id=str(data["sourcePlaylistId"]),
            source_snapshot_id=str(data.get("sourceSnapshotId") or ""),
            destination_playlist_id=data.get("destinationPlaylistId") or None,
            exported_at=str(data.get("exportedAt") or ""),
            track_count=track_count,
        )
