"""
Export record stores.

The export pipeline receives its store as a dependency:
    - DatabaseExportStore: SQLite file in the output directory (production)
    - MemoryExportStore: in-process dictionary (tests, dry runs)

Both keep records in their JSON shape, keyed by Spotify playlist id, with
plain get/set/list/delete operations.
"""

from abc import ABC, abstractmethod
from typing import Any

from spot_navidrome.cache.records import PlaylistExportRecord
from spot_navidrome.core.database import Database


class ExportStore(ABC):
    """Key-value store of PlaylistExportRecord keyed by source playlist id."""

    @abstractmethod
    def get(self, playlist_id: str) -> PlaylistExportRecord | None:
        """Return the record of a playlist, or None if it was never exported."""

    @abstractmethod
    def set(self, record: PlaylistExportRecord) -> None:
        """Insert or replace the record of `record.source_playlist_id`."""

    @abstractmethod
    def list_all(self) -> list[PlaylistExportRecord]:
        """Return every stored record."""

    @abstractmethod
    def delete(self, playlist_id: str) -> bool:
        """Delete a record. Returns True if one existed."""


class MemoryExportStore(ExportStore):
    """Store holding one JSON dictionary per playlist in memory."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    def get(self, playlist_id: str) -> PlaylistExportRecord | None:
        data = self._records.get(playlist_id)
        return PlaylistExportRecord.from_dict(data) if data is not None else None

    def set(self, record: PlaylistExportRecord) -> None:
        self._records[record.source_playlist_id] = record.to_dict()

    def list_all(self) -> list[PlaylistExportRecord]:
        return [PlaylistExportRecord.from_dict(data) for data in self._records.values()]

    def delete(self, playlist_id: str) -> bool:
        return self._records.pop(playlist_id, None) is not None


class DatabaseExportStore(ExportStore):
    """
    Store backed by the SQLite Database.

    Example:
        store = DatabaseExportStore(Database(config.output.database_path))
        record = store.get(playlist.id)
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    def get(self, playlist_id: str) -> PlaylistExportRecord | None:
        data = self._database.get_export_record(playlist_id)
        return PlaylistExportRecord.from_dict(data) if data is not None else None

    def set(self, record: PlaylistExportRecord) -> None:
        self._database.save_export_record(record.to_dict())

    def list_all(self) -> list[PlaylistExportRecord]:
        return [
            PlaylistExportRecord.from_dict(data)
            for data in self._database.list_export_records()
        ]

    def delete(self, playlist_id: str) -> bool:
        return self._database.delete_export_record(playlist_id)

    def close(self) -> None:
        self._database.close()
