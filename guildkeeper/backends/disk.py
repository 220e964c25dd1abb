"""
guildkeeper.backends.disk — Persistent Disk Store
==================================================

Rooted file store for long-term data on the mounted volume
(``PERSISTENT_DISK_PATH``, ``/data`` by default)::

    <root>/cache/<key>.txt               # storage façade fallback blobs
    <root>/logs/<type>/<YYYY-MM-DD>.log  # newline-delimited JSON events
    <root>/backups/<name>/<ts>.json      # pretty-printed snapshots

Blocking file I/O is shipped to a worker thread with ``asyncio.to_thread``
so the event loop never stalls on the disk.  Every public method is total:
errors are logged and come back as ``False`` / ``None``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class DiskStore:
    """Async facade over a directory tree rooted at *root*."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path(self, relative: str) -> Path:
        """Resolve *relative* under the root, refusing paths that escape it."""
        root = self.root.resolve()
        full = (root / relative).resolve()
        if full != root and root not in full.parents:
            raise ValueError(f"Path escapes disk root: {relative!r}")
        return full

    # -----------------------------------------------------------------------
    # Sync implementations (run in a worker thread)
    # -----------------------------------------------------------------------
    def _write_sync(self, relative: str, data: str) -> bool:
        try:
            full = self.path(relative)
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_text(data, encoding="utf-8")
            logger.debug("Data written to disk: %s", full)
            return True
        except (OSError, ValueError) as exc:
            logger.error("Failed to write to disk %s: %s", relative, exc)
            return False

    def _append_sync(self, relative: str, data: str) -> bool:
        try:
            full = self.path(relative)
            full.parent.mkdir(parents=True, exist_ok=True)
            with open(full, "a", encoding="utf-8") as fh:
                fh.write(data)
            logger.debug("Data appended to disk: %s", full)
            return True
        except (OSError, ValueError) as exc:
            logger.error("Failed to append to disk %s: %s", relative, exc)
            return False

    def _read_sync(self, relative: str) -> str | None:
        try:
            return self.path(relative).read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("File not found on disk: %s", relative)
            return None
        except (OSError, ValueError) as exc:
            logger.error("Failed to read from disk %s: %s", relative, exc)
            return None

    def _exists_sync(self, relative: str) -> bool:
        try:
            return self.path(relative).is_file()
        except (OSError, ValueError):
            return False

    def _delete_sync(self, relative: str) -> bool:
        try:
            self.path(relative).unlink()
            logger.debug("File deleted from disk: %s", relative)
            return True
        except FileNotFoundError:
            logger.debug("Nothing to delete on disk: %s", relative)
            return False
        except (OSError, ValueError) as exc:
            logger.error("Failed to delete from disk %s: %s", relative, exc)
            return False

    def _list_sync(self, relative: str) -> list[str] | None:
        try:
            return sorted(entry.name for entry in self.path(relative).iterdir())
        except FileNotFoundError:
            logger.debug("Directory not found on disk: %s", relative)
            return None
        except (OSError, ValueError) as exc:
            logger.error("Failed to list disk directory %s: %s", relative or ".", exc)
            return None

    # -----------------------------------------------------------------------
    # Public async API
    # -----------------------------------------------------------------------
    async def write(self, relative: str, data: str) -> bool:
        """Write *data*, creating parent directories as needed."""
        return await asyncio.to_thread(self._write_sync, relative, data)

    async def append(self, relative: str, data: str) -> bool:
        """Append *data* (used for the event logs)."""
        return await asyncio.to_thread(self._append_sync, relative, data)

    async def read(self, relative: str) -> str | None:
        return await asyncio.to_thread(self._read_sync, relative)

    async def exists(self, relative: str) -> bool:
        return await asyncio.to_thread(self._exists_sync, relative)

    async def delete(self, relative: str) -> bool:
        return await asyncio.to_thread(self._delete_sync, relative)

    async def list(self, relative: str = "") -> list[str] | None:
        """Sorted entry names of a directory, or ``None`` if unreadable."""
        return await asyncio.to_thread(self._list_sync, relative)

    async def write_json(self, relative: str, data: Any) -> bool:
        try:
            payload = json.dumps(data, indent=2)
        except (TypeError, ValueError) as exc:
            logger.error("Failed to serialize JSON for %s: %s", relative, exc)
            return False
        return await self.write(relative, payload)

    async def read_json(self, relative: str) -> Any | None:
        raw = await self.read(relative)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse JSON from disk %s: %s", relative, exc)
            return None
