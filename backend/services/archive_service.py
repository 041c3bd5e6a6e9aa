"""Archive service - CSV export of rows about to be rolled up and deleted."""

import csv
import logging
import os
from pathlib import Path
from typing import Iterable, Sequence

logger = logging.getLogger(__name__)


class ArchiveError(Exception):
    """An export did not reach disk."""


class ArchiveService:
    """Writes CSV archives into one directory.

    An existing file with the same name is replaced, so re-running a
    retention pass after a partial failure exports the same rows again.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def export(self, filename: str, header: Sequence[str], rows: Iterable[Sequence]) -> Path:
        """Write ``rows`` to ``filename`` and fsync before returning.

        The file is written to a temporary name and renamed into place so a
        crash never leaves a truncated archive under the final name.

        Returns:
            The archive path.

        Raises:
            ArchiveError: The file could not be written.
        """
        path = self.directory / filename
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        count = 0
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                writer.writerow(header)
                for row in rows:
                    writer.writerow(row)
                    count += 1
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as exc:
            raise ArchiveError(f"Failed to write archive {path}: {exc}") from exc

        logger.info("Archived %d rows to %s", count, path)
        return path
