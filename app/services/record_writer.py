"""
Record Writer
=============
Persists finished BuildRecords as JSON for later inspection.

Layout:
    <data_root>/records/<project>/<YYYYmmddTHHMMSSffffff>-<hash12>.json

The pipeline never depends on this: a write failure is logged and
reported as None, and the build result stands.
"""
import json
import logging
import os
from typing import List, Optional

from app.core.constants import RECORDS_DIR
from app.models.build_record import BuildRecord

logger = logging.getLogger(__name__)


class RecordWriter:
    """
    Writes and reads back build records of finished builds.
    """

    def __init__(self, root: str) -> None:
        self.records_dir = os.path.join(os.path.abspath(root), RECORDS_DIR)

    def _project_dir(self, name: str) -> str:
        return os.path.join(self.records_dir, name)

    def write_record(self, record: BuildRecord) -> Optional[str]:
        """
        Write ``record`` to disk.

        Returns
        -------
        str | None
            Path of the written file, or None if writing failed.
        """
        try:
            directory = self._project_dir(record.name)
            os.makedirs(directory, exist_ok=True)
            stamp = record.started_at.strftime("%Y%m%dT%H%M%S%f")
            path = os.path.join(directory, f"{stamp}-{record.hash[:12]}.json")
            logger.info("Writing build record to %s", path)
            tmp_path = f"{path}.tmp"
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(record.model_dump(mode="json"), f, indent=2)
            os.replace(tmp_path, path)
            return path
        except Exception as e:
            logger.error("Failed to write build record for %s: %s", record.name, e, exc_info=True)
            return None

    def list_records(self, name: str) -> List[str]:
        directory = self._project_dir(name)
        if not os.path.isdir(directory):
            return []
        return sorted(
            os.path.join(directory, entry)
            for entry in os.listdir(directory)
            if entry.endswith(".json")
        )

    def latest(self, name: str) -> Optional[BuildRecord]:
        """
        Return the most recent readable record of project ``name``, if any.

        Files that cannot be read or parsed are logged and skipped in favour
        of the next newest one.
        """
        for path in reversed(self.list_records(name)):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    record = BuildRecord.model_validate(json.load(f))
            except (OSError, ValueError) as e:
                logger.warning("Skipping unreadable build record %s: %s", path, e)
                continue
            return record.finalize(record.hash, record.duration)
        return None
