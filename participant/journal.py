"""
Durable per-transaction journal.

One JSON file per transaction id. A write goes to a hidden temporary file in
the same directory, is fsynced, then renamed over the record so a crash leaves
either the old record or the complete new one.
"""

import json
import logging
import os
import uuid
from pathlib import Path

from .context import ParticipantContext
from .exceptions import JournalError

logger = logging.getLogger(__name__)

SUFFIX = ".json"
TEMP_PREFIX = "."
TEMP_SUFFIX = ".tmp"


class Journal:

    def __init__(self, directory):
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise JournalError(f"Cannot create journal directory {self.directory}: {e}") from e

    def path_for(self, transaction_id):
        return self.directory / f"{transaction_id}{SUFFIX}"

    def _fsync_directory(self):
        fd = os.open(self.directory, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)

    def write(self, context: ParticipantContext):
        """Atomically replace the record for the context's transaction"""
        target = self.path_for(context.transaction_id)
        temp = self.directory / f"{TEMP_PREFIX}{target.name}{TEMP_SUFFIX}"
        payload = json.dumps(context.to_dict(), indent=2)
        try:
            with open(temp, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp, target)
            self._fsync_directory()
        except OSError as e:
            raise JournalError(f"Cannot write journal record {target}: {e}") from e
        logger.debug("Journalled %s in state %s", context.transaction_id, context.state.value)

    def delete(self, transaction_id):
        """Remove a record; a record that is already gone is not an error"""
        target = self.path_for(transaction_id)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise JournalError(f"Cannot delete journal record {target}: {e}") from e
        try:
            self._fsync_directory()
        except OSError as e:
            raise JournalError(f"Cannot sync journal directory {self.directory}: {e}") from e
        return True

    def read_all(self):
        """Load every complete record, discarding leftovers of interrupted writes"""
        contexts = []
        try:
            entries = sorted(self.directory.iterdir())
        except OSError as e:
            raise JournalError(f"Cannot list journal directory {self.directory}: {e}") from e

        for path in entries:
            if path.name.startswith(TEMP_PREFIX) and path.name.endswith(TEMP_SUFFIX):
                logger.warning("Removing incomplete journal write %s", path.name)
                try:
                    path.unlink()
                except OSError as e:
                    raise JournalError(f"Cannot remove {path}: {e}") from e
                continue
            if path.suffix != SUFFIX:
                continue
            try:
                uuid.UUID(path.stem)
            except ValueError:
                logger.warning("Ignoring foreign file in journal directory: %s", path.name)
                continue

            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                contexts.append(ParticipantContext.from_dict(data))
            except OSError as e:
                raise JournalError(f"Cannot read journal record {path}: {e}") from e
            except (ValueError, KeyError, TypeError) as e:
                raise JournalError(f"Corrupt journal record {path}: {e}") from e

        return contexts
