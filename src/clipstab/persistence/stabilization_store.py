"""Persistence of stabilization data between analysis and rendering.

An analysis run is expensive and happens once per clip; rendering reads
its output for every frame, possibly in another process. The store is
the contract between the two: it writes a :class:`StabilizationRecord`
to a binary file and loads it back into memory.

Example:
    >>> store = StabilizationStore()
    >>> store.save(record, Path("clip.stab"))
    True
    >>> reader = StabilizationStore()
    >>> reader.load(Path("clip.stab"))
    True
    >>> reader.correction_for(12)
    CorrectiveTransform(dx=..., dy=..., da=...)
"""

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Union

from ..core.types import CorrectiveTransform, StabilizationRecord, Trajectory
from ..errors import (
    LookupContractError,
    MalformedRecordError,
    StoreError,
    StoreReadError,
    StoreWriteError,
    create_error_context,
)
from .wire import decode_record, encode_record

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _default_file_mode() -> int:
    """Permission bits a plain open() would give a new file."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


class StabilizationStore:
    """Reads and writes stabilization records.

    The store keeps the most recently saved or loaded record in memory.
    A failed load leaves that record untouched; a successful load
    replaces it completely.

    Attributes:
        record: The record currently held, or None before the first
            successful save or load.
    """

    def __init__(self, record: Optional[StabilizationRecord] = None) -> None:
        self.record = record

    # ------------------------------------------------------------------
    # Boolean API
    # ------------------------------------------------------------------

    def save(self, record: StabilizationRecord, path: PathLike) -> bool:
        """Write a record to disk.

        Args:
            record: Record to serialize.
            path: Destination file. Overwritten on success.

        Returns:
            True on success, False if the file could not be written.
        """
        try:
            self.write(record, path)
        except StoreError as e:
            logger.error(f"Failed to save stabilization data to {path}: {e}")
            return False
        return True

    def load(self, path: PathLike) -> bool:
        """Load a record from disk into this store.

        Args:
            path: Stabilization data file.

        Returns:
            True on success. On failure the previously held record is
            kept and False is returned.
        """
        try:
            self.read(path)
        except StoreError as e:
            logger.error(f"Failed to load stabilization data from {path}: {e}")
            return False
        return True

    # ------------------------------------------------------------------
    # Raising API
    # ------------------------------------------------------------------

    def write(self, record: StabilizationRecord, path: PathLike) -> Path:
        """Write a record to disk, raising on failure.

        The data is written to a temporary file in the destination
        directory and renamed over the target, so a failed write never
        leaves a partial file at ``path``.

        Returns:
            The destination path.

        Raises:
            StoreWriteError: If the record cannot be encoded or written.
        """
        path = Path(path)
        context = create_error_context("store", "save", output_file=path)

        try:
            payload = encode_record(record)
        except (ValueError, TypeError, LookupContractError) as e:
            raise StoreWriteError(f"Cannot encode record: {e}", path, context) from e

        temp_name: Optional[str] = None
        try:
            fd, temp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
            )
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            os.chmod(temp_name, _default_file_mode())
            os.replace(temp_name, path)
            temp_name = None
        except OSError as e:
            raise StoreWriteError(f"Cannot write {path}: {e}", path, context) from e
        finally:
            if temp_name is not None and os.path.exists(temp_name):
                os.unlink(temp_name)

        self.record = record
        logger.info(f"Saved stabilization data for {len(record)} frames to {path}")
        return path

    def read(self, path: PathLike) -> StabilizationRecord:
        """Load a record from disk, raising on failure.

        Returns:
            The loaded record, which also becomes :attr:`record`.

        Raises:
            StoreReadError: If the file cannot be opened or read.
            MalformedRecordError: If the contents do not parse.
        """
        path = Path(path)
        context = create_error_context("store", "load", input_file=path)

        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise StoreReadError(f"Cannot read {path}: {e}", path, context) from e

        try:
            frames, last_updated = decode_record(data)
        except MalformedRecordError as e:
            raise MalformedRecordError(
                f"Failed to parse {path}: {e}", path, context
            ) from e

        if last_updated is None:
            last_updated = datetime.fromtimestamp(0, tz=timezone.utc)
        else:
            logger.info(f"Loaded data. Saved time stamp: {last_updated.isoformat()}")

        # Built aside and swapped in whole so a failure never leaves
        # a partially populated record behind
        loaded = StabilizationRecord.from_frames(frames, last_updated)
        if not loaded.is_consistent():
            logger.warning(
                f"Stabilization data in {path} does not cover a contiguous "
                f"frame range starting at 0"
            )

        self.record = loaded
        logger.debug(f"Loaded stabilization data for {len(loaded)} frames from {path}")
        return loaded

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def corrections(self) -> Dict[int, CorrectiveTransform]:
        """Corrective transforms of the held record (empty if none)."""
        return self.record.corrections if self.record is not None else {}

    @property
    def trajectory(self) -> Dict[int, Trajectory]:
        """Smoothed trajectory of the held record (empty if none)."""
        return self.record.trajectory if self.record is not None else {}

    def correction_for(self, frame_index: int) -> CorrectiveTransform:
        """Return the stored correction for a frame.

        Raises:
            LookupContractError: If no record is held or the frame is
                not in it.
        """
        if self.record is None:
            raise LookupContractError(frame_index, table="corrections")
        return self.record.correction_for(frame_index)

    def __len__(self) -> int:
        return len(self.record) if self.record is not None else 0
