"""Stabilizer effect applied to a clip at render time.

The effect owns a read-only copy of the stabilization data produced by
an earlier analysis run and corrects each frame as it is rendered.
"""

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np

from .errors import InvalidJSONError, MissingFrameDataError
from .persistence.stabilization_store import StabilizationStore
from .processors.compensation import FrameCompensator

logger = logging.getLogger(__name__)

# Upper bound for time-based properties
MAX_TIME = 1000 * 60 * 30


@dataclass
class EffectInfo:
    """Descriptive metadata of an effect."""
    class_name: str = "Stabilizer"
    name: str = "Stabilizer"
    description: str = "Stabilize video clip to remove undesired shaking and jitter."
    has_audio: bool = False
    has_video: bool = True


def _property(
    name: str,
    value: Any,
    kind: str,
    minimum: float,
    maximum: float,
    readonly: bool,
) -> Dict[str, Any]:
    return {
        "name": name,
        "value": value,
        "type": kind,
        "min": minimum,
        "max": maximum,
        "readonly": readonly,
    }


class StabilizerEffect:
    """Applies stored stabilization data to rendered frames.

    Attributes:
        id: Effect identifier.
        position: Position of the effect on the timeline in seconds.
        layer: Track the effect sits on.
        start: Trim start in seconds.
        end: Trim end in seconds.
        info: Effect metadata.
        store: Store holding the loaded stabilization data.
        compensator: Frame compensator used by :meth:`get_frame`.

    Example:
        >>> effect = StabilizerEffect("clip.stab")
        >>> stable = effect.get_frame(frame, 12)
    """

    def __init__(
        self,
        data_path: Optional[Union[str, Path]] = None,
        compensator: Optional[FrameCompensator] = None,
    ) -> None:
        self.id = ""
        self.position = 0.0
        self.layer = 0
        self.start = 0.0
        self.end = 0.0
        self.info = EffectInfo()
        self.store = StabilizationStore()
        self.compensator = compensator or FrameCompensator()

        if data_path is not None:
            # A missing or unreadable file leaves the effect without data
            self.load_stabilized_data(data_path)

    @property
    def duration(self) -> float:
        return self.end - self.start

    @property
    def has_data(self) -> bool:
        return self.store.record is not None

    def load_stabilized_data(self, path: Union[str, Path]) -> bool:
        """Load stabilization data from disk.

        Returns:
            True on success; on failure previously loaded data is kept.
        """
        return self.store.load(path)

    def get_frame(self, image: np.ndarray, frame_number: int) -> np.ndarray:
        """Return the stabilized version of a frame.

        Raises:
            MissingFrameDataError: If no data was stored for the frame.
        """
        if not self.has_data:
            raise MissingFrameDataError(frame_number, table="stabilization data")
        return self.compensator.compensate(image, frame_number, self.store.corrections)

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the effect's settings."""
        return {
            "id": self.id,
            "position": self.position,
            "layer": self.layer,
            "start": self.start,
            "end": self.end,
            "type": self.info.class_name,
            **{k: v for k, v in asdict(self.info).items() if k != "class_name"},
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def set_json(self, value: str) -> None:
        """Load settings from a JSON string.

        Raises:
            InvalidJSONError: If the string is not a JSON object or a
                known key has the wrong type.
        """
        try:
            root = json.loads(value)
        except (TypeError, ValueError) as e:
            raise InvalidJSONError(
                "JSON is invalid (missing keys or invalid data types)"
            ) from e

        if not isinstance(root, dict):
            raise InvalidJSONError("JSON is invalid (missing keys or invalid data types)")

        self.set_json_value(root)

    def set_json_value(self, root: Dict[str, Any]) -> None:
        """Apply recognised keys from a parsed JSON object."""
        try:
            if "id" in root:
                self.id = str(root["id"])
            if "position" in root:
                self.position = float(root["position"])
            if "layer" in root:
                self.layer = int(root["layer"])
            if "start" in root:
                self.start = float(root["start"])
            if "end" in root:
                self.end = float(root["end"])
        except (TypeError, ValueError) as e:
            raise InvalidJSONError(
                "JSON is invalid (missing keys or invalid data types)"
            ) from e

    def properties_json(self, requested_frame: int) -> str:
        """Describe the effect's properties for an editor UI."""
        root = {
            "id": _property("ID", self.id, "string", -1, -1, True),
            "position": _property("Position", self.position, "float", 0, MAX_TIME, False),
            "layer": _property("Track", self.layer, "int", 0, 20, False),
            "start": _property("Start", self.start, "float", 0, MAX_TIME, False),
            "end": _property("End", self.end, "float", 0, MAX_TIME, False),
            "duration": _property("Duration", self.duration, "float", 0, MAX_TIME, True),
        }
        for prop in root.values():
            prop["frame"] = requested_frame
        return json.dumps(root, indent=2)
