"""Protocol buffer encoding of stabilization records.

Records are stored as protobuf messages so that data files are
interchangeable with other tools reading the same schema:

    syntax = "proto3";
    package clipstab;

    import "google/protobuf/timestamp.proto";

    message Frame {
      int32 id = 1;
      float dx = 2;  float dy = 3;  float da = 4;
      float x = 5;   float y = 6;   float a = 7;
    }
    message Stabilization {
      repeated Frame frame = 1;
      google.protobuf.Timestamp last_updated = 2;
    }

The message classes are built from this schema at import time, so no
generated ``_pb2`` module has to be kept in sync with it.
"""

import math
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory, timestamp_pb2
from google.protobuf.message import DecodeError

from ..core.types import (
    CorrectiveTransform,
    FrameStabilization,
    StabilizationRecord,
    Trajectory,
)
from ..errors import MalformedRecordError

PROTO_PACKAGE = "clipstab"
PROTO_FILE = "clipstab/stabilization.proto"

_FIELD = descriptor_pb2.FieldDescriptorProto


def _build_schema() -> descriptor_pb2.FileDescriptorProto:
    """Describe the Frame and Stabilization messages."""
    file_proto = descriptor_pb2.FileDescriptorProto(
        name=PROTO_FILE,
        package=PROTO_PACKAGE,
        syntax="proto3",
        dependency=[timestamp_pb2.DESCRIPTOR.name],
    )

    frame = file_proto.message_type.add(name="Frame")
    frame.field.add(name="id", number=1, type=_FIELD.TYPE_INT32, label=_FIELD.LABEL_OPTIONAL)
    for number, name in enumerate(("dx", "dy", "da", "x", "y", "a"), start=2):
        frame.field.add(name=name, number=number, type=_FIELD.TYPE_FLOAT, label=_FIELD.LABEL_OPTIONAL)

    stabilization = file_proto.message_type.add(name="Stabilization")
    stabilization.field.add(
        name="frame",
        number=1,
        type=_FIELD.TYPE_MESSAGE,
        label=_FIELD.LABEL_REPEATED,
        type_name=f".{PROTO_PACKAGE}.Frame",
    )
    stabilization.field.add(
        name="last_updated",
        number=2,
        type=_FIELD.TYPE_MESSAGE,
        label=_FIELD.LABEL_OPTIONAL,
        type_name=".google.protobuf.Timestamp",
    )
    return file_proto


# The default pool already holds timestamp.proto once timestamp_pb2 is imported
_pool = descriptor_pool.Default()
_pool.AddSerializedFile(_build_schema().SerializeToString())

FrameMessage = message_factory.GetMessageClass(
    _pool.FindMessageTypeByName(f"{PROTO_PACKAGE}.Frame")
)
StabilizationMessage = message_factory.GetMessageClass(
    _pool.FindMessageTypeByName(f"{PROTO_PACKAGE}.Stabilization")
)


def record_to_message(record: StabilizationRecord):
    """Build a Stabilization message from a record.

    Frames are added in ascending frame order. The timestamp keeps
    whole seconds only; naive datetimes are taken as UTC.

    Raises:
        ValueError: If a frame index does not fit an int32.
        LookupContractError: If the record's tables disagree.
    """
    message = StabilizationMessage()
    for entry in record.frames():
        frame = message.frame.add()
        frame.id = entry.frame_index
        frame.dx = entry.correction.dx
        frame.dy = entry.correction.dy
        frame.da = entry.correction.da
        frame.x = entry.trajectory.x
        frame.y = entry.trajectory.y
        frame.a = entry.trajectory.a

    moment = record.last_updated
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    message.last_updated.SetInParent()
    message.last_updated.FromSeconds(math.floor(moment.timestamp()))
    return message


def message_to_frames(message) -> Tuple[List[FrameStabilization], Optional[datetime]]:
    """Read frames and timestamp out of a Stabilization message.

    Raises:
        MalformedRecordError: On duplicate frame ids or an out of range
            timestamp.
    """
    frames: List[FrameStabilization] = []
    seen_ids = set()
    for frame in message.frame:
        if frame.id in seen_ids:
            raise MalformedRecordError(f"Duplicate frame id {frame.id}")
        seen_ids.add(frame.id)
        frames.append(FrameStabilization(
            frame_index=frame.id,
            trajectory=Trajectory(frame.x, frame.y, frame.a),
            correction=CorrectiveTransform(frame.dx, frame.dy, frame.da),
        ))

    last_updated: Optional[datetime] = None
    if message.HasField("last_updated"):
        try:
            last_updated = message.last_updated.ToDatetime(tzinfo=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise MalformedRecordError(f"Invalid timestamp: {e}") from e

    return frames, last_updated


def encode_record(record: StabilizationRecord) -> bytes:
    """Serialize a record to protobuf bytes."""
    return record_to_message(record).SerializeToString()


def decode_record(data: bytes) -> Tuple[List[FrameStabilization], Optional[datetime]]:
    """Parse a Stabilization message.

    Args:
        data: Raw file contents.

    Returns:
        Tuple of (frames in file order, last-updated timestamp or None
        when the message has none).

    Raises:
        MalformedRecordError: If the buffer is not a valid message or
            contains duplicate frame ids.
    """
    message = StabilizationMessage()
    try:
        message.ParseFromString(data)
    except DecodeError as e:
        raise MalformedRecordError(f"Invalid stabilization message: {e}") from e
    return message_to_frames(message)
