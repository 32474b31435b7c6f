"""Persistence of stabilization data."""

from .stabilization_store import StabilizationStore
from .wire import decode_record, encode_record

__all__ = ["StabilizationStore", "decode_record", "encode_record"]
