"""Wire format of the presence record stored in each object.

A record is a UTF-8 JSON object::

    {"format_version": 1, "cluster_id": "...", "node_id": "...",
     "host": "10.0.0.5", "port": 7800, "expiration_epoch_millis": 1700000000000}

Fields unknown to this version are ignored on decode.
"""

from __future__ import annotations

import json

from pydantic import ValidationError

from ..exceptions import DecodeError
from ..models import NodeRecord

FORMAT_VERSION = 1


class NodeRecordCodec:

    @staticmethod
    def encode(record: NodeRecord) -> bytes:
        payload = {"format_version": FORMAT_VERSION, **record.model_dump()}
        return json.dumps(payload, separators=(",", ":")).encode("utf-8")

    @staticmethod
    def decode(data: bytes, key: str | None = None) -> NodeRecord:
        """Decode stored bytes into a :class:`NodeRecord`.

        Raises:
            DecodeError: On anything that is not a complete, well-typed
                record. No other exception escapes.
        """
        if not isinstance(data, (bytes, bytearray)):
            raise DecodeError(f"expected bytes, got {type(data).__name__}", key=key)
        if not data.strip():
            raise DecodeError("empty content", key=key)
        try:
            text = bytes(data).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"not UTF-8: {exc}", key=key) from exc
        try:
            return NodeRecord.model_validate_json(text)
        except ValidationError as exc:
            reasons = ", ".join(
                f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
                for error in exc.errors()
            )
            raise DecodeError(reasons, key=key) from exc
        except ValueError as exc:
            raise DecodeError(str(exc), key=key) from exc
