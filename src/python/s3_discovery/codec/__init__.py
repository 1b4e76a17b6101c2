from .node_record_codec import FORMAT_VERSION, NodeRecordCodec

__all__ = [
    "FORMAT_VERSION",
    "NodeRecordCodec"
]
