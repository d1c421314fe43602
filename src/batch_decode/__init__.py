"""Chunked NDJSON decoding against a fixed unified schema."""

from batch_decode.columns import RecordColumnizer, ValueMismatch, build_converter
from batch_decode.reader import BatchDecoder

__all__ = ["BatchDecoder", "RecordColumnizer", "ValueMismatch", "build_converter"]
