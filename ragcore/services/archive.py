"""
Binary archival format for a document's chunk set.

Layout: ``b"RGCC"`` magic, one schema-version byte, then the Avro binary
encoding of a ``ContentChunks`` record. Decoding is strict: any other
magic, an unknown version, a truncated body or trailing bytes is rejected.
"""

import io
import logging

from fastavro import parse_schema, schemaless_reader, schemaless_writer
from fastavro.validation import ValidationError as AvroValidationError
from fastavro.validation import validate
from pydantic import ValidationError as PydanticValidationError

from ragcore.errors import CodecError
from ragcore.models.document import ContentData


logger = logging.getLogger(__name__)

MAGIC = b"RGCC"
SCHEMA_VERSION = 1
HEADER_SIZE = len(MAGIC) + 1

CHUNK_SCHEMA = {
    "type": "record",
    "name": "Chunk",
    "fields": [
        {"name": "id", "type": "string"},
        {"name": "url", "type": "string"},
        {"name": "type", "type": "string"},
        {"name": "title", "type": "string"},
        {"name": "content", "type": "string"},
        {"name": "vector", "type": {"type": "array", "items": "float"}},
    ],
}

CONTENT_SCHEMA = {
    "type": "record",
    "name": "ContentChunks",
    "fields": [
        {"name": "chunks", "type": {"type": "array", "items": CHUNK_SCHEMA}},
    ],
}

_PARSED_SCHEMA = parse_schema(CONTENT_SCHEMA)


def encode_content(data: ContentData) -> bytes:
    """
    Serialize a chunk set.

    Args:
        data: Chunk set to encode

    Returns:
        Versioned binary buffer

    Raises:
        CodecError: If the record does not fit the schema
    """
    record = data.model_dump()
    try:
        validate(record, _PARSED_SCHEMA, raise_errors=True)
    except AvroValidationError as e:
        raise CodecError(f"Record does not match ContentChunks schema: {e}") from e

    buf = io.BytesIO()
    buf.write(MAGIC)
    buf.write(bytes([SCHEMA_VERSION]))
    try:
        schemaless_writer(buf, _PARSED_SCHEMA, record)
    except (ValueError, TypeError) as e:
        raise CodecError(f"Failed to encode ContentChunks record: {e}") from e
    encoded = buf.getvalue()
    logger.debug(f"Encoded {len(data.chunks)} chunks into {len(encoded)} bytes")
    return encoded


def decode_content(buf: bytes) -> ContentData:
    """
    Deserialize a chunk set.

    Args:
        buf: Buffer produced by ``encode_content``

    Returns:
        Decoded chunk set

    Raises:
        CodecError: If the buffer is malformed or written with another schema version
    """
    if not isinstance(buf, (bytes, bytearray, memoryview)):
        raise CodecError(f"Expected bytes, got {type(buf).__name__}")
    buf = bytes(buf)

    if len(buf) < HEADER_SIZE or buf[:len(MAGIC)] != MAGIC:
        raise CodecError("Not a ContentChunks buffer (bad magic)")
    version = buf[len(MAGIC)]
    if version != SCHEMA_VERSION:
        raise CodecError(
            "Unsupported ContentChunks schema version",
            details={"expected": SCHEMA_VERSION, "actual": version},
        )

    stream = io.BytesIO(buf)
    stream.seek(HEADER_SIZE)
    try:
        record = schemaless_reader(stream, _PARSED_SCHEMA)
    except Exception as e:
        raise CodecError(f"Malformed ContentChunks body: {e}") from e

    if stream.tell() != len(buf):
        raise CodecError(
            "Trailing bytes after ContentChunks record",
            details={"consumed": stream.tell(), "size": len(buf)},
        )

    try:
        return ContentData.model_validate(record)
    except PydanticValidationError as e:
        raise CodecError(f"Decoded record is invalid: {e}") from e
