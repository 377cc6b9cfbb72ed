"""
Protobuf wire format helpers.

Bounds-checked varint reads and field skipping over raw buffers. Every read
is checked against the end of the buffer; nothing here ever indexes past it.
"""

from typing import Tuple

from google.protobuf.descriptor import FieldDescriptor


# Wire types
WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_LENGTH_DELIMITED = 2
WIRE_START_GROUP = 3  # Deprecated
WIRE_END_GROUP = 4    # Deprecated
WIRE_FIXED32 = 5

WIRE_TYPE_NAMES = {
    0: 'varint',
    1: 'fixed64',
    2: 'length_delimited',
    3: 'start_group',
    4: 'end_group',
    5: 'fixed32',
}

# Field type -> wire type it is encoded with
FIELD_WIRE_TYPES = {
    FieldDescriptor.TYPE_DOUBLE: WIRE_FIXED64,
    FieldDescriptor.TYPE_FLOAT: WIRE_FIXED32,
    FieldDescriptor.TYPE_INT64: WIRE_VARINT,
    FieldDescriptor.TYPE_UINT64: WIRE_VARINT,
    FieldDescriptor.TYPE_INT32: WIRE_VARINT,
    FieldDescriptor.TYPE_FIXED64: WIRE_FIXED64,
    FieldDescriptor.TYPE_FIXED32: WIRE_FIXED32,
    FieldDescriptor.TYPE_BOOL: WIRE_VARINT,
    FieldDescriptor.TYPE_STRING: WIRE_LENGTH_DELIMITED,
    FieldDescriptor.TYPE_GROUP: WIRE_START_GROUP,
    FieldDescriptor.TYPE_MESSAGE: WIRE_LENGTH_DELIMITED,
    FieldDescriptor.TYPE_BYTES: WIRE_LENGTH_DELIMITED,
    FieldDescriptor.TYPE_UINT32: WIRE_VARINT,
    FieldDescriptor.TYPE_ENUM: WIRE_VARINT,
    FieldDescriptor.TYPE_SFIXED32: WIRE_FIXED32,
    FieldDescriptor.TYPE_SFIXED64: WIRE_FIXED64,
    FieldDescriptor.TYPE_SINT32: WIRE_VARINT,
    FieldDescriptor.TYPE_SINT64: WIRE_VARINT,
}

# A varint never needs more than 10 bytes for 64 bits
MAX_VARINT_BYTES = 10


class WireFormatError(ValueError):
    """Malformed or truncated wire data."""


def read_varint(data: bytes, pos: int) -> Tuple[int, int]:
    """Read variable-length integer.

    Returns:
        Tuple of (value, position after the varint)

    Raises:
        WireFormatError: if the varint runs past the buffer or is too long.
    """
    result = 0
    shift = 0
    end = len(data)
    for _ in range(MAX_VARINT_BYTES):
        if pos >= end:
            raise WireFormatError("Truncated varint")
        byte = data[pos]
        result |= (byte & 0x7F) << shift
        pos += 1
        if not (byte & 0x80):
            return result, pos
        shift += 7
    raise WireFormatError("Varint too long")


def read_tag(data: bytes, pos: int) -> Tuple[int, int, int]:
    """Read a field tag.

    Returns:
        Tuple of (field_number, wire_type, position after the tag)
    """
    tag, pos = read_varint(data, pos)
    return tag >> 3, tag & 0x7, pos


def skip_value(data: bytes, pos: int, wire_type: int) -> int:
    """Skip one field value of the given wire type, return the new position.

    Groups are not skipped: descriptor messages never contain them at the
    level this is used for, so a group tag is reported as malformed.
    """
    end = len(data)

    if wire_type == WIRE_VARINT:
        _, pos = read_varint(data, pos)
        return pos

    if wire_type == WIRE_FIXED64:
        if pos + 8 > end:
            raise WireFormatError("Truncated fixed64")
        return pos + 8

    if wire_type == WIRE_FIXED32:
        if pos + 4 > end:
            raise WireFormatError("Truncated fixed32")
        return pos + 4

    if wire_type == WIRE_LENGTH_DELIMITED:
        length, pos = read_varint(data, pos)
        if length > end - pos:
            raise WireFormatError("Length-delimited value runs past buffer")
        return pos + length

    raise WireFormatError(f"Cannot skip wire type {WIRE_TYPE_NAMES.get(wire_type, wire_type)}")


def is_repeated(field: FieldDescriptor) -> bool:
    """Whether a field is repeated (newer runtimes expose ``is_repeated``)."""
    repeated = getattr(field, 'is_repeated', None)
    if repeated is None:
        return field.label == FieldDescriptor.LABEL_REPEATED
    return bool(repeated)


def accepted_wire_types(field: FieldDescriptor) -> Tuple[int, ...]:
    """Wire types a parser accepts for a field.

    Repeated numeric fields may be packed (length-delimited) or not.
    """
    wire_type = FIELD_WIRE_TYPES[field.type]
    if is_repeated(field) and wire_type not in (WIRE_LENGTH_DELIMITED, WIRE_START_GROUP):
        return (wire_type, WIRE_LENGTH_DELIMITED)
    return (wire_type,)
