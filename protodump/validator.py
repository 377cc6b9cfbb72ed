"""Confirm that a scanner candidate is a real encoded FileDescriptorProto.

Walks the top-level fields of the candidate without reading past the end of
the buffer, rejects anything FileDescriptorProto does not define, then fully
decodes the consumed span with the protobuf runtime.
"""

from typing import Optional

from google.protobuf import descriptor_pb2
from google.protobuf.message import DecodeError
from google.protobuf.unknown_fields import UnknownFieldSet

from protodump.models import RawDescriptor
from protodump.wire import (
    WIRE_VARINT, WIRE_END_GROUP,
    WireFormatError, accepted_wire_types, read_tag, skip_value,
)


# FileDescriptorProto fields known to the installed runtime
FILE_FIELDS = descriptor_pb2.FileDescriptorProto.DESCRIPTOR.fields_by_number


def measure_descriptor(buffer, offset: int) -> Optional[int]:
    """Find how many bytes of a descriptor message start at ``offset``.

    Parsing stops at a zero tag, an end-group tag or the end of the buffer;
    the terminating tag is not counted.

    Returns:
        Number of bytes consumed, or None if a field is malformed, truncated
        or not a FileDescriptorProto field.
    """
    pos = offset
    end = len(buffer)

    while pos < end:
        try:
            number, wire_type, value_pos = read_tag(buffer, pos)
        except WireFormatError:
            return None

        if number == 0:
            if wire_type == WIRE_VARINT:
                break
            return None

        if wire_type == WIRE_END_GROUP:
            break

        field = FILE_FIELDS.get(number)
        if field is None or wire_type not in accepted_wire_types(field):
            # Unrecognized field: random bytes almost always end up here
            return None

        try:
            pos = skip_value(buffer, value_pos, wire_type)
        except WireFormatError:
            return None

    return pos - offset


def validate_candidate(buffer, offset: int, expected_name: bytes,
                       source: str = "") -> Optional[RawDescriptor]:
    """Decode the descriptor at ``offset`` and check it matches the scan.

    Args:
        buffer: Bytes-like object being scanned
        offset: Position of the 0x0A name tag
        expected_name: Name bytes the scanner saw after the tag
        source: Label of the buffer, kept on the result

    Returns:
        RawDescriptor on success, None if this is not a descriptor.
    """
    try:
        name = bytes(expected_name).decode('utf-8')
    except UnicodeDecodeError:
        return None

    length = measure_descriptor(buffer, offset)
    if not length:
        return None

    data = bytes(buffer[offset:offset + length])
    try:
        proto = descriptor_pb2.FileDescriptorProto.FromString(data)
    except DecodeError:
        return None

    # Out-of-range values of closed enums (edition) decode as unknown fields
    if len(UnknownFieldSet(proto)):
        return None

    # A repeated name field later in the message would override the first
    if not proto.name or proto.name != name:
        return None

    return RawDescriptor(name=name, data=data, source=source, offset=offset)
