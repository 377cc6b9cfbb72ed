"""
Byte Scanner

Searches a buffer for the start of an encoded FileDescriptorProto: a name
field (tag 0x0A) with a one-byte length whose value ends in '.proto'.
Each plausible position is handed to the validator.
"""

from typing import Callable, Iterator, List, Optional

from protodump.config import MIN_NAME_LENGTH, NAME_TAG, PROTO_SUFFIX
from protodump.models import Candidate, RawDescriptor
from protodump.validator import validate_candidate

_NAME_TAG_BYTE = bytes([NAME_TAG])

# (source, offset, name, size) for every validated descriptor
MatchCallback = Callable[[str, int, str, int], None]


def match_at(buffer, offset: int) -> Optional[Candidate]:
    """Check whether a descriptor name field plausibly starts at ``offset``.

    The whole window (tag, length byte and name) must lie inside the buffer;
    a window cut off by the end of the buffer is not a match.
    """
    end = len(buffer)
    if offset < 0 or offset + 2 > end:
        return None

    if buffer[offset] != NAME_TAG:
        return None

    size = buffer[offset + 1]
    # Multi-byte varint lengths are not handled; names shorter than the
    # suffix cannot end with it
    if size >= 0x80 or size < MIN_NAME_LENGTH:
        return None

    name_end = offset + 2 + size
    if name_end > end:
        return None

    name = bytes(buffer[offset + 2:name_end])
    if not name.endswith(PROTO_SUFFIX):
        return None

    return Candidate(offset=offset, name=name)


def find_candidate(buffer, start: int = 0) -> Optional[Candidate]:
    """Return the first plausible descriptor start at or after ``start``."""
    end = len(buffer)
    pos = start
    while pos < end:
        pos = buffer.find(_NAME_TAG_BYTE, pos)
        if pos < 0:
            return None
        candidate = match_at(buffer, pos)
        if candidate is not None:
            return candidate
        pos += 1
    return None


def iter_candidates(buffer) -> Iterator[Candidate]:
    """Yield every plausible descriptor start, without validating any."""
    buffer = _searchable(buffer)
    pos = 0
    while True:
        candidate = find_candidate(buffer, pos)
        if candidate is None:
            return
        yield candidate
        pos = candidate.offset + 1


def scan_buffer(buffer, source: str = "<buffer>",
                on_match: Optional[MatchCallback] = None) -> List[RawDescriptor]:
    """Find all embedded descriptors in one buffer.

    After a failed candidate the scan moves on by a single byte; after a
    validated descriptor it continues behind the descriptor's bytes.

    Args:
        buffer: Bytes-like object (bytes, bytearray, mmap, memoryview)
        source: Label used in diagnostics and kept on each descriptor
        on_match: Optional callback (source, offset, name, size) per match

    Returns:
        Descriptors in offset order
    """
    buffer = _searchable(buffer)
    found: List[RawDescriptor] = []
    pos = 0

    while True:
        candidate = find_candidate(buffer, pos)
        if candidate is None:
            break

        raw = validate_candidate(buffer, candidate.offset, candidate.name, source)
        if raw is None:
            pos = candidate.offset + 1
            continue

        if on_match:
            on_match(source, raw.offset, raw.name, raw.size)

        found.append(raw)
        pos = candidate.offset + raw.size

    return found


def _searchable(buffer):
    """Buffers without .find() (memoryview) are copied to bytes."""
    if hasattr(buffer, 'find'):
        return buffer
    return bytes(buffer)
