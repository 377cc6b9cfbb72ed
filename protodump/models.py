"""
protodump Data Models

Containers passed between the pipeline stages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Candidate:
    """Plausible descriptor start found by the byte scanner."""
    offset: int
    name: bytes     # Raw bytes of the name field, ends with b'.proto'


@dataclass(frozen=True)
class RawDescriptor:
    """Encoded FileDescriptorProto recovered from a buffer.

    ``data`` is exactly the span the validator consumed, nothing padded.
    """
    name: str
    data: bytes
    source: str = ""
    offset: int = 0

    @property
    def size(self) -> int:
        """Encoded size in bytes."""
        return len(self.data)


@dataclass(frozen=True)
class RenderedSchema:
    """One rendered .proto file."""
    name: str
    text: str
    message_count: int = 0


@dataclass
class ExtractionResult:
    """Result of an extraction run."""
    success: bool
    descriptors_found: int = 0
    files_rendered: int = 0
    messages_rendered: int = 0
    outputs: List[RenderedSchema] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Summary suitable for JSON output (rendered text omitted)."""
        return {
            'success': self.success,
            'descriptors_found': self.descriptors_found,
            'files_rendered': self.files_rendered,
            'messages_rendered': self.messages_rendered,
            'files': [output.name for output in self.outputs],
            'error': self.error,
        }
