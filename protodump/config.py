"""
protodump Configuration and Constants

Run options plus the byte patterns the scanner looks for.
"""

from dataclasses import dataclass
from pathlib import Path

# ============================================================================
# Scanner patterns
# ============================================================================

# Tag byte of FileDescriptorProto.name (field 1, wire type 2)
NAME_TAG = 0x0A

# Every descriptor file name ends with this
PROTO_SUFFIX = b".proto"

# Shortest name the scanner accepts (the suffix alone)
MIN_NAME_LENGTH = len(PROTO_SUFFIX)

# ============================================================================
# Well-known files
# ============================================================================

# Shipped by every binary that links the full runtime; skipped unless asked for
DESCRIPTOR_PROTO_NAME = "google/protobuf/descriptor.proto"

# ============================================================================
# Defaults
# ============================================================================

DEFAULT_OUTPUT_DIR = Path(".")


@dataclass(frozen=True)
class RunConfig:
    """Options for one extraction run.

    Attributes:
        allow_unknown_dependencies: Link descriptors whose imports were not
            found, substituting placeholder files for the missing ones.
        include_descriptor_proto: Also render google/protobuf/descriptor.proto
            when it is found.
    """
    allow_unknown_dependencies: bool = False
    include_descriptor_proto: bool = False
