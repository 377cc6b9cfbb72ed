"""protodump - extract .proto files from binaries.

Finds protobuf file descriptors embedded in compiled programs, links them
and renders them back as .proto source.

Example:
    from pathlib import Path
    from protodump import RunConfig, extract_schemas

    result = extract_schemas({"app.so": Path("app.so").read_bytes()},
                             RunConfig(allow_unknown_dependencies=True))
    for output in result.outputs:
        print(output.name, output.message_count)
"""

__version__ = "1.1.0"

from protodump.config import RunConfig, DESCRIPTOR_PROTO_NAME
from protodump.errors import (
    ProtodumpError,
    DatabaseError,
    PoolStateError,
    ResolutionError,
    MissingDependencyError,
)
from protodump.models import RawDescriptor, RenderedSchema, ExtractionResult
from protodump.scanner import scan_buffer, iter_candidates
from protodump.validator import validate_candidate
from protodump.collector import DescriptorCollector
from protodump.database import EncodedDatabase
from protodump.pool import PoolBuilder, PoolState
from protodump.printer import render_file
from protodump.pipeline import extract_schemas, run_extraction

__all__ = [
    "RunConfig",
    "DESCRIPTOR_PROTO_NAME",
    "ProtodumpError",
    "DatabaseError",
    "PoolStateError",
    "ResolutionError",
    "MissingDependencyError",
    "RawDescriptor",
    "RenderedSchema",
    "ExtractionResult",
    "scan_buffer",
    "iter_candidates",
    "validate_candidate",
    "DescriptorCollector",
    "EncodedDatabase",
    "PoolBuilder",
    "PoolState",
    "render_file",
    "extract_schemas",
    "run_extraction",
]
