"""
Descriptor Pool Builder

Two phases:
  1. Ingestion - raw descriptors go into an EncodedDatabase, first name wins.
  2. Resolution - a file is decoded, its imports are resolved recursively and
     it is linked into a DescriptorPool. Results are cached per name.

Once the first resolution is requested the database is frozen; ingesting
after that would invalidate links that were already made.
"""

from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from google.protobuf import descriptor_pb2, descriptor_pool
from google.protobuf.descriptor import FileDescriptor

from protodump.config import RunConfig
from protodump.database import EncodedDatabase
from protodump.errors import (
    MissingDependencyError, PoolStateError, ResolutionError,
)
from protodump.models import RawDescriptor
from protodump.placeholders import PlaceholderPlan, plan_placeholders


class PoolState(Enum):
    EMPTY = 'empty'
    INGESTING = 'ingesting'
    BUILT = 'built'


class PoolBuilder:
    """Aggregate descriptors and link them into a descriptor pool.

    Example:
        builder = PoolBuilder(RunConfig(allow_unknown_dependencies=True))
        builder.ingest_all(collector)
        file_desc = builder.resolve("app/service.proto")
    """

    def __init__(self, config: Optional[RunConfig] = None,
                 log_callback: Optional[Callable[[str, str], None]] = None):
        self.config = config or RunConfig()
        self.log_callback = log_callback

        self.database = EncodedDatabase()
        self.pool = descriptor_pool.DescriptorPool()
        self.state = PoolState.EMPTY

        self._resolved: Dict[str, FileDescriptor] = {}
        self._resolving: List[str] = []
        self._plan: Optional[PlaceholderPlan] = None

    def _log(self, level: str, message: str):
        if self.log_callback:
            self.log_callback(level, message)

    # ========================================================================
    # Ingestion
    # ========================================================================

    def ingest(self, raw: RawDescriptor) -> bool:
        """Add one raw descriptor.

        Returns:
            True if stored, False if its name was already present.

        Raises:
            PoolStateError: if resolution has already started
            DatabaseError: if the bytes cannot be stored
        """
        if self.state is PoolState.BUILT:
            raise PoolStateError(f"Cannot ingest {raw.name}: pool already built")

        self.state = PoolState.INGESTING
        added = self.database.add(raw.data)
        if not added:
            self._log("info", f"skipping duplicate {raw.name} from {raw.source} @ 0x{raw.offset:x}")
        return added

    def ingest_all(self, descriptors: Iterable[RawDescriptor]) -> int:
        """Add descriptors in order, return how many were stored."""
        return sum(1 for raw in descriptors if self.ingest(raw))

    # ========================================================================
    # Resolution
    # ========================================================================

    def build(self):
        """Freeze the database. Called implicitly by resolve()."""
        if self.state is PoolState.BUILT:
            return
        self.state = PoolState.BUILT
        if self.config.allow_unknown_dependencies:
            self._plan = plan_placeholders(self.database)
            if self._plan.stand_in_types:
                self._log("info", f"{len(self._plan.stand_in_types)} unresolved types replaced by stand-ins")

    @property
    def placeholders(self) -> List[str]:
        """Missing imports that were (or will be) replaced."""
        return list(self._plan.missing) if self._plan else []

    def resolve(self, name: str) -> FileDescriptor:
        """Link ``name`` and everything it imports.

        Raises:
            MissingDependencyError: an import is missing and unknown
                dependencies are not allowed
            ResolutionError: ``name`` is unknown, imports form a cycle, or
                the runtime refuses to link the file
        """
        self.build()

        cached = self._resolved.get(name)
        if cached is not None:
            return cached

        if name in self._resolving:
            cycle = self._resolving[self._resolving.index(name):] + [name]
            raise ResolutionError(f"Import cycle: {' -> '.join(cycle)}")

        data = self._load(name)
        proto = descriptor_pb2.FileDescriptorProto.FromString(data)

        self._resolving.append(name)
        try:
            seen = set()
            for dependency in proto.dependency:
                if dependency in seen:
                    continue
                seen.add(dependency)
                if not self._available(dependency):
                    if not self.config.allow_unknown_dependencies:
                        raise MissingDependencyError(name, dependency)
                    self._log("warning", f"{name}: dependency '{dependency}' not found, using placeholder")
                self.resolve(dependency)

            file_desc = self._link(name, data)
        finally:
            self._resolving.pop()

        self._resolved[name] = file_desc
        return file_desc

    def _available(self, name: str) -> bool:
        if name in self.database:
            return True
        # Stand-in files are imported by placeholders only
        return self._plan is not None and name in self._plan.stand_in_files

    def _load(self, name: str) -> bytes:
        """Encoded bytes for a stored, placeholder or stand-in file."""
        data = self.database.find_file_bytes(name)
        if data is not None:
            return data

        if self._plan is not None and name in self._plan:
            return self._plan.load(name).SerializeToString()

        raise ResolutionError(f"{name} not found in descriptor database")

    def _link(self, name: str, data: bytes) -> FileDescriptor:
        try:
            return self.pool.AddSerializedFile(data)
        except (TypeError, ValueError, KeyError) as e:
            raise ResolutionError(f"Cannot link {name}: {e}") from e

    def is_placeholder(self, name: str) -> bool:
        """True if ``name`` was substituted for a missing import."""
        return self._plan is not None and self._plan.is_placeholder(name)
