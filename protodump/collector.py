"""
Descriptor Collector

Accumulates descriptors from every input buffer, in input order and offset
order within a buffer. Duplicates are kept; the pool decides later.
"""

from typing import Callable, Iterator, List, Optional

from protodump.models import RawDescriptor
from protodump.scanner import MatchCallback, scan_buffer


class DescriptorCollector:
    """Ordered accumulation of scanned descriptors.

    Example:
        collector = DescriptorCollector()
        collector.add_buffer("app.so", Path("app.so").read_bytes())
        for raw in collector:
            print(raw.name, raw.size)
    """

    def __init__(self, on_match: Optional[MatchCallback] = None,
                 log_callback: Optional[Callable[[str, str], None]] = None):
        self.on_match = on_match
        self.log_callback = log_callback
        self._descriptors: List[RawDescriptor] = []

    def add_buffer(self, source: str, data) -> List[RawDescriptor]:
        """Scan one buffer and append what it contains.

        Returns:
            The descriptors found in this buffer
        """
        if self.log_callback:
            self.log_callback("info", f"processing {source}")

        found = scan_buffer(data, source=source, on_match=self.on_match)
        self._descriptors.extend(found)
        return found

    @property
    def descriptors(self) -> List[RawDescriptor]:
        """All collected descriptors (a copy)."""
        return list(self._descriptors)

    def __iter__(self) -> Iterator[RawDescriptor]:
        return iter(list(self._descriptors))

    def __len__(self) -> int:
        return len(self._descriptors)
