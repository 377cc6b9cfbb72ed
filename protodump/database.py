"""
Encoded Descriptor Database

Stores encoded FileDescriptorProto bytes by file name. The first file added
under a name wins; later files with the same name are ignored. Files are
indexed by their top-level symbols so that two different files defining the
same symbol are refused, as the reference runtime's encoded database does.
"""

from typing import Dict, Iterator, List, Optional, Tuple

from google.protobuf import descriptor_pb2
from google.protobuf.message import DecodeError

from protodump.errors import DatabaseError


def top_level_symbols(proto: descriptor_pb2.FileDescriptorProto) -> List[str]:
    """Package-qualified names of everything declared at file scope."""
    prefix = f"{proto.package}." if proto.package else ""
    names = []
    for message in proto.message_type:
        names.append(prefix + message.name)
    for enum in proto.enum_type:
        names.append(prefix + enum.name)
    for service in proto.service:
        names.append(prefix + service.name)
    for extension in proto.extension:
        names.append(prefix + extension.name)
    return names


class EncodedDatabase:
    """Name -> encoded descriptor bytes, first seen wins."""

    def __init__(self):
        self._files: Dict[str, bytes] = {}
        # symbol -> file that defines it
        self._symbols: Dict[str, str] = {}
        # every proper prefix of an indexed symbol -> file that caused it
        self._symbol_parents: Dict[str, str] = {}

    def add(self, data: bytes) -> bool:
        """Add an encoded FileDescriptorProto.

        Returns:
            True if added, False if a file with this name already exists.

        Raises:
            DatabaseError: if the bytes do not decode, carry no name, or
                define a symbol another file already defines.
        """
        data = bytes(data)
        try:
            proto = descriptor_pb2.FileDescriptorProto.FromString(data)
        except DecodeError as e:
            raise DatabaseError(f"Invalid encoded descriptor: {e}") from e

        if not proto.name:
            raise DatabaseError("Encoded descriptor has no file name")

        if proto.name in self._files:
            return False

        symbols = top_level_symbols(proto)
        for symbol in symbols:
            self._check_symbol(proto.name, symbol)

        self._files[proto.name] = data
        for symbol in symbols:
            self._symbols[symbol] = proto.name
            parts = symbol.split('.')
            for i in range(1, len(parts)):
                self._symbol_parents.setdefault('.'.join(parts[:i]), proto.name)
        return True

    def _check_symbol(self, file_name: str, symbol: str):
        """Refuse a symbol that clashes with one from an earlier file."""
        if symbol in self._symbols:
            raise DatabaseError(
                f"Symbol name \"{symbol}\" conflicts with the existing symbol "
                f"in file \"{self._symbols[symbol]}\" (adding {file_name})")

        if symbol in self._symbol_parents:
            raise DatabaseError(
                f"Symbol name \"{symbol}\" conflicts with a symbol nested under it "
                f"in file \"{self._symbol_parents[symbol]}\" (adding {file_name})")

        parts = symbol.split('.')
        for i in range(1, len(parts)):
            parent = '.'.join(parts[:i])
            if parent in self._symbols:
                raise DatabaseError(
                    f"Symbol name \"{symbol}\" is nested under \"{parent}\" "
                    f"from file \"{self._symbols[parent]}\" (adding {file_name})")

    # ========================================================================
    # Lookup
    # ========================================================================

    def find_file_bytes(self, name: str) -> Optional[bytes]:
        """Encoded bytes stored under ``name``, or None."""
        return self._files.get(name)

    def find_file_by_name(self, name: str) -> descriptor_pb2.FileDescriptorProto:
        """Decode the file stored under ``name``.

        Raises:
            KeyError: if no such file was added
        """
        return descriptor_pb2.FileDescriptorProto.FromString(self._files[name])

    def find_file_containing_symbol(self, symbol: str) -> Optional[str]:
        """Name of the file declaring ``symbol`` or one of its parents."""
        symbol = symbol.lstrip('.')
        parts = symbol.split('.')
        for i in range(len(parts), 0, -1):
            owner = self._symbols.get('.'.join(parts[:i]))
            if owner is not None:
                return owner
        return None

    def iter_files(self) -> Iterator[Tuple[str, descriptor_pb2.FileDescriptorProto]]:
        """Decoded files in insertion order."""
        for name in self._files:
            yield name, self.find_file_by_name(name)

    @property
    def names(self) -> List[str]:
        """File names in insertion order."""
        return list(self._files)

    def __contains__(self, name: str) -> bool:
        return name in self._files

    def __len__(self) -> int:
        return len(self._files)
