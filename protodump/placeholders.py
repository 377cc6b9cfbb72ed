"""Placeholder files for imports that were never found.

When unknown dependencies are allowed, every missing import is replaced by a
file that carries only its name. The runtime still has to link the type
references that pointed into the missing file, so each unresolved, fully
qualified type name gets an empty stand-in message or enum. Stand-ins live in
synthetic files that every placeholder imports publicly, which makes them
visible to any file importing a placeholder.

A referenced type may also be defined by a collected file the dependent never
imports. The placeholder for its missing import then publicly imports that
file, unless doing so would close an import cycle; the type gets a stand-in
in that case.

Stand-ins go into one proto3 file per package, so that proto3 fields may use
the enums. Extendees need extension ranges: they and the types nested in them
go into a proto2 file instead.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Set, Tuple

from google.protobuf import descriptor_pb2

from protodump.database import EncodedDatabase

MESSAGE = 'message'
ENUM = 'enum'
EXTENDEE = 'extendee'

# Synthetic file names live under this directory
STAND_IN_DIR = "protodump/placeholders"

# Extension field numbers are 1..2^29-1; range ends are exclusive
MAX_EXTENSION_END = 536870912


def _file_scope(proto: descriptor_pb2.FileDescriptorProto) -> str:
    return f".{proto.package}" if proto.package else ""


def _walk_messages(messages, scope: str) -> Iterator[Tuple[str, descriptor_pb2.DescriptorProto]]:
    """Yield (full name, message) for messages and everything nested in them."""
    for message in messages:
        full_name = f"{scope}.{message.name}"
        yield full_name, message
        yield from _walk_messages(message.nested_type, full_name)


def type_references(proto: descriptor_pb2.FileDescriptorProto) -> Iterator[Tuple[str, str]]:
    """Yield (type name, kind) for every type a file refers to."""
    fields = list(proto.extension)
    for _, message in _walk_messages(proto.message_type, _file_scope(proto)):
        fields.extend(message.field)
        fields.extend(message.extension)

    for f in fields:
        if f.type_name:
            kind = ENUM if f.type == descriptor_pb2.FieldDescriptorProto.TYPE_ENUM else MESSAGE
            yield f.type_name, kind
        if f.extendee:
            yield f.extendee, EXTENDEE

    for service in proto.service:
        for method in service.method:
            if method.input_type:
                yield method.input_type, MESSAGE
            if method.output_type:
                yield method.output_type, MESSAGE


def split_symbol(symbol: str) -> Tuple[str, List[str]]:
    """Guess (package, nested type path) for a fully qualified type name.

    Packages are conventionally lower case and types capitalised, so the
    package ends before the first capitalised component. Without one, the
    last component is taken as the type.
    """
    parts = symbol.lstrip('.').split('.')
    for i, part in enumerate(parts):
        if part[:1].isupper():
            return '.'.join(parts[:i]), parts[i:]
    return '.'.join(parts[:-1]), parts[-1:]


def _find_named(items, name: str):
    for item in items:
        if item.name == name:
            return item
    return None


class _StandInFile:
    """Builder for one synthetic file of stand-in types."""

    def __init__(self, name: str, package: str, syntax: str):
        self.proto = descriptor_pb2.FileDescriptorProto(name=name, syntax=syntax)
        if package:
            self.proto.package = package

    def message(self, path: List[str]) -> descriptor_pb2.DescriptorProto:
        """Get or create the (nested) message at ``path``."""
        messages = self.proto.message_type
        message = None
        for part in path:
            message = _find_named(messages, part)
            if message is None:
                message = messages.add(name=part)
            messages = message.nested_type
        return message

    def enum(self, path: List[str]) -> descriptor_pb2.EnumDescriptorProto:
        """Get or create the enum at ``path`` (containers created as messages)."""
        container = self.message(path[:-1]).enum_type if len(path) > 1 else self.proto.enum_type
        enum = _find_named(container, path[-1])
        if enum is None:
            enum = container.add(name=path[-1])
            # Value names share the enclosing scope, so derive them from the enum
            enum.value.add(name=f"{path[-1].upper()}_PLACEHOLDER", number=0)
        return enum


@dataclass
class PlaceholderPlan:
    """Placeholder files for one frozen database."""
    missing: List[str] = field(default_factory=list)
    stand_in_files: Dict[str, descriptor_pb2.FileDescriptorProto] = field(default_factory=dict)
    stand_in_types: Dict[str, str] = field(default_factory=dict)
    # missing import -> collected files it publicly imports
    public_imports: Dict[str, List[str]] = field(default_factory=dict)

    def __contains__(self, name: str) -> bool:
        return name in self.missing or name in self.stand_in_files

    def is_placeholder(self, name: str) -> bool:
        """True for a substituted missing import (not a stand-in file)."""
        return name in self.missing

    def load(self, name: str) -> descriptor_pb2.FileDescriptorProto:
        """Descriptor for a placeholder or stand-in file.

        Raises:
            KeyError: if ``name`` is neither
        """
        if name in self.stand_in_files:
            proto = descriptor_pb2.FileDescriptorProto()
            proto.CopyFrom(self.stand_in_files[name])
            return proto

        if name not in self.missing:
            raise KeyError(name)

        proto = descriptor_pb2.FileDescriptorProto(name=name)
        imports = sorted(self.stand_in_files) + self.public_imports.get(name, [])
        for index, dependency in enumerate(imports):
            proto.dependency.append(dependency)
            proto.public_dependency.append(index)
        return proto


def _import_closure(imports: Dict[str, List[str]], name: str) -> Set[str]:
    """Every file reachable from ``name`` through imports, ``name`` included."""
    seen = {name}
    pending = [name]
    while pending:
        for dependency in imports.get(pending.pop(), ()):
            if dependency not in seen:
                seen.add(dependency)
                pending.append(dependency)
    return seen


def plan_placeholders(database: EncodedDatabase) -> PlaceholderPlan:
    """Work out placeholder and stand-in files for a complete database."""
    plan = PlaceholderPlan()
    files = list(database.iter_files())
    imports = {name: list(proto.dependency) for name, proto in files}

    for _, proto in files:
        for dependency in proto.dependency:
            if dependency not in database and dependency not in plan.missing:
                plan.missing.append(dependency)

    if not plan.missing:
        return plan

    # Relative names cannot be placed reliably and are left to the linker
    unresolved: Dict[str, str] = OrderedDict()
    for name, proto in files:
        reachable = _import_closure(imports, name)
        missing = next((d for d in proto.dependency if d not in database), None)

        for type_name, kind in type_references(proto):
            if not type_name.startswith('.'):
                continue

            owner = database.find_file_containing_symbol(type_name)
            if owner is not None:
                if owner in reachable or missing is None:
                    continue
                if missing not in _import_closure(imports, owner):
                    # The missing import stands for the file defining the type
                    public = plan.public_imports.setdefault(missing, [])
                    if owner not in public:
                        public.append(owner)
                    continue
                # Importing the owner would close an import cycle

            previous = unresolved.get(type_name)
            if previous is None or (previous == MESSAGE and kind == EXTENDEE):
                unresolved[type_name] = kind

    if not unresolved:
        return plan

    type_files: Dict[str, _StandInFile] = {}
    extendee_files: Dict[str, _StandInFile] = {}

    # Top-level stand-ins that need extension ranges, with everything nested
    # in them, must live in proto2 files
    extendee_roots = set()
    for type_name, kind in unresolved.items():
        if kind == EXTENDEE:
            package, path = split_symbol(type_name)
            extendee_roots.add((package, path[0]))

    def stand_in_file(files: Dict[str, _StandInFile], package: str, suffix: str, syntax: str) -> _StandInFile:
        if package not in files:
            name = f"{STAND_IN_DIR}/{package or '_root'}{suffix}"
            files[package] = _StandInFile(name, package, syntax)
        return files[package]

    for type_name, kind in unresolved.items():
        package, path = split_symbol(type_name)
        if (package, path[0]) in extendee_roots:
            builder = stand_in_file(extendee_files, package, ".extendees.proto", "proto2")
        else:
            builder = stand_in_file(type_files, package, ".proto", "proto3")

        if kind == ENUM:
            builder.enum(path)
        else:
            message = builder.message(path)
            if kind == EXTENDEE and not message.extension_range:
                message.extension_range.add(start=1, end=MAX_EXTENSION_END)
        plan.stand_in_types[type_name] = kind

    for builder in list(type_files.values()) + list(extendee_files.values()):
        plan.stand_in_files[builder.proto.name] = builder.proto

    return plan
