"""
.proto Printer

Renders a linked FileDescriptor as .proto source. Layout follows the debug
output of the reference protobuf runtime: fully qualified type names with a
leading dot, nested declarations before fields, oneofs printed at their first
member, map entries and group bodies folded into their fields.

Structure (reserved ranges, options, defaults) comes from the file's
FileDescriptorProto; type names come from the linked descriptors.
"""

from typing import List, Optional, Set, Tuple

from google.protobuf import descriptor_pb2, text_encoding, text_format
from google.protobuf.descriptor import FieldDescriptor, FileDescriptor

from protodump.wire import is_repeated

FieldProto = descriptor_pb2.FieldDescriptorProto


# Scalar field type -> .proto keyword
SCALAR_TYPE_NAMES = {
    FieldDescriptor.TYPE_DOUBLE: 'double',
    FieldDescriptor.TYPE_FLOAT: 'float',
    FieldDescriptor.TYPE_INT64: 'int64',
    FieldDescriptor.TYPE_UINT64: 'uint64',
    FieldDescriptor.TYPE_INT32: 'int32',
    FieldDescriptor.TYPE_FIXED64: 'fixed64',
    FieldDescriptor.TYPE_FIXED32: 'fixed32',
    FieldDescriptor.TYPE_BOOL: 'bool',
    FieldDescriptor.TYPE_STRING: 'string',
    FieldDescriptor.TYPE_BYTES: 'bytes',
    FieldDescriptor.TYPE_UINT32: 'uint32',
    FieldDescriptor.TYPE_SFIXED32: 'sfixed32',
    FieldDescriptor.TYPE_SFIXED64: 'sfixed64',
    FieldDescriptor.TYPE_SINT32: 'sint32',
    FieldDescriptor.TYPE_SINT64: 'sint64',
}

# Largest field number; message ranges print it as "max"
MAX_FIELD_NUMBER = 536870911

# Largest enum value; enum ranges print it as "max"
MAX_ENUM_NUMBER = 2147483647

INDENT = '  '


def json_name(name: str) -> str:
    """Default JSON name protoc derives for a field name."""
    result = []
    upper = False
    for c in name:
        if c == '_':
            upper = True
        elif upper:
            result.append(c.upper())
            upper = False
        else:
            result.append(c)
    return ''.join(result)


def format_value(field: FieldDescriptor, value) -> str:
    """Format an option value the way it is written in .proto source."""
    if field.type == FieldDescriptor.TYPE_ENUM:
        enum_value = field.enum_type.values_by_number.get(value)
        return enum_value.name if enum_value is not None else str(value)
    if field.type == FieldDescriptor.TYPE_BOOL:
        return 'true' if value else 'false'
    if field.type == FieldDescriptor.TYPE_STRING:
        return '"' + text_encoding.CEscape(value, True) + '"'
    if field.type == FieldDescriptor.TYPE_BYTES:
        return '"' + text_encoding.CEscape(value, False) + '"'
    if field.type in (FieldDescriptor.TYPE_MESSAGE, FieldDescriptor.TYPE_GROUP):
        return '{ ' + text_format.MessageToString(value, as_one_line=True) + ' }'
    if field.type in (FieldDescriptor.TYPE_FLOAT, FieldDescriptor.TYPE_DOUBLE):
        return repr(value)
    return str(value)


def option_items(options, prefix: str = '') -> List[Tuple[str, str]]:
    """(name, value) pairs for every option set on an options message.

    Sub-message options are flattened to dotted names
    (``features.field_presence``). Custom options are not rendered.
    """
    items = []
    for field, value in options.ListFields():
        if field.is_extension or field.name == 'uninterpreted_option':
            continue
        name = prefix + field.name
        if is_repeated(field):
            for element in value:
                items.append((name, format_value(field, element)))
        elif field.type == FieldDescriptor.TYPE_MESSAGE:
            items.extend(option_items(value, name + '.'))
        else:
            items.append((name, format_value(field, value)))
    return items


def type_name(field: FieldDescriptor) -> str:
    """Type of a linked field as written in a field declaration."""
    if field.type in (FieldDescriptor.TYPE_MESSAGE, FieldDescriptor.TYPE_GROUP):
        return '.' + field.message_type.full_name
    if field.type == FieldDescriptor.TYPE_ENUM:
        return '.' + field.enum_type.full_name
    return SCALAR_TYPE_NAMES[field.type]


def _is_map_entry(field: FieldDescriptor) -> bool:
    return (field.type == FieldDescriptor.TYPE_MESSAGE
            and field.message_type.GetOptions().map_entry)


def _format_range(start: int, end: int, max_value: int) -> str:
    """``end`` is inclusive."""
    if start == end:
        return str(start)
    if end == max_value:
        return f"{start} to max"
    return f"{start} to {end}"


class ProtoPrinter:
    """Render one linked file as .proto text."""

    def __init__(self, file_desc: FileDescriptor):
        self.file_desc = file_desc
        self.pool = file_desc.pool
        self.proto = descriptor_pb2.FileDescriptorProto()
        file_desc.CopyToProto(self.proto)
        self.syntax = self.proto.syntax or 'proto2'
        self.lines: List[str] = []

    def render(self) -> str:
        """Generate the complete file."""
        self.lines = []
        self._header()

        for enum in self.proto.enum_type:
            self._enum(enum, 0)
            self.lines.append('')

        scope = self.proto.package
        for message in self.proto.message_type:
            self._message(message, self._qualify(scope, message.name), 0)
            self.lines.append('')

        for service in self.proto.service:
            self._service(service)
            self.lines.append('')

        if self.proto.extension:
            extensions = [self.file_desc.extensions_by_name[f.name] for f in self.proto.extension]
            self._extend_blocks(list(self.proto.extension), extensions, 0)
            self.lines.append('')

        while self.lines and self.lines[-1] == '':
            self.lines.pop()
        return '\n'.join(self.lines) + '\n'

    # ========================================================================
    # File level
    # ========================================================================

    def _header(self):
        if self.syntax == 'editions' and 'edition' in self.proto.DESCRIPTOR.fields_by_name:
            edition = descriptor_pb2.Edition.Name(self.proto.edition)
            self.lines.append(f'edition = "{edition.replace("EDITION_", "")}";')
        else:
            self.lines.append(f'syntax = "{self.syntax}";')
        self.lines.append('')

        if self.proto.package:
            self.lines.append(f'package {self.proto.package};')
            self.lines.append('')

        if self.proto.dependency:
            public = set(self.proto.public_dependency)
            weak = set(self.proto.weak_dependency)
            for i, dependency in enumerate(self.proto.dependency):
                modifier = 'public ' if i in public else 'weak ' if i in weak else ''
                self.lines.append(f'import {modifier}"{dependency}";')
            self.lines.append('')

        options = option_items(self.proto.options)
        if options:
            for name, value in options:
                self.lines.append(f'option {name} = {value};')
            self.lines.append('')

    def _qualify(self, scope: str, name: str) -> str:
        return f"{scope}.{name}" if scope else name

    def _options(self, options, depth: int):
        prefix = INDENT * depth
        for name, value in option_items(options):
            self.lines.append(f'{prefix}option {name} = {value};')

    # ========================================================================
    # Messages
    # ========================================================================

    def _message(self, message: descriptor_pb2.DescriptorProto, full_name: str,
                 depth: int, keyword: Optional[str] = None):
        """Emit a message block; ``keyword`` replaces the header for groups."""
        prefix = INDENT * depth
        message_desc = self.pool.FindMessageTypeByName(full_name)

        self.lines.append(keyword if keyword is not None else f'{prefix}message {message.name} {{')
        self._options(message.options, depth + 1)

        folded = self._folded_types(message, message_desc)
        for nested in message.nested_type:
            if nested.name not in folded:
                self._message(nested, self._qualify(full_name, nested.name), depth + 1)

        for enum in message.enum_type:
            self._enum(enum, depth + 1)

        self._fields(message, message_desc, depth + 1)

        for extension_range in message.extension_range:
            line = f'{prefix}{INDENT}extensions ' + _format_range(
                extension_range.start, extension_range.end - 1, MAX_FIELD_NUMBER)
            options = option_items(extension_range.options)
            if options:
                line += ' [' + ', '.join(f'{n} = {v}' for n, v in options) + ']'
            self.lines.append(line + ';')

        if message.extension:
            extensions = [message_desc.extensions_by_name[f.name] for f in message.extension]
            self._extend_blocks(list(message.extension), extensions, depth + 1)

        if message.reserved_range:
            ranges = [_format_range(r.start, r.end - 1, MAX_FIELD_NUMBER) for r in message.reserved_range]
            self.lines.append(f'{prefix}{INDENT}reserved {", ".join(ranges)};')
        if message.reserved_name:
            names = ', '.join(f'"{n}"' for n in message.reserved_name)
            self.lines.append(f'{prefix}{INDENT}reserved {names};')

        self.lines.append(f'{prefix}}}')

    def _folded_types(self, message: descriptor_pb2.DescriptorProto, message_desc) -> Set[str]:
        """Nested types printed as part of a field (map entries, groups)."""
        folded = set()
        for field in message.field:
            field_desc = message_desc.fields_by_name[field.name]
            if field.type == FieldProto.TYPE_GROUP or _is_map_entry(field_desc):
                nested = field_desc.message_type
                if nested.full_name == f"{message_desc.full_name}.{nested.name}":
                    folded.add(nested.name)
        return folded

    def _fields(self, message: descriptor_pb2.DescriptorProto, message_desc, depth: int):
        prefix = INDENT * depth
        synthetic = {f.oneof_index for f in message.field
                     if f.proto3_optional and f.HasField('oneof_index')}
        printed_oneofs = set()

        for field in message.field:
            field_desc = message_desc.fields_by_name[field.name]
            in_oneof = field.HasField('oneof_index') and field.oneof_index not in synthetic

            if not in_oneof:
                self._field(field, field_desc, message, depth)
                continue

            index = field.oneof_index
            if index in printed_oneofs:
                continue
            printed_oneofs.add(index)

            oneof = message.oneof_decl[index]
            self.lines.append(f'{prefix}oneof {oneof.name} {{')
            self._options(oneof.options, depth + 1)
            for member in message.field:
                if member.HasField('oneof_index') and member.oneof_index == index:
                    member_desc = message_desc.fields_by_name[member.name]
                    self._field(member, member_desc, message, depth + 1, in_oneof=True)
            self.lines.append(f'{prefix}}}')

    def _label(self, field: FieldProto, in_oneof: bool) -> str:
        if field.label == FieldProto.LABEL_REPEATED:
            return 'repeated '
        if in_oneof:
            return ''
        if field.proto3_optional:
            return 'optional '
        if self.syntax == 'proto2':
            if field.label == FieldProto.LABEL_REQUIRED:
                return 'required '
            return 'optional '
        return ''

    def _field_options(self, field: FieldProto, field_desc: FieldDescriptor) -> str:
        items = []
        if field.HasField('default_value'):
            items.append(('default', self._default_value(field)))
        if field.HasField('json_name') and field.json_name != json_name(field.name):
            items.append(('json_name', '"' + text_encoding.CEscape(field.json_name, True) + '"'))
        items.extend(option_items(field.options))
        if not items:
            return ''
        return ' [' + ', '.join(f'{name} = {value}' for name, value in items) + ']'

    def _default_value(self, field: FieldProto) -> str:
        if field.type == FieldProto.TYPE_STRING:
            return '"' + text_encoding.CEscape(field.default_value, True) + '"'
        if field.type == FieldProto.TYPE_BYTES:
            # Stored already escaped
            return '"' + field.default_value + '"'
        return field.default_value

    def _field(self, field: FieldProto, field_desc: FieldDescriptor,
               message: Optional[descriptor_pb2.DescriptorProto], depth: int,
               in_oneof: bool = False):
        prefix = INDENT * depth
        options = self._field_options(field, field_desc)

        if _is_map_entry(field_desc):
            entry = field_desc.message_type
            key = type_name(entry.fields_by_name['key'])
            value = type_name(entry.fields_by_name['value'])
            self.lines.append(f'{prefix}map<{key}, {value}> {field.name} = {field.number}{options};')
            return

        label = self._label(field, in_oneof)

        if field.type == FieldProto.TYPE_GROUP:
            group_desc = field_desc.message_type
            group = None
            if message is not None:
                group = next((m for m in message.nested_type if m.name == group_desc.name), None)
            header = f'{prefix}{label}group {group_desc.name} = {field.number}{options} {{'
            if group is None:
                self.lines.append(header)
                self.lines.append(f'{prefix}}}')
            else:
                self._message(group, group_desc.full_name, depth, keyword=header)
            return

        self.lines.append(f'{prefix}{label}{type_name(field_desc)} {field.name} = {field.number}{options};')

    # ========================================================================
    # Extensions
    # ========================================================================

    def _extend_blocks(self, fields: List[FieldProto], descs: List[FieldDescriptor], depth: int):
        """Consecutive extensions of the same message share an extend block."""
        prefix = INDENT * depth
        current = None
        for field, field_desc in zip(fields, descs):
            extendee = field_desc.containing_type.full_name
            if extendee != current:
                if current is not None:
                    self.lines.append(f'{prefix}}}')
                self.lines.append(f'{prefix}extend .{extendee} {{')
                current = extendee
            self._field(field, field_desc, None, depth + 1)
        if current is not None:
            self.lines.append(f'{prefix}}}')

    # ========================================================================
    # Enums and services
    # ========================================================================

    def _enum(self, enum: descriptor_pb2.EnumDescriptorProto, depth: int):
        prefix = INDENT * depth
        self.lines.append(f'{prefix}enum {enum.name} {{')
        self._options(enum.options, depth + 1)

        for value in enum.value:
            options = option_items(value.options)
            suffix = ''
            if options:
                suffix = ' [' + ', '.join(f'{n} = {v}' for n, v in options) + ']'
            self.lines.append(f'{prefix}{INDENT}{value.name} = {value.number}{suffix};')

        if enum.reserved_range:
            ranges = [_format_range(r.start, r.end, MAX_ENUM_NUMBER) for r in enum.reserved_range]
            self.lines.append(f'{prefix}{INDENT}reserved {", ".join(ranges)};')
        if enum.reserved_name:
            names = ', '.join(f'"{n}"' for n in enum.reserved_name)
            self.lines.append(f'{prefix}{INDENT}reserved {names};')

        self.lines.append(f'{prefix}}}')

    def _service(self, service: descriptor_pb2.ServiceDescriptorProto):
        service_desc = self.file_desc.services_by_name[service.name]
        self.lines.append(f'service {service.name} {{')
        self._options(service.options, 1)

        for method in service.method:
            method_desc = service_desc.methods_by_name[method.name]
            client = 'stream ' if method.client_streaming else ''
            server = 'stream ' if method.server_streaming else ''
            line = (f'{INDENT}rpc {method.name}({client}.{method_desc.input_type.full_name}) '
                    f'returns ({server}.{method_desc.output_type.full_name})')
            options = option_items(method.options)
            if options:
                self.lines.append(line + ' {')
                for name, value in options:
                    self.lines.append(f'{INDENT * 2}option {name} = {value};')
                self.lines.append(f'{INDENT}}}')
            else:
                self.lines.append(line + ';')

        self.lines.append('}')


def render_file(file_desc: FileDescriptor) -> str:
    """Render a linked file descriptor as .proto text."""
    return ProtoPrinter(file_desc).render()


def count_message_types(file_desc: FileDescriptor) -> int:
    """Number of top-level message types declared by a file."""
    return len(file_desc.message_types_by_name)
