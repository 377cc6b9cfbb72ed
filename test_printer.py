#!/usr/bin/env python3
"""
test_printer.py - .proto rendering of linked descriptors

Tests:
- proto3 layout: enums, maps, oneofs, proto3 optional, reserved, services
- proto2 layout: groups, defaults, json names, options, extensions
- stable output for the same input
"""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from google.protobuf import descriptor_pb2, descriptor_pool

from protodump.printer import (
    MAX_FIELD_NUMBER, _format_range, count_message_types, json_name, render_file,
)

Field = descriptor_pb2.FieldDescriptorProto


def link(proto: descriptor_pb2.FileDescriptorProto):
    """Link one file into a fresh pool."""
    return descriptor_pool.DescriptorPool().AddSerializedFile(proto.SerializeToString())


def shapes_file() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto(name="demo/shapes.proto", package="demo", syntax="proto3")

    kind = proto.enum_type.add(name="Kind")
    kind.value.add(name="KIND_UNKNOWN", number=0)
    kind.value.add(name="KIND_ROUND", number=1)

    shape = proto.message_type.add(name="Shape")
    entry = shape.nested_type.add(name="CountsEntry")
    entry.options.map_entry = True
    entry.field.add(name="key", number=1, label=Field.LABEL_OPTIONAL, type=Field.TYPE_STRING)
    entry.field.add(name="value", number=2, label=Field.LABEL_OPTIONAL, type=Field.TYPE_INT32)

    shape.field.add(name="name", number=1, label=Field.LABEL_OPTIONAL, type=Field.TYPE_STRING)
    shape.field.add(name="kinds", number=2, label=Field.LABEL_REPEATED, type=Field.TYPE_ENUM,
                    type_name=".demo.Kind")
    shape.field.add(name="counts", number=3, label=Field.LABEL_REPEATED, type=Field.TYPE_MESSAGE,
                    type_name=".demo.Shape.CountsEntry")
    shape.oneof_decl.add(name="choice")
    shape.oneof_decl.add(name="_maybe")
    shape.field.add(name="text", number=4, label=Field.LABEL_OPTIONAL, type=Field.TYPE_STRING,
                    oneof_index=0)
    shape.field.add(name="number", number=5, label=Field.LABEL_OPTIONAL, type=Field.TYPE_INT64,
                    oneof_index=0)
    shape.field.add(name="maybe", number=6, label=Field.LABEL_OPTIONAL, type=Field.TYPE_INT32,
                    oneof_index=1, proto3_optional=True)
    shape.reserved_range.add(start=9, end=10)
    shape.reserved_range.add(start=12, end=15)
    shape.reserved_name.append("legacy")

    service = proto.service.add(name="Shapes")
    service.method.add(name="Get", input_type=".demo.Shape", output_type=".demo.Shape",
                       server_streaming=True)
    return proto


def legacy_file() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto(name="legacy.proto", package="legacy", syntax="proto2")
    proto.options.java_package = "com.legacy"

    level = proto.enum_type.add(name="Level")
    level.options.allow_alias = True
    level.value.add(name="LOW", number=0)
    level.value.add(name="BOTTOM", number=0)
    high = level.value.add(name="HIGH", number=1)
    high.options.deprecated = True

    search = proto.message_type.add(name="Search")
    result = search.nested_type.add(name="Result")
    result.field.add(name="url", number=2, label=Field.LABEL_OPTIONAL, type=Field.TYPE_STRING)

    search.field.add(name="result", number=1, label=Field.LABEL_OPTIONAL, type=Field.TYPE_GROUP,
                     type_name=".legacy.Search.Result")
    search.field.add(name="page", number=3, label=Field.LABEL_REQUIRED, type=Field.TYPE_INT32,
                     default_value="1")
    search.field.add(name="query", number=4, label=Field.LABEL_OPTIONAL, type=Field.TYPE_STRING,
                     default_value='a"b')
    ids = search.field.add(name="ids", number=5, label=Field.LABEL_REPEATED, type=Field.TYPE_INT32)
    ids.options.packed = True
    search.field.add(name="user_id", number=6, label=Field.LABEL_OPTIONAL, type=Field.TYPE_STRING,
                     json_name="uid")
    search.extension_range.add(start=100, end=200)

    proto.extension.add(name="extra", number=100, label=Field.LABEL_OPTIONAL, type=Field.TYPE_INT32,
                        extendee=".legacy.Search")
    return proto


class TestProto3Rendering(unittest.TestCase):
    """proto3 file with every common construct."""

    @classmethod
    def setUpClass(cls):
        cls.file_desc = link(shapes_file())
        cls.text = render_file(cls.file_desc)
        cls.lines = cls.text.splitlines()

    def test_header(self):
        self.assertEqual(self.lines[0], 'syntax = "proto3";')
        self.assertIn('package demo;', self.lines)

    def test_enum(self):
        self.assertIn('enum Kind {', self.lines)
        self.assertIn('  KIND_UNKNOWN = 0;', self.lines)
        self.assertIn('  KIND_ROUND = 1;', self.lines)

    def test_fields_use_qualified_names(self):
        self.assertIn('message Shape {', self.lines)
        self.assertIn('  string name = 1;', self.lines)
        self.assertIn('  repeated .demo.Kind kinds = 2;', self.lines)

    def test_map_folded(self):
        self.assertIn('  map<string, int32> counts = 3;', self.lines)
        self.assertNotIn('CountsEntry', self.text)

    def test_oneof(self):
        start = self.lines.index('  oneof choice {')
        self.assertEqual(self.lines[start + 1:start + 4], [
            '    string text = 4;',
            '    int64 number = 5;',
            '  }',
        ])

    def test_proto3_optional(self):
        self.assertIn('  optional int32 maybe = 6;', self.lines)
        self.assertNotIn('_maybe', self.text)

    def test_reserved(self):
        self.assertIn('  reserved 9, 12 to 14;', self.lines)
        self.assertIn('  reserved "legacy";', self.lines)

    def test_service(self):
        self.assertIn('service Shapes {', self.lines)
        self.assertIn('  rpc Get(.demo.Shape) returns (stream .demo.Shape);', self.lines)

    def test_declaration_order(self):
        self.assertLess(self.lines.index('enum Kind {'), self.lines.index('message Shape {'))
        self.assertLess(self.lines.index('message Shape {'), self.lines.index('service Shapes {'))

    def test_stable_output(self):
        self.assertEqual(render_file(self.file_desc), self.text)
        self.assertTrue(self.text.endswith('}\n'))

    def test_message_count(self):
        self.assertEqual(count_message_types(self.file_desc), 1)


class TestProto2Rendering(unittest.TestCase):
    """proto2 file with groups, defaults, options and extensions."""

    @classmethod
    def setUpClass(cls):
        cls.text = render_file(link(legacy_file()))
        cls.lines = cls.text.splitlines()

    def test_file_option(self):
        self.assertEqual(self.lines[0], 'syntax = "proto2";')
        self.assertIn('option java_package = "com.legacy";', self.lines)

    def test_group_folded(self):
        start = self.lines.index('  optional group Result = 1 {')
        self.assertEqual(self.lines[start + 1:start + 3], [
            '    optional string url = 2;',
            '  }',
        ])
        self.assertNotIn('message Result', self.text)

    def test_labels_and_defaults(self):
        self.assertIn('  required int32 page = 3 [default = 1];', self.lines)
        self.assertIn('  optional string query = 4 [default = "a\\"b"];', self.lines)

    def test_field_options(self):
        self.assertIn('  repeated int32 ids = 5 [packed = true];', self.lines)
        self.assertIn('  optional string user_id = 6 [json_name = "uid"];', self.lines)

    def test_extensions(self):
        self.assertIn('  extensions 100 to 199;', self.lines)
        start = self.lines.index('extend .legacy.Search {')
        self.assertEqual(self.lines[start + 1:start + 3], [
            '  optional int32 extra = 100;',
            '}',
        ])

    def test_enum_options(self):
        self.assertIn('  option allow_alias = true;', self.lines)
        self.assertIn('  BOTTOM = 0;', self.lines)
        self.assertIn('  HIGH = 1 [deprecated = true];', self.lines)


class TestImports(unittest.TestCase):
    """Import lines and public imports."""

    def test_import_modifiers(self):
        pool = descriptor_pool.DescriptorPool()
        for name in ("a.proto", "b.proto"):
            pool.AddSerializedFile(descriptor_pb2.FileDescriptorProto(
                name=name, package=name[0], syntax="proto3").SerializeToString())
        top = descriptor_pb2.FileDescriptorProto(
            name="top.proto", syntax="proto3", dependency=["a.proto", "b.proto"],
            public_dependency=[1])
        lines = render_file(pool.AddSerializedFile(top.SerializeToString())).splitlines()

        self.assertIn('import "a.proto";', lines)
        self.assertIn('import public "b.proto";', lines)
        self.assertNotIn('package', '\n'.join(lines))


class TestHelpers(unittest.TestCase):

    def test_json_name(self):
        self.assertEqual(json_name("user_id"), "userId")
        self.assertEqual(json_name("plain"), "plain")
        self.assertEqual(json_name("a_b_c"), "aBC")

    def test_format_range(self):
        self.assertEqual(_format_range(5, 5, MAX_FIELD_NUMBER), "5")
        self.assertEqual(_format_range(5, 9, MAX_FIELD_NUMBER), "5 to 9")
        self.assertEqual(_format_range(1000, MAX_FIELD_NUMBER, MAX_FIELD_NUMBER), "1000 to max")


if __name__ == '__main__':
    unittest.main(verbosity=2)
