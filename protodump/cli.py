#!/usr/bin/env python3
"""
protodump CLI

Extracts .proto files from binaries that embed protobuf descriptors.

Usage:
    # Dump every .proto found in a binary into the current directory
    python -m protodump.cli libapp.so

    # Several inputs, verbose, into out/
    python -m protodump.cli app.exe plugin.dll -v -o out

    # Keep going when imports are missing (placeholders are used)
    python -m protodump.cli app.exe --unknown-dependencies

    # Also dump google/protobuf/descriptor.proto
    python -m protodump.cli app.exe --descriptor-proto
"""

import argparse
import json
import sys
from pathlib import Path, PurePosixPath
from typing import List, Optional

import google.protobuf

from protodump import __version__
from protodump.config import DEFAULT_OUTPUT_DIR, RunConfig
from protodump.log import LogCallback, make_log_callback
from protodump.models import RenderedSchema
from protodump.pipeline import extract_schemas


def output_path(root: Path, name: str) -> Optional[Path]:
    """Where a descriptor named ``name`` is written, or None if unsafe.

    Names come from untrusted binaries: absolute paths and '..' components
    would escape the output directory.
    """
    parts = PurePosixPath(name.replace('\\', '/')).parts
    if not parts or parts[0] == '/' or '..' in parts or ':' in parts[0]:
        return None
    return root.joinpath(*parts)


def write_outputs(outputs: List[RenderedSchema], root: Path, log: LogCallback) -> int:
    """Write rendered files below ``root``, creating directories as needed.

    Returns:
        Number of files written
    """
    written = 0
    for output in outputs:
        path = output_path(root, output.name)
        if path is None:
            log("warning", f"refusing to write '{output.name}' outside {root}")
            continue

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(output.text, encoding='utf-8')
        log("info", f"wrote {path}")
        written += 1
    return written


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='protodump',
        description='Extract .proto files from binaries',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example:
  protodump libapp.so -v -o protos/

Descriptors whose imports were not found make the run fail unless
--unknown-dependencies is given; missing imports are then replaced
with placeholder files.
        """
    )

    parser.add_argument(
        'files',
        nargs='+',
        help='Binary files to scan'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose output'
    )
    parser.add_argument(
        '--output-dir', '-o',
        default=str(DEFAULT_OUTPUT_DIR),
        help='Output directory, created if missing (default: current)'
    )
    parser.add_argument(
        '--descriptor-proto',
        action='store_true',
        help='Also dump google/protobuf/descriptor.proto'
    )
    parser.add_argument(
        '--unknown-dependencies',
        action='store_true',
        help='Dump definitions even if there are missing dependencies; '
             'they are replaced with placeholder descriptors'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Output results as JSON'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'protodump {__version__} (protobuf {google.protobuf.__version__})'
    )
    return parser


def run(argv: Optional[List[str]] = None) -> int:
    """Run the CLI, return the exit code."""
    args = build_parser().parse_args(argv)
    log = make_log_callback(args.verbose)

    paths = [Path(f) for f in args.files]
    for path in paths:
        if not path.exists():
            log("error", f"'{path}' not found")
            return 1

    inputs = []
    for path in paths:
        try:
            inputs.append((str(path), path.read_bytes()))
        except OSError as e:
            log("error", f"cannot read {path}: {e}")
            return 1

    def on_match(source: str, offset: int, name: str, size: int):
        log("info", f"found {name} @ 0x{offset:x} size {size}")

    config = RunConfig(
        allow_unknown_dependencies=args.unknown_dependencies,
        include_descriptor_proto=args.descriptor_proto,
    )
    result = extract_schemas(inputs, config, log_callback=log,
                             on_match=on_match if args.verbose else None)

    if result.success:
        try:
            write_outputs(result.outputs, Path(args.output_dir), log)
        except OSError as e:
            log("error", f"cannot write output: {e}")
            result.success = False
            result.error = str(e)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    elif result.success:
        print(f"{result.files_rendered} files, {result.messages_rendered} messages extracted")

    return 0 if result.success else 1


def main():
    """CLI entry point."""
    sys.exit(run())


if __name__ == '__main__':
    main()
