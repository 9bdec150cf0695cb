#!/usr/bin/env python3
"""
bunfs dumper

Command-line interface for extracting the embedded filesystem of
executables produced by ``bun build --compile``.

Usage:
    bunfs-dumper <executable-file> [output-directory]
    bunfs-dumper -h | --help
    bunfs-dumper --version

Arguments:
    executable-file    Path to the compiled executable (e.g. app.exe)
    output-directory   Output directory (default: <executable-name>-extracted)

Options:
    -h --help          Show this help message
    --version          Show version
    --config PATH      Path to config.json
    --sha256 HEX       Expected SHA-256 of the executable
    -v --verbose       List every written module
"""

import sys
import argparse
import hashlib
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import Config
from .errors import FormatError
from .formats.locator import locate
from .formats.payload import SOURCE_SECTION
from .bundle.parser import parse
from .bundle.structures import StandaloneBundle
from .output.manifest import Manifest
from .output.writer import BundleWriter


class ChecksumError(Exception):
    """The executable does not match the expected digest."""


def default_output_dir(exe_path: str) -> str:
    """Get the default output directory for an executable."""
    path = Path(exe_path).resolve()
    return str(path.parent / f"{path.name}-extracted")


def verify_sha256(data: bytes, expected: str) -> None:
    """
    Compare the SHA-256 of ``data`` with an expected hex digest.

    Raises:
        ChecksumError: On mismatch
    """
    expected = expected.strip().lower()
    actual = hashlib.sha256(data).hexdigest()
    if actual != expected:
        raise ChecksumError(f"SHA256 mismatch: expected {expected}, got {actual}")
    print("SHA256 verified")


def init(exe_path: str, config: Config, expected_sha256: Optional[str] = None) -> StandaloneBundle:
    """
    Read an executable and parse its embedded bundle.

    Args:
        exe_path: Path to the compiled executable
        config: Configuration
        expected_sha256: Optional digest to verify before parsing

    Returns:
        The parsed bundle
    """
    print("Reading executable...")
    data = Path(exe_path).read_bytes()

    if expected_sha256:
        verify_sha256(data, expected_sha256)

    print("Locating embedded data...")
    payload = locate(data, config.section_name)
    if payload.source == SOURCE_SECTION:
        print(f"Detected PE format, {config.section_name} section: {len(payload):,} bytes")
    else:
        print(f"Detected trailing blob: {len(payload):,} bytes")

    print("Parsing module graph...")
    bundle = parse(payload)
    print(f"Parsed {len(bundle.modules)} modules (record size {bundle.record_size})")

    entry = bundle.entry_point
    if entry is not None:
        print(f"Entry point: {entry.original_path}")

    return bundle


def dump(bundle: StandaloneBundle, output_dir: str, config: Config) -> Manifest:
    """
    Write the extracted modules and metadata.json.

    Args:
        bundle: Parsed bundle
        output_dir: Output directory
        config: Configuration

    Returns:
        The written manifest
    """
    print("Writing modules...")
    manifest = BundleWriter(config).write(bundle, output_dir)
    print(f"Extracted {len(manifest.modules)} modules to {output_dir}")

    if bundle.compile_exec_argv:
        print(f"compile_exec_argv: {bundle.compile_exec_argv}")

    print("Done!")
    return manifest


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="bunfs dumper - Extract the embedded filesystem of Bun standalone executables",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('executable', help='Executable produced by bun build --compile')
    parser.add_argument('output', nargs='?', help='Output directory (default: <executable-name>-extracted)')
    parser.add_argument('--version', action='version', version=f'bunfs_dumper {__version__}')
    parser.add_argument('--config', type=str, help='Path to config.json')
    parser.add_argument('--sha256', type=str, help='Expected SHA-256 of the executable')
    parser.add_argument('-v', '--verbose', action='store_true', help='List every written module')

    args = parser.parse_args(argv)

    # Load config
    config_path = Path(args.config) if args.config else None
    config = Config.load(config_path)
    if args.verbose:
        config.verbose = True

    exe_path = args.executable
    if not Path(exe_path).is_file():
        print(f"ERROR: Executable not found: {exe_path}")
        return 1

    output_dir = args.output or default_output_dir(exe_path)

    try:
        bundle = init(exe_path, config, args.sha256)
        dump(bundle, output_dir, config)
    except (FormatError, ChecksumError) as e:
        print(f"ERROR: {e}")
        return 1
    except OSError as e:
        print(f"ERROR: {e}")
        return 1

    if config.require_any_key:
        try:
            input("Press Enter to exit...")
        except EOFError:
            pass  # Non-interactive mode

    return 0


if __name__ == "__main__":
    sys.exit(main())
