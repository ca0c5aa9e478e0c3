from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from google.protobuf.compiler import plugin_pb2
from google.protobuf.message import DecodeError

from protoc_gen_pydantic.builder import ModelBuilder, build_modules
from protoc_gen_pydantic.descriptors import CompilationUnit, load_file
from protoc_gen_pydantic.errors import CompileError, EmptyRequest, MalformedInput
from protoc_gen_pydantic.generator.pydantic_generator import generate_module
from protoc_gen_pydantic.map_entries import collect_map_entries
from protoc_gen_pydantic.options import PluginOptions, parse_options
from protoc_gen_pydantic.symbols import build_symbol_table

DUMP_ENV_VAR = "PROTOC_GEN_PYDANTIC_DUMP"
NO_INPUT_FILES = "No input files to generate"


def compile_request(
    request: plugin_pb2.CodeGeneratorRequest,
    options: PluginOptions,
) -> List[Tuple[str, str]]:
    """Compile a request into (file name, content) pairs.

    Raises CompileError for any failure; nothing is returned in that case.
    """
    if not request.file_to_generate and not request.proto_file:
        raise EmptyRequest(NO_INPUT_FILES)

    units: List[CompilationUnit] = [load_file(p) for p in request.proto_file]
    units_by_path: Dict[str, CompilationUnit] = {u.path: u for u in units}

    targets: List[CompilationUnit] = []
    for name in request.file_to_generate:
        unit = units_by_path.get(name)
        if unit is None:
            raise MalformedInput(f"File to generate '{name}' has no descriptor in the request")
        targets.append(unit)

    # 1. Symbols and map entries of the whole request, dependencies included
    symbols = build_symbol_table(units)
    map_entries = collect_map_entries(units, symbols)

    # 2. Resolved models for the requested files only
    builder = ModelBuilder(symbols, map_entries)
    generated: List[Tuple[str, str]] = []
    for module in build_modules(targets, builder):
        if options.verbose:
            print(
                f"Processing {', '.join(module.source_files)} -> {module.file_name}",
                file=sys.stderr,
            )
        generated.append((module.file_name, generate_module(module, options)))
    return generated


def _new_response() -> plugin_pb2.CodeGeneratorResponse:
    response = plugin_pb2.CodeGeneratorResponse()
    response.supported_features = plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL
    return response


def generate_code(request: plugin_pb2.CodeGeneratorRequest) -> plugin_pb2.CodeGeneratorResponse:
    """Run the plugin on a parsed request; failures land in ``response.error``."""
    response = _new_response()
    try:
        options = parse_options(request.parameter)
        generated = compile_request(request, options)
    except CompileError as e:
        print(f"FATAL: {e}", file=sys.stderr)
        response.error = str(e)
        return response

    for name, content in generated:
        response_file = response.file.add()
        response_file.name = name
        response_file.content = content
    return response


def run(data: bytes) -> plugin_pb2.CodeGeneratorResponse:
    """Parse a serialized request and run the plugin on it."""
    request = plugin_pb2.CodeGeneratorRequest()
    try:
        request.ParseFromString(data)
    except DecodeError as e:
        response = _new_response()
        response.error = str(MalformedInput(f"Could not parse code generator request: {e}"))
        return response
    return generate_code(request)


def dump_request(dump_file: str, data: bytes) -> None:
    """Save the raw request so a run can be replayed with ``--request``."""
    print(f"Writing input from protoc to: {dump_file}", file=sys.stderr)
    Path(dump_file).write_bytes(data)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="protoc-gen-pydantic",
        description="protoc plugin generating pydantic models from .proto files",
    )
    parser.add_argument(
        "--request",
        required=False,
        help="Read a serialized CodeGeneratorRequest from this file instead of stdin",
    )
    args = parser.parse_args(argv)

    if args.request:
        data = Path(args.request).read_bytes()
    else:
        data = sys.stdin.buffer.read()

    dump_file = os.getenv(DUMP_ENV_VAR)
    if dump_file:
        dump_request(dump_file, data)

    response = run(data)
    sys.stdout.buffer.write(response.SerializeToString())
    sys.stdout.buffer.flush()


if __name__ == "__main__":
    main()
