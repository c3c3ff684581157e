#!/usr/bin/env python3
"""Print the link command for a link action described in YAML.

Reads a toolchain description and a link description, builds the link
spec and prints the resulting argv.  Nothing is executed.

Link description keys:
  owner, target, staticness, output, interface_output,
  symbol_counts_output, build_info_headers, linker_inputs,
  runtime_inputs, linkopts, features, linkstamps, runtime_solib_dir,
  native_deps, use_exec_origin, interface_so_builder

Artifacts are a path string or {path, root}; root defaults to the
toolchain bin_dir when the path lies under it.  Inputs additionally
accept objects: [...] (archive members) or fake: true.

Exit codes:
  0  argv printed
  1  invalid toolchain or link description
  2  usage error
"""

import argparse
import json
import shlex
import sys
from pathlib import PurePosixPath

import yaml

from _toolchain import load_toolchain
from link_artifacts import (
    ArchiveInput,
    Artifact,
    FakeObjectInput,
    LinkerInput,
    LinkStaticness,
    LinkTargetType,
    is_under,
)
from link_command import LinkCommandLine
from link_rpath import LinkAssemblyError
from link_spec import LinkSpecError, SpecBuilder


_LINK_KEYS = frozenset({
    "owner", "target", "staticness", "output", "interface_output",
    "symbol_counts_output", "build_info_headers", "linker_inputs",
    "runtime_inputs", "linkopts", "features", "linkstamps",
    "runtime_solib_dir", "native_deps", "use_exec_origin",
    "interface_so_builder",
})


def _enum(cls, key, value):
    try:
        return cls(str(value).lower())
    except ValueError:
        choices = ", ".join(m.value for m in cls)
        raise ValueError(f"invalid {key}: {value} (expected one of: {choices})") from None


def _bool(data, key):
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be true or false")
    return value


def _optional_str(data, key):
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def _artifact(value, bin_dir):
    """Parse an artifact from a path string or a {path, root} mapping."""
    if value is None:
        return None
    if isinstance(value, str):
        path, root = value, None
    elif isinstance(value, dict) and "path" in value:
        path, root = value["path"], value.get("root")
    else:
        raise ValueError(f"invalid artifact: {value!r}")
    if root is None:
        root = bin_dir if is_under(PurePosixPath(path), PurePosixPath(bin_dir)) else ""
    return Artifact(str(path), str(root))


def _input(value, bin_dir):
    if isinstance(value, dict) and "objects" in value:
        members = tuple(_artifact(m, bin_dir) for m in value["objects"])
        return ArchiveInput(_artifact(value, bin_dir), members)
    if isinstance(value, dict) and value.get("fake"):
        return FakeObjectInput(_artifact(value, bin_dir))
    return LinkerInput(_artifact(value, bin_dir))


def build_spec(data, toolchain):
    """Build a LinkSpec from a parsed link description."""
    unknown = set(data) - _LINK_KEYS
    if unknown:
        raise ValueError(f"unknown key in link description: {sorted(unknown)[0]}")
    for key in ("owner", "target", "output"):
        if key not in data:
            raise ValueError(f"missing required key: {key}")

    bin_dir = toolchain.bin_dir
    builder = SpecBuilder(toolchain, str(data["owner"]))
    builder.set_target_type(_enum(LinkTargetType, "target", data["target"]))
    if "staticness" in data:
        builder.set_staticness(_enum(LinkStaticness, "staticness", data["staticness"]))
    builder.set_output(_artifact(data["output"], bin_dir))
    builder.set_interface_output(_artifact(data.get("interface_output"), bin_dir))
    builder.set_symbol_counts_output(_artifact(data.get("symbol_counts_output"), bin_dir))
    builder.set_build_info_headers(
        _artifact(h, bin_dir) for h in data.get("build_info_headers") or [])
    builder.set_linker_inputs(_input(i, bin_dir) for i in data.get("linker_inputs") or [])
    builder.set_runtime_inputs(_input(i, bin_dir) for i in data.get("runtime_inputs") or [])
    builder.set_linkopts(str(o) for o in data.get("linkopts") or [])
    builder.set_features(str(f) for f in data.get("features") or [])
    linkstamps = []
    for entry in data.get("linkstamps") or []:
        if not isinstance(entry, dict) or set(entry) != {"source", "object"}:
            raise ValueError(f"linkstamp entries need source and object: {entry!r}")
        linkstamps.append((_artifact(entry["source"], bin_dir),
                           _artifact(entry["object"], bin_dir)))
    builder.set_linkstamps(linkstamps)
    builder.set_runtime_solib_dir(_optional_str(data, "runtime_solib_dir"))
    builder.set_native_deps(_bool(data, "native_deps"))
    builder.set_use_exec_origin(_bool(data, "use_exec_origin"))
    builder.set_interface_so_builder(_artifact(data.get("interface_so_builder"), bin_dir))
    return builder.build()


def format_argv(argv, fmt):
    if fmt == "json":
        return json.dumps(argv)
    if fmt == "shell":
        return shlex.join(argv)
    return "\n".join(argv)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Synthesize a link command line")
    parser.add_argument("--toolchain", required=True,
                        help="Toolchain description (YAML)")
    parser.add_argument("--link", required=True,
                        help="Link action description (YAML)")
    parser.add_argument("--raw", action="store_true",
                        help="Print the raw link argv without linkstamp compilation")
    parser.add_argument("--output-prefix", default=None,
                        help="Treat argv as already escaped and prefix linkstamp "
                             "outputs with this string")
    parser.add_argument("--format", choices=("json", "shell", "lines"), default="json",
                        help="Output format (default: json)")
    parser.add_argument("--verbose", action="store_true",
                        help="Describe the link action on stderr")
    args = parser.parse_args(argv)

    try:
        toolchain = load_toolchain(args.toolchain)
        with open(args.link) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{args.link}: top level must be a mapping")
        spec = build_spec(data, toolchain)
        cmd = LinkCommandLine(spec)
        result = cmd.raw_link_argv()
        if args.output_prefix is not None:
            result = cmd.finalize_already_escaped_with_linkstamp_commands(
                result, args.output_prefix)
        elif not args.raw:
            result = cmd.finalize_with_linkstamp_commands(result)
    except (OSError, yaml.YAMLError, LinkSpecError, LinkAssemblyError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.verbose:
        print(f"link_helper: {spec.target_type.value} ({spec.staticness.value}) "
              f"-> {spec.output.exec_path}, {len(spec.linker_inputs)} inputs, "
              f"{len(spec.linkstamps)} linkstamps", file=sys.stderr)

    print(format_argv(list(result), args.format))


if __name__ == "__main__":
    main()
