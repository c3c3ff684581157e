"""Raw argv for one link or archive action, dispatched on target type."""

from __future__ import annotations

from link_artifacts import ArchiveType, LinkStaticness, LinkTargetType
from link_inputs import add_input_options, need_whole_archive, shared_linkopts
from link_rpath import LinkAssemblyError
from link_spec import LinkSpec


# Runs the link ("$cmd" "$@"), then builds the interface .so from its output.
INTERFACE_SO_SCRIPT = (
    'build_iface_so="$0"; impl="$1"; iface="$2"; cmd="$3"; shift 3; '
    '"$cmd" "$@" && "$build_iface_so" "$impl" "$iface"'
)


def raw_link_argv(spec: LinkSpec) -> list[str]:
    """Return the linker or archiver argv, without linkstamp compilation."""
    tc = spec.toolchain
    argv: list[str] = []
    target = spec.target_type

    if target is LinkTargetType.EXECUTABLE:
        _add_compiler_argv(spec, argv)
    elif target is LinkTargetType.DYNAMIC_LIBRARY:
        if spec.interface_output is not None:
            argv.extend([
                tc.sh_executable, "-c", INTERFACE_SO_SCRIPT,
                spec.interface_so_builder.exec_path,
                spec.output.exec_path,
                spec.interface_output.exec_path,
            ])
        _add_compiler_argv(spec, argv)
        # -pie and -shared don't mix.
        argv = [arg for arg in argv if arg != "-pie"]
    elif target.is_static_library_link:
        # ar <flags> <archive> <inputs...>
        argv.append(tc.ar)
        argv.extend(tc.ar_flags_for(tc.archive_type is ArchiveType.THIN))
        argv.append(spec.output.exec_path)
        add_input_options(spec, argv, need_whole=False, include_linkopts=False)
    else:
        raise LinkAssemblyError(f"unexpected link target type: {target}")

    # Fission: debug info lives in .dwo files; ask the linker for an index.
    if not target.is_static_library_link and tc.use_fission:
        argv.append("-Wl,--gdb-index")
    return argv


def _add_compiler_argv(spec, argv):
    """Append the compiler-as-linker invocation for executables and .so's."""
    tc = spec.toolchain
    argv.append(tc.compiler)

    if spec.symbol_counts_output is not None:
        argv.append("-Wl,--print-symbol-counts=" + spec.symbol_counts_output.exec_path)

    if spec.target_type is LinkTargetType.DYNAMIC_LIBRARY:
        argv.append("-shared")

    argv.extend(obj.exec_path for obj in spec.linkstamp_objects)

    mostly_static = spec.staticness is LinkStaticness.MOSTLY_STATIC
    shared = shared_linkopts(spec)
    need_whole = need_whole_archive(spec)

    argv.append("-o")
    if (mostly_static and spec.target_type is LinkTargetType.EXECUTABLE
            and tc.skip_static_outputs):
        # The binary is discarded; dependency info takes its place.
        argv.extend(["/dev/null", "-MMD", "-MF", spec.output.exec_path])
    else:
        argv.append(spec.output.exec_path)

    add_input_options(spec, argv, need_whole, include_linkopts=True)

    argv.extend(tc.link_options(spec.staticness, spec.features, shared))

    if tc.coverage:
        argv.append("-lgcov")

    if spec.target_type is LinkTargetType.EXECUTABLE and tc.force_pic:
        argv.append("-pie")

    # Toolchain defaults go after per-target linkopts.
    argv.extend(tc.link_flags)
    argv.extend(tc.fdo_link_flags)

