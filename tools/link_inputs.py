"""Turn ordered linker and runtime inputs into linker arguments.

Order matters to the linker's symbol resolution, so every list here is
emitted in input order.  -L and -rpath options are collected once each,
in first-seen order.
"""

from __future__ import annotations

from link_artifacts import (
    ArchiveInput,
    ArchiveType,
    FAKE_OBJECT_PREFIX,
    FakeObjectInput,
    LinkStaticness,
    LinkTargetType,
    is_always_link_library,
    is_archive_library,
    is_dynamic_library,
    is_shared_library,
    is_under,
)
from link_rpath import LinkAssemblyError, compute_rpath
from link_spec import LinkSpec


def whole_archive_markers(spec: LinkSpec) -> tuple[str, str]:
    """Begin/end markers forcing inclusion of every archive member.

    Apple's ld has no -whole-archive; -all_load is global to all later
    inputs and -noall_load is ignored, so the markers only approximate it.
    """
    if spec.toolchain.target_libc == "macosx":
        return "-all_load", "-noall_load"
    return "-Wl,-whole-archive", "-Wl,-no-whole-archive"


def shared_linkopts(spec: LinkSpec) -> bool:
    return (spec.target_type is LinkTargetType.DYNAMIC_LIBRARY
            or "-shared" in spec.linkopts
            or "-shared" in spec.toolchain.link_flags)


def need_whole_archive(spec: LinkSpec) -> bool:
    """Whether every input must be wrapped in whole-archive markers.

    A shared object linked (mostly) statically must carry all dependent
    code, not just what its own objects reference.
    """
    static = spec.staticness in (LinkStaticness.FULLY_STATIC,
                                 LinkStaticness.MOSTLY_STATIC)
    return ((spec.native_deps or spec.toolchain.legacy_whole_archive)
            and static and shared_linkopts(spec))


def use_start_end_lib(spec: LinkSpec, link_input) -> bool:
    return (spec.toolchain.archive_type is ArchiveType.START_END_LIB
            and isinstance(link_input, ArchiveInput)
            and is_archive_library(link_input.artifact.filename)
            and len(link_input.object_files) > 0)


def add_input_options(spec: LinkSpec, argv: list[str], need_whole: bool,
                      include_linkopts: bool) -> None:
    """Append input options for *spec* to *argv* in linker order.

    With *need_whole* every linker input sits inside one whole-archive
    region; runtime inputs are kept outside it so the runtime libraries
    are never force-included.  Without it only always-link libraries
    (.lo) are wrapped, one at a time.
    """
    begin, end = whole_archive_markers(spec)
    if need_whole:
        argv.append(begin)

    plan = compute_rpath(spec)
    if plan.runtime_option is not None:
        argv.append(plan.runtime_option)

    lib_opts: dict[str, None] = {}
    inputs: list[str] = []
    outside_whole: list[str] = []
    include_solib_dir = False

    for link_input in spec.linker_inputs:
        if is_dynamic_library(link_input):
            lib_dir = link_input.artifact.parent
            if not is_under(lib_dir, plan.solib_dir):
                raise LinkAssemblyError(
                    f"Artifact '{link_input.artifact}' is not under directory "
                    f"'{plan.solib_dir}'.")
            if lib_dir == plan.solib_dir:
                include_solib_dir = True
            _add_dynamic_input(link_input, inputs, lib_opts, plan)
        else:
            _add_static_input(spec, link_input, inputs)

    for link_input in spec.runtime_inputs:
        options = outside_whole if need_whole else inputs
        if is_dynamic_library(link_input):
            lib_dir = link_input.artifact.parent
            in_runtime_dir = lib_dir == plan.runtime_solib_dir
            if not (is_under(lib_dir, plan.solib_dir) or in_runtime_dir):
                raise LinkAssemblyError(
                    f"Artifact '{link_input.artifact}' is not under directory "
                    f"'{plan.solib_dir}'.")
            if lib_dir == plan.solib_dir or in_runtime_dir:
                include_solib_dir = True
            _add_dynamic_input(link_input, options, lib_opts, plan)
        else:
            _add_static_input(spec, link_input, options)

    if include_solib_dir:
        argv.append(plan.root)
    argv.extend(lib_opts)

    wrap_always_link = not need_whole and not spec.target_type.is_static_library_link
    for option in inputs:
        if wrap_always_link and is_always_link_library(option):
            argv.extend([begin, option, end])
        else:
            argv.append(option)

    if need_whole:
        argv.append(end)
        argv.extend(outside_whole)

    if include_linkopts:
        # linkopts go after the inputs so they may hold libraries and
        # positional groups such as -Wl,--start-group ... -Wl,--end-group.
        argv.extend(spec.linkopts)


def _add_dynamic_input(link_input, options, lib_opts, plan):
    artifact = link_input.artifact
    lib_dir = artifact.parent
    rpath = plan.library_option(lib_dir)
    if rpath is not None:
        lib_opts[rpath] = None
    lib_opts["-L" + str(lib_dir)] = None

    name = artifact.filename
    if is_shared_library(name):
        options.append("-l" + _library_name(name))
    else:
        # Interface and versioned shared objects have extensions -l can't
        # find; pass the path and let the SONAME do the rest.
        options.append(artifact.exec_path)


def _library_name(filename):
    if filename.startswith("lib"):
        filename = filename[len("lib"):]
    if filename.endswith(".so"):
        filename = filename[:-len(".so")]
    return filename


def _add_static_input(spec, link_input, options):
    if use_start_end_lib(spec, link_input):
        options.append("-Wl,--start-lib")
        options.extend(member.exec_path for member in link_input.object_files)
        options.append("-Wl,--end-lib")
    elif isinstance(link_input, FakeObjectInput):
        options.append(FAKE_OBJECT_PREFIX + link_input.artifact.exec_path)
    else:
        options.append(link_input.artifact.exec_path)
