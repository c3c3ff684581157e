"""RPATH computation for executables and shared objects.

Shared libraries are collected (symlinked) under a single solib directory
in the bin tree.  Outputs find them through an $ORIGIN-relative RPATH, so
the root depends on how deep the output sits below the bin directory:
given bin/my/package/binary the root is $ORIGIN/../../_solib_k8/.
"""

from __future__ import annotations

import dataclasses
from pathlib import PurePosixPath

from link_artifacts import LinkStaticness, LinkTargetType, is_under
from link_spec import LinkSpec


class LinkAssemblyError(RuntimeError):
    """An internal consistency check failed while assembling argv."""


@dataclasses.dataclass(frozen=True)
class RpathPlan:
    solib_dir: PurePosixPath
    runtime_solib_dir: PurePosixPath | None
    # Full option, e.g. -Wl,-rpath,$ORIGIN/../_solib_k8/
    root: str
    # Emitted up front when the C++ runtime lives in its own solib dir.
    runtime_option: str | None = None

    def library_option(self, lib_dir: PurePosixPath) -> str | None:
        """RPATH entry for a library outside the solib and runtime dirs.

        Walks up from the solib dir until reaching an ancestor of lib_dir.
        Returns None when lib_dir is one of the two canonical directories.
        """
        if lib_dir == self.solib_dir or lib_dir == self.runtime_solib_dir:
            return None
        if lib_dir.is_absolute() != self.solib_dir.is_absolute():
            raise LinkAssemblyError(
                f"no common ancestor between '{lib_dir}' and '{self.solib_dir}'")
        dotdots = ""
        common = self.solib_dir
        while not is_under(lib_dir, common):
            dotdots += "../"
            common = common.parent
        relative = "/".join(lib_dir.parts[len(common.parts):])
        return self.root + dotdots + relative


def solib_dir(spec: LinkSpec) -> PurePosixPath:
    tc = spec.toolchain
    return PurePosixPath(tc.bin_dir) / tc.solib_directory


def wants_runtime_rpath(spec: LinkSpec) -> bool:
    if spec.runtime_solib_dir is None:
        return False
    if spec.target_type is LinkTargetType.DYNAMIC_LIBRARY:
        return True
    return (spec.target_type is LinkTargetType.EXECUTABLE
            and spec.staticness is LinkStaticness.DYNAMIC)


def compute_rpath(spec: LinkSpec) -> RpathPlan:
    origin = "$EXEC_ORIGIN/" if spec.use_exec_origin else "$ORIGIN/"
    solib_name = spec.toolchain.solib_directory
    root = "-Wl,-rpath," + origin
    runtime_dir = (PurePosixPath(spec.runtime_solib_dir)
                   if spec.runtime_solib_dir is not None else None)
    runtime_option = None

    if spec.is_shared_native_library:
        # The same .so is symlinked from packages of different depths, so no
        # depth-relative path fits all of them.  The C++ runtimes are made
        # available under $ORIGIN/<solib> instead.
        if wants_runtime_rpath(spec):
            runtime_option = "-Wl,-rpath," + origin + "../" + runtime_dir.name + "/"
        root += ":" + origin + solib_name + "/"
    else:
        up = "../" * (len(spec.output.root_relative_path.parts) - 1)
        if wants_runtime_rpath(spec):
            runtime_option = "-Wl,-rpath," + origin + up + runtime_dir.name + "/"
        root += up + solib_name + "/"
        if spec.native_deps:
            # Keep $ORIGIN/ for solibs living next to the output.
            root += ":" + origin

    return RpathPlan(
        solib_dir=solib_dir(spec),
        runtime_solib_dir=runtime_dir,
        root=root,
        runtime_option=runtime_option,
    )
