"""Compile commands for linkstamp sources.

Linkstamps are small sources compiled at link time to embed the target's
identity in the output.  They used to be passed straight to the compiler
driver, which picks its own temporary object name and so breaks output
stability; each one is now compiled explicitly to a known object path
before the link runs.

Volatile build information is not passed on the command line (it would
defeat action caching).  It comes from the generated build info headers
pulled in with -include.
"""

from __future__ import annotations

import shlex

from link_artifacts import LinkTargetType
from link_spec import LinkSpec


FDO_STAMP_MACRO = "BUILD_FDO_TYPE"


def stamp_label(spec: LinkSpec) -> str:
    """Label embedded in the stamp.

    A shared native library is one .so used by many targets, so its stamp
    names the .so itself rather than whichever target requested it.
    """
    if spec.is_shared_native_library:
        return spec.output.exec_path
    return spec.owner_label


def linkstamp_compile_commands(spec: LinkSpec, output_prefix: str = "") -> list[str]:
    """Return one shell command string per linkstamp, in linkstamp order.

    Every argument is shell-escaped except *output_prefix*, which is
    prepended to each object path verbatim.
    """
    if not spec.linkstamps:
        return []

    tc = spec.toolchain
    label = stamp_label(spec)
    fdo_stamp = tc.fdo_build_stamp()
    commands = []

    for source, obj in spec.linkstamps:
        options = []
        for header in spec.build_info_headers:
            options.extend(["-include", header.exec_path])

        options.append(f'-DG3_VERSION_INFO="{label}"')
        options.append(f'-DG3_TARGET_NAME="{label}"')
        options.append(f'-DG3_BUILD_TARGET="{spec.output.exec_path}"')
        options.append(f'-DGPLATFORM="{tc.description}"')

        # Headers included from linkstamps are found from the exec root.
        options.append("-I.")

        if tc.sysroot is not None:
            options.append("--sysroot=" + tc.sysroot)

        options.extend(tc.compiler_flags.evaluate(spec.features))
        options.extend(tc.c_flags)
        options.extend(tc.unfiltered_compiler_flags.evaluate(spec.features))

        if spec.target_type is LinkTargetType.DYNAMIC_LIBRARY and tc.needs_pic:
            options.append("-fPIC")

        if fdo_stamp is not None:
            options.append(f'-D{FDO_STAMP_MACRO}="{fdo_stamp}"')

        options.extend(["-c", source.exec_path])

        commands.append(
            shlex.quote(tc.compiler) + " " + shlex.join(options)
            + " -o " + output_prefix + shlex.quote(obj.exec_path))

    return commands
