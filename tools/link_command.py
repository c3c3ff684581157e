"""Final link command: linkstamp compiles chained in front of the link.

The linkstamp objects must exist before the linker reads them, and the
whole sequence has to be one action, so the commands are joined with
``&&`` and handed to a single shell.
"""

from __future__ import annotations

import shlex
from typing import Sequence

from link_argv import raw_link_argv
from link_spec import LinkSpec
from linkstamp import linkstamp_compile_commands


def compose(linkstamp_commands: Sequence[str], raw_argv: Sequence[str],
            escape_link_argv: bool, sh_executable: str = "/bin/bash") -> list[str]:
    """Prefix *raw_argv* with *linkstamp_commands*.

    Returns *raw_argv* itself when there is nothing to compile.  Otherwise
    returns ``[sh, "-c", script]``; the link step in the script is
    shell-escaped when *escape_link_argv* is true and joined as is
    otherwise (for arguments the caller already escaped).
    """
    if not linkstamp_commands:
        return raw_argv
    if escape_link_argv:
        link = shlex.join(raw_argv)
    else:
        link = " ".join(raw_argv)
    return [sh_executable, "-c", " && ".join([*linkstamp_commands, link])]


class LinkCommandLine:
    """Command line of one link action built from a LinkSpec."""

    def __init__(self, spec: LinkSpec):
        self.spec = spec

    def raw_link_argv(self) -> list[str]:
        """Linker or archiver argv, before any linkstamp processing."""
        return raw_link_argv(self.spec)

    def linkstamp_compile_commands(self, output_prefix: str = "") -> list[str]:
        return linkstamp_compile_commands(self.spec, output_prefix)

    def finalize_with_linkstamp_commands(self, raw_argv: Sequence[str]) -> list[str]:
        """Final command for *raw_argv*; its elements get shell-escaped."""
        return compose(self.linkstamp_compile_commands(""), raw_argv, True,
                       self.spec.toolchain.sh_executable)

    def finalize_already_escaped_with_linkstamp_commands(
            self, raw_argv: Sequence[str], output_prefix: str) -> list[str]:
        """Final command for already-escaped *raw_argv*.

        *output_prefix* goes before each linkstamp object path, unescaped.
        """
        return compose(self.linkstamp_compile_commands(output_prefix), raw_argv,
                       False, self.spec.toolchain.sh_executable)

    def arguments(self) -> list[str]:
        return self.finalize_with_linkstamp_commands(self.raw_link_argv())
