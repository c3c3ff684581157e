"""Link target kinds, artifact references and linker inputs.

Artifacts are plain path references owned by the build graph.  Paths are
POSIX exec paths (relative to the execution root); the artifact's root is
the output tree it lives in, e.g. ``buck-out/bin``.
"""

from __future__ import annotations

import dataclasses
import enum
import re
from pathlib import PurePosixPath
from typing import Union


class LinkTargetType(enum.Enum):
    EXECUTABLE = "executable"
    DYNAMIC_LIBRARY = "dynamic_library"
    INTERFACE_DYNAMIC_LIBRARY = "interface_dynamic_library"
    STATIC_LIBRARY = "static_library"
    PIC_STATIC_LIBRARY = "pic_static_library"
    ALWAYS_LINK_STATIC_LIBRARY = "always_link_static_library"
    ALWAYS_LINK_PIC_STATIC_LIBRARY = "always_link_pic_static_library"

    @property
    def is_static_library_link(self) -> bool:
        return self in _STATIC_LIBRARY_TYPES


_STATIC_LIBRARY_TYPES = frozenset({
    LinkTargetType.STATIC_LIBRARY,
    LinkTargetType.PIC_STATIC_LIBRARY,
    LinkTargetType.ALWAYS_LINK_STATIC_LIBRARY,
    LinkTargetType.ALWAYS_LINK_PIC_STATIC_LIBRARY,
})


class LinkStaticness(enum.Enum):
    FULLY_STATIC = "fully_static"
    MOSTLY_STATIC = "mostly_static"
    DYNAMIC = "dynamic"


class ArchiveType(enum.Enum):
    FAT = "fat"
    THIN = "thin"
    START_END_LIB = "start_end_lib"


# ---------------------------------------------------------------------------
# File types
# ---------------------------------------------------------------------------

# Prefix marking a placeholder object so the link action can detect it.
FAKE_OBJECT_PREFIX = "fake:"

_SHARED_LIBRARY_RE = re.compile(r".*\.so$")
_VERSIONED_SHARED_LIBRARY_RE = re.compile(r"^lib.+\.so(\.\d+)+$")
_INTERFACE_SHARED_LIBRARY_RE = re.compile(r".*\.ifso$")
_ARCHIVE_LIBRARY_RE = re.compile(r".*\.(pic\.)?(a|lo)$")
_ALWAYS_LINK_LIBRARY_RE = re.compile(r".*\.(pic\.)?lo$")


def is_shared_library(name):
    """True for a plain ``.so`` name, the only form ``-l`` can find."""
    return _SHARED_LIBRARY_RE.match(name) is not None


def is_shared_library_file(name):
    """True for ``.so``, versioned ``.so.N`` and interface ``.ifso`` names."""
    return any(r.match(name) for r in (
        _SHARED_LIBRARY_RE, _VERSIONED_SHARED_LIBRARY_RE,
        _INTERFACE_SHARED_LIBRARY_RE))


def is_archive_library(name):
    return _ARCHIVE_LIBRARY_RE.match(name) is not None


def is_always_link_library(name):
    return _ALWAYS_LINK_LIBRARY_RE.match(name) is not None


# ---------------------------------------------------------------------------
# Artifacts and linker inputs
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class Artifact:
    exec_path: str
    root: str = ""

    def __post_init__(self):
        if not self.exec_path:
            raise ValueError("artifact exec path must not be empty")
        if self.root and not is_under(self.path, PurePosixPath(self.root)):
            raise ValueError(f"artifact {self.exec_path} is not under its root {self.root}")

    @property
    def path(self) -> PurePosixPath:
        return PurePosixPath(self.exec_path)

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def parent(self) -> PurePosixPath:
        return self.path.parent

    @property
    def root_relative_path(self) -> PurePosixPath:
        return self.path.relative_to(self.root) if self.root else self.path

    def __str__(self):
        return self.exec_path


@dataclasses.dataclass(frozen=True)
class LinkerInput:
    """An object file, archive or shared library passed as is."""
    artifact: Artifact


@dataclasses.dataclass(frozen=True)
class ArchiveInput:
    """An archive whose members may be linked with --start-lib/--end-lib."""
    artifact: Artifact
    object_files: tuple[Artifact, ...] = ()


@dataclasses.dataclass(frozen=True)
class FakeObjectInput:
    """A placeholder object; its token carries FAKE_OBJECT_PREFIX."""
    artifact: Artifact


AnyLinkerInput = Union[LinkerInput, ArchiveInput, FakeObjectInput]


def is_dynamic_library(link_input: AnyLinkerInput) -> bool:
    name = link_input.artifact.filename
    return is_shared_library_file(name) and name.startswith("lib")


def is_under(path: PurePosixPath, ancestor: PurePosixPath) -> bool:
    """Segment-wise prefix test; ``a/bc`` is not under ``a/b``."""
    n = len(ancestor.parts)
    return path.parts[:n] == ancestor.parts
