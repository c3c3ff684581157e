"""Resolved toolchain policy consumed by the link-command helpers.

The toolchain is an immutable value: executable paths, per-feature flag
tables and the handful of booleans that steer link-command synthesis.
Nothing here looks at the host; paths are taken as given.  Loading from
YAML exists for link_helper.py and tests, the synthesis modules only ever
see a Toolchain instance.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Iterable, Mapping

import yaml

from link_artifacts import ArchiveType, LinkStaticness


FDO_MODES = (None, "fdo", "autofdo")


@dataclasses.dataclass(frozen=True)
class FlagList:
    """Base flags plus flag groups that only apply when a feature is enabled."""
    flags: tuple[str, ...] = ()
    feature_flags: tuple[tuple[str, tuple[str, ...]], ...] = ()

    def evaluate(self, features: Iterable[str]) -> list[str]:
        enabled = set(features)
        result = list(self.flags)
        for feature, flags in self.feature_flags:
            if feature in enabled:
                result.extend(flags)
        return result


@dataclasses.dataclass(frozen=True)
class Toolchain:
    compiler: str = "/usr/bin/gcc"
    ar: str = "/usr/bin/ar"
    sh_executable: str = "/bin/bash"
    ar_flags: tuple[str, ...] = ("rcsD",)
    ar_thin_flags: tuple[str, ...] = ("rcsDT",)
    archive_type: ArchiveType = ArchiveType.FAT
    target_libc: str = "glibc"
    bin_dir: str = "buck-out/bin"
    solib_directory: str = "_solib_k8"
    sysroot: str | None = None
    description: str = "k8-gcc"

    compiler_flags: FlagList = FlagList()
    c_flags: tuple[str, ...] = ()
    unfiltered_compiler_flags: FlagList = FlagList()

    fully_static_link_flags: FlagList = FlagList()
    mostly_static_link_flags: FlagList = FlagList()
    mostly_static_shared_link_flags: FlagList = FlagList()
    dynamic_link_flags: FlagList = FlagList()
    dynamic_library_link_flags: tuple[str, ...] = ()
    supports_embedded_runtimes: bool = False
    link_flags: tuple[str, ...] = ()

    fdo_mode: str | None = None
    lipo_binary: bool = False
    fdo_link_flags: tuple[str, ...] = ()

    use_fission: bool = False
    force_pic: bool = False
    needs_pic: bool = True
    coverage: bool = False
    skip_static_outputs: bool = False
    share_native_deps: bool = False
    legacy_whole_archive: bool = False

    def ar_flags_for(self, thin: bool) -> list[str]:
        return list(self.ar_thin_flags if thin else self.ar_flags)

    def link_options(self, staticness: LinkStaticness, features: Iterable[str],
                     shared: bool) -> list[str]:
        """Extra link options for a staticness tier.

        A shared link (``-shared`` in effect) swaps the tier's flag table for
        its shared counterpart and appends the dynamic-library flags.  A
        fully static shared link borrows the mostly-static table, there is
        no fully static shared object.
        """
        if staticness is LinkStaticness.FULLY_STATIC:
            if shared:
                return self._shared(self.mostly_static_link_flags, features)
            return self.fully_static_link_flags.evaluate(features)
        if staticness is LinkStaticness.MOSTLY_STATIC:
            if shared:
                table = (self.mostly_static_shared_link_flags
                         if self.supports_embedded_runtimes
                         else self.dynamic_link_flags)
                return self._shared(table, features)
            return self.mostly_static_link_flags.evaluate(features)
        if shared:
            return self._shared(self.dynamic_link_flags, features)
        return self.dynamic_link_flags.evaluate(features)

    def _shared(self, table, features):
        return table.evaluate(features) + list(self.dynamic_library_link_flags)

    def fdo_build_stamp(self) -> str | None:
        """Return the FDO flavour stamped into linkstamps, or None."""
        if self.fdo_mode == "autofdo":
            return "ALIPO" if self.lipo_binary else "AFDO"
        if self.fdo_mode == "fdo":
            return "LIPO" if self.lipo_binary else "FDO"
        return None


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_FLAG_LIST_FIELDS = frozenset({
    "compiler_flags", "unfiltered_compiler_flags",
    "fully_static_link_flags", "mostly_static_link_flags",
    "mostly_static_shared_link_flags", "dynamic_link_flags",
})

_TUPLE_FIELDS = frozenset({
    "ar_flags", "ar_thin_flags", "c_flags", "dynamic_library_link_flags",
    "link_flags", "fdo_link_flags",
})

_BOOL_FIELDS = frozenset({
    "supports_embedded_runtimes", "lipo_binary", "use_fission", "force_pic",
    "needs_pic", "coverage", "skip_static_outputs", "share_native_deps",
    "legacy_whole_archive",
})

_NULLABLE_FIELDS = frozenset({"sysroot"})


def _str_tuple(key, value):
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValueError(f"toolchain: {key} must be a list of strings")
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"toolchain: {key} must be a list of strings, got {item!r}")
    return tuple(value)


def _flag_list(key, value):
    """Accept a plain list, or a mapping with ``flags`` and ``features``.

    ``features`` maps a feature name to the flags it enables; YAML mappings
    keep their order, which becomes the evaluation order.
    """
    if isinstance(value, (list, tuple)):
        return FlagList(flags=_str_tuple(key, value))
    if not isinstance(value, Mapping):
        raise ValueError(f"toolchain: {key} must be a list or a mapping")
    unknown = set(value) - {"flags", "features"}
    if unknown:
        raise ValueError(f"toolchain: unknown key in {key}: {sorted(unknown)[0]}")
    groups = []
    for feature, flags in (value.get("features") or {}).items():
        groups.append((str(feature), _str_tuple(f"{key}.features.{feature}", flags)))
    return FlagList(flags=_str_tuple(f"{key}.flags", value.get("flags") or []),
                    feature_flags=tuple(groups))


def toolchain_from_dict(data: Mapping[str, Any]) -> Toolchain:
    """Build a Toolchain from a parsed YAML/JSON mapping."""
    known = {f.name for f in dataclasses.fields(Toolchain)}
    kwargs = {}
    for key, value in data.items():
        if key not in known:
            raise ValueError(f"toolchain: unknown key: {key}")
        if key in _FLAG_LIST_FIELDS:
            kwargs[key] = _flag_list(key, value)
        elif key in _TUPLE_FIELDS:
            kwargs[key] = _str_tuple(key, value)
        elif key in _BOOL_FIELDS:
            if not isinstance(value, bool):
                raise ValueError(f"toolchain: {key} must be true or false")
            kwargs[key] = value
        elif key == "archive_type":
            try:
                kwargs[key] = ArchiveType[str(value).upper()]
            except KeyError:
                raise ValueError(f"toolchain: invalid archive_type: {value}") from None
        elif key == "fdo_mode":
            if value not in FDO_MODES:
                raise ValueError(f"toolchain: invalid fdo_mode: {value}")
            kwargs[key] = value
        else:
            if not isinstance(value, str) and not (key in _NULLABLE_FIELDS and value is None):
                raise ValueError(f"toolchain: {key} must be a string")
            kwargs[key] = value
    return Toolchain(**kwargs)


def load_toolchain(path) -> Toolchain:
    """Read a toolchain description from a YAML file."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ValueError(f"toolchain: {path}: top level must be a mapping")
    return toolchain_from_dict(data)
