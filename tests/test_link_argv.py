"""Raw argv assembly for each link target type."""
from __future__ import annotations

import dataclasses
import sys
from pathlib import Path

import pytest

_REPO = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_REPO / "tools"))

from _toolchain import FlagList  # noqa: E402
from link_argv import INTERFACE_SO_SCRIPT, raw_link_argv  # noqa: E402
from link_artifacts import (  # noqa: E402
    ArchiveInput,
    ArchiveType,
    LinkerInput,
    LinkStaticness,
    LinkTargetType,
)
from link_rpath import LinkAssemblyError  # noqa: E402
from link_spec import LinkSpec  # noqa: E402

STATIC_TYPES = [
    LinkTargetType.STATIC_LIBRARY,
    LinkTargetType.PIC_STATIC_LIBRARY,
    LinkTargetType.ALWAYS_LINK_STATIC_LIBRARY,
    LinkTargetType.ALWAYS_LINK_PIC_STATIC_LIBRARY,
]

WHOLE_ARCHIVE_MARKERS = {"-Wl,-whole-archive", "-Wl,-no-whole-archive",
                         "-all_load", "-noall_load"}


# ---------------------------------------------------------------------------
# Executables
# ---------------------------------------------------------------------------

def test_executable_with_start_end_lib(builder, toolchain, art):
    tc = dataclasses.replace(
        toolchain,
        archive_type=ArchiveType.START_END_LIB,
        dynamic_link_flags=FlagList(("-lstdc++", "-lm")),
    )
    archive = ArchiveInput(art("buck-out/bin/pkg/libdep.a"), (art("a.o"), art("b.o")))
    spec = (builder(tc=tc)
            .set_staticness(LinkStaticness.DYNAMIC)
            .set_linker_inputs([archive])
            .build())
    assert raw_link_argv(spec) == [
        "/usr/bin/gcc", "-o", "buck-out/bin/pkg/app",
        "-Wl,--start-lib", "a.o", "b.o", "-Wl,--end-lib",
        "-lstdc++", "-lm",
    ]


def test_executable_option_order(builder, toolchain, art):
    tc = dataclasses.replace(
        toolchain,
        fully_static_link_flags=FlagList(("-static",)),
        coverage=True,
        force_pic=True,
        link_flags=("-Wl,-z,relro",),
        fdo_link_flags=("-fprofile-use",),
    )
    spec = (builder(tc=tc)
            .set_linker_inputs([LinkerInput(art("buck-out/bin/pkg/main.o"))])
            .set_linkopts(["-lpthread"])
            .build())
    assert raw_link_argv(spec) == [
        "/usr/bin/gcc", "-o", "buck-out/bin/pkg/app",
        "buck-out/bin/pkg/main.o",
        "-lpthread",
        "-static",
        "-lgcov",
        "-pie",
        "-Wl,-z,relro",
        "-fprofile-use",
    ]


def test_symbol_counts_and_linkstamp_objects(builder, art):
    spec = (builder()
            .set_symbol_counts_output(art("buck-out/bin/pkg/app.counts"))
            .set_linkstamps({art("pkg/stamp.cc"): art("buck-out/bin/pkg/stamp.o")})
            .build())
    assert raw_link_argv(spec) == [
        "/usr/bin/gcc",
        "-Wl,--print-symbol-counts=buck-out/bin/pkg/app.counts",
        "buck-out/bin/pkg/stamp.o",
        "-o", "buck-out/bin/pkg/app",
    ]


def test_mostly_static_executable_skips_output(builder, toolchain):
    tc = dataclasses.replace(toolchain, skip_static_outputs=True)
    spec = builder(tc=tc).set_staticness(LinkStaticness.MOSTLY_STATIC).build()
    assert raw_link_argv(spec) == [
        "/usr/bin/gcc", "-o", "/dev/null", "-MMD", "-MF", "buck-out/bin/pkg/app",
    ]


@pytest.mark.parametrize("staticness", [LinkStaticness.FULLY_STATIC, LinkStaticness.DYNAMIC])
def test_skip_static_outputs_only_for_mostly_static(builder, toolchain, staticness):
    tc = dataclasses.replace(toolchain, skip_static_outputs=True)
    spec = builder(tc=tc).set_staticness(staticness).build()
    assert "/dev/null" not in raw_link_argv(spec)


def test_shared_linkopts_select_shared_tier(builder, toolchain):
    tc = dataclasses.replace(
        toolchain,
        fully_static_link_flags=FlagList(("-static",)),
        mostly_static_link_flags=FlagList(("-static-libgcc",)),
        dynamic_library_link_flags=("-Wl,-z,defs",),
    )
    spec = builder(tc=tc).set_linkopts(["-shared"]).build()
    assert raw_link_argv(spec)[-3:] == ["-shared", "-static-libgcc", "-Wl,-z,defs"]


def test_feature_link_flags(builder, toolchain):
    tc = dataclasses.replace(
        toolchain,
        dynamic_link_flags=FlagList(("-lm",), (("asan", ("-fsanitize=address",)),)),
    )
    plain = builder(tc=tc).set_staticness(LinkStaticness.DYNAMIC).build()
    asan = (builder(tc=tc).set_staticness(LinkStaticness.DYNAMIC)
            .set_features(["asan"]).build())
    assert raw_link_argv(plain)[-1] == "-lm"
    assert raw_link_argv(asan)[-2:] == ["-lm", "-fsanitize=address"]


def test_fission_adds_gdb_index(builder, toolchain):
    tc = dataclasses.replace(toolchain, use_fission=True, link_flags=("-Wl,-O1",))
    argv = raw_link_argv(builder(tc=tc).build())
    assert argv[-2:] == ["-Wl,-O1", "-Wl,--gdb-index"]


# ---------------------------------------------------------------------------
# Dynamic libraries
# ---------------------------------------------------------------------------

def test_dynamic_library(builder, art):
    spec = (builder(LinkTargetType.DYNAMIC_LIBRARY, output="buck-out/bin/pkg/libfoo.so")
            .set_linker_inputs([LinkerInput(art("buck-out/bin/pkg/foo.pic.o"))])
            .build())
    assert raw_link_argv(spec) == [
        "/usr/bin/gcc", "-shared", "-o", "buck-out/bin/pkg/libfoo.so",
        "buck-out/bin/pkg/foo.pic.o",
    ]


def test_dynamic_library_with_interface_output(builder, art):
    spec = (builder(LinkTargetType.DYNAMIC_LIBRARY, output="buck-out/bin/pkg/libfoo.so")
            .set_interface_output(art("buck-out/bin/pkg/libfoo.ifso"))
            .set_interface_so_builder(art("tools/build_interface_so"))
            .build())
    argv = raw_link_argv(spec)
    assert argv[:6] == [
        "/bin/bash", "-c", INTERFACE_SO_SCRIPT,
        "tools/build_interface_so",
        "buck-out/bin/pkg/libfoo.so",
        "buck-out/bin/pkg/libfoo.ifso",
    ]
    assert argv[6:] == ["/usr/bin/gcc", "-shared", "-o", "buck-out/bin/pkg/libfoo.so"]


def test_interface_script_runs_link_then_builder():
    assert INTERFACE_SO_SCRIPT == (
        'build_iface_so="$0"; impl="$1"; iface="$2"; cmd="$3"; shift 3; '
        '"$cmd" "$@" && "$build_iface_so" "$impl" "$iface"'
    )


def test_dynamic_library_drops_pie(builder, toolchain):
    tc = dataclasses.replace(
        toolchain,
        force_pic=True,
        mostly_static_link_flags=FlagList(("-pie", "-static-libgcc")),
        link_flags=("-pie",),
    )
    spec = builder(LinkTargetType.DYNAMIC_LIBRARY, output="buck-out/bin/pkg/libfoo.so",
                   tc=tc).set_linkopts(["-pie"]).build()
    argv = raw_link_argv(spec)
    assert "-pie" not in argv
    assert "-static-libgcc" in argv


# ---------------------------------------------------------------------------
# Static libraries
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("target", STATIC_TYPES, ids=lambda t: t.value)
def test_static_library(builder, art, target):
    spec = (builder(target, output="buck-out/bin/pkg/libfoo.a")
            .set_linker_inputs([
                LinkerInput(art("buck-out/bin/pkg/a.o")),
                LinkerInput(art("buck-out/bin/pkg/b.o")),
            ])
            .build())
    assert raw_link_argv(spec) == [
        "/usr/bin/ar", "rcsD", "buck-out/bin/pkg/libfoo.a",
        "buck-out/bin/pkg/a.o", "buck-out/bin/pkg/b.o",
    ]


def test_thin_static_library(builder, toolchain):
    tc = dataclasses.replace(toolchain, archive_type=ArchiveType.THIN)
    spec = builder(LinkTargetType.STATIC_LIBRARY, output="buck-out/bin/pkg/libfoo.a",
                   tc=tc).build()
    assert raw_link_argv(spec) == ["/usr/bin/ar", "rcsDT", "buck-out/bin/pkg/libfoo.a"]


@pytest.mark.parametrize("target", STATIC_TYPES, ids=lambda t: t.value)
def test_static_library_stays_clean(builder, toolchain, art, target):
    tc = dataclasses.replace(
        toolchain,
        force_pic=True,
        use_fission=True,
        legacy_whole_archive=True,
        link_flags=("-shared",),
        fully_static_link_flags=FlagList(("-static",)),
    )
    spec = (builder(target, output="buck-out/bin/pkg/libfoo.a", tc=tc)
            .set_linker_inputs([
                LinkerInput(art("buck-out/bin/pkg/a.o")),
                LinkerInput(art("buck-out/bin/pkg/libdep.lo")),
            ])
            .set_linkopts(["-lm", "-pie"])
            .build())
    argv = raw_link_argv(spec)
    assert "-pie" not in argv
    assert "-shared" not in argv
    assert "-lm" not in argv
    assert "-Wl,--gdb-index" not in argv
    assert not WHOLE_ARCHIVE_MARKERS & set(argv)
    assert argv[-1] == "buck-out/bin/pkg/libdep.lo"


# ---------------------------------------------------------------------------
# Dispatch and determinism
# ---------------------------------------------------------------------------

def test_interface_dynamic_library_is_unreachable(toolchain, art):
    spec = LinkSpec(
        toolchain=toolchain,
        owner_label="//pkg:lib",
        target_type=LinkTargetType.INTERFACE_DYNAMIC_LIBRARY,
        staticness=LinkStaticness.DYNAMIC,
        output=art("buck-out/bin/pkg/libfoo.ifso"),
    )
    with pytest.raises(LinkAssemblyError):
        raw_link_argv(spec)


def test_raw_argv_is_stable(builder, art):
    spec = (builder()
            .set_staticness(LinkStaticness.DYNAMIC)
            .set_linker_inputs([
                LinkerInput(art("buck-out/bin/_solib_k8/libfoo.so")),
                LinkerInput(art("buck-out/bin/_solib_k8/_U_x/libbar.so")),
                LinkerInput(art("buck-out/bin/pkg/main.o")),
            ])
            .build())
    first = raw_link_argv(spec)
    assert raw_link_argv(spec) == first
    assert raw_link_argv(spec) is not first
