from __future__ import annotations

import sys
from pathlib import Path

import pytest

_REPO = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_REPO / "tools"))

from _toolchain import Toolchain  # noqa: E402
from link_artifacts import Artifact, LinkTargetType  # noqa: E402
from link_spec import SpecBuilder  # noqa: E402

BIN_DIR = "buck-out/bin"
SOLIB_DIR = f"{BIN_DIR}/_solib_k8"


@pytest.fixture
def toolchain() -> Toolchain:
    """Bare toolchain: fixed paths, no extra flags, no policies enabled."""
    return Toolchain(
        compiler="/usr/bin/gcc",
        ar="/usr/bin/ar",
        bin_dir=BIN_DIR,
        solib_directory="_solib_k8",
        description="k8-gcc",
    )


@pytest.fixture
def art():
    """art("buck-out/bin/pkg/app") -> Artifact rooted at the bin dir."""
    def _make(path: str) -> Artifact:
        root = BIN_DIR if path.startswith(BIN_DIR + "/") else ""
        return Artifact(path, root)
    return _make


@pytest.fixture
def builder(toolchain, art):
    """builder(target, output=..., tc=...) -> SpecBuilder with target and output set."""
    def _make(target: LinkTargetType = LinkTargetType.EXECUTABLE,
              output: str = f"{BIN_DIR}/pkg/app",
              tc: Toolchain | None = None,
              owner: str = "//pkg:app") -> SpecBuilder:
        b = SpecBuilder(tc or toolchain, owner)
        b.set_target_type(target)
        b.set_output(art(output))
        return b
    return _make
