"""Shared fixtures for wasmhost tests.

Toolchains are never executed; FakeToolchain stands in for subprocess.run
and writes the files cargo, wasm-bindgen and emcc would produce.
"""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from wasmhost.config import Settings
from wasmhost.store import ArtifactStore


class FakeToolchain:
    """subprocess.run replacement emulating the wasm toolchains.

    Attributes:
        calls: Commands received, in order.
        fail_on: Executable name that should exit non-zero.
        payload: Bytes written into every produced wasm binary.
    """

    def __init__(self, fail_on: str | None = None, payload: bytes = b"\0asm\x01\0\0\0") -> None:
        self.calls: list[list[str]] = []
        self.fail_on = fail_on
        self.payload = payload

    def __call__(self, cmd, cwd=None, **kwargs) -> subprocess.CompletedProcess:
        cmd = list(cmd)
        self.calls.append(cmd)
        tool = Path(cmd[0]).name

        if tool == self.fail_on:
            return subprocess.CompletedProcess(
                cmd, 1, stdout="", stderr=f"error: {tool} exploded\n"
            )

        if tool == "cargo":
            self._cargo(Path(cwd))
        elif tool == "wasm-bindgen":
            self._bindgen(cmd)
        elif tool in ("emcc", "em++"):
            self._emcc(cmd)

        return subprocess.CompletedProcess(cmd, 0, stdout=f"{tool} ok\n", stderr="")

    @property
    def tools(self) -> list[str]:
        return [Path(c[0]).name for c in self.calls]

    def _cargo(self, crate_dir: Path) -> None:
        manifest = (crate_dir / "Cargo.toml").read_text()
        crate = manifest.split('name = "', 1)[1].split('"', 1)[0]
        release = crate_dir / "target" / "wasm32-unknown-unknown" / "release"
        release.mkdir(parents=True)
        (release / f"{crate}.wasm").write_bytes(self.payload)

    def _bindgen(self, cmd: list[str]) -> None:
        out_dir = Path(cmd[cmd.index("--out-dir") + 1])
        name = cmd[cmd.index("--out-name") + 1]
        out_dir.mkdir(parents=True, exist_ok=True)
        (out_dir / f"{name}_bg.wasm").write_bytes(self.payload)
        (out_dir / f"{name}.js").write_text(
            f'const wasmUrl = new URL("{name}_bg.wasm", import.meta.url);\n'
            "export function add(a, b) { return wasm.add(a, b); }\n"
        )
        (out_dir / f"{name}.d.ts").write_text("export function add(a: number, b: number): number;\n")

    def _emcc(self, cmd: list[str]) -> None:
        loader = Path(cmd[cmd.index("-o") + 1])
        loader.write_text("export default async function Module() { return {}; }\n")
        loader.with_suffix(".wasm").write_bytes(self.payload)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with every directory inside tmp_path."""
    return Settings(
        store_dir=tmp_path / "store",
        scratch_dir=tmp_path / "scratch",
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def store(settings: Settings) -> ArtifactStore:
    return ArtifactStore(settings.store_dir)


@pytest.fixture
def fake_toolchain():
    """Patch subprocess.run with a successful FakeToolchain."""
    fake = FakeToolchain()
    with patch("subprocess.run", side_effect=fake):
        yield fake


@pytest.fixture
def rust_source(tmp_path: Path) -> Path:
    source = tmp_path / "src" / "math.rs"
    source.parent.mkdir(parents=True, exist_ok=True)
    source.write_text(
        "use wasm_bindgen::prelude::*;\n\n"
        "#[wasm_bindgen]\n"
        "pub fn add(a: i32, b: i32) -> i32 {\n    a + b\n}\n"
    )
    return source


@pytest.fixture
def c_source(tmp_path: Path) -> Path:
    source = tmp_path / "src" / "math.c"
    source.parent.mkdir(parents=True, exist_ok=True)
    source.write_text(
        "#include <emscripten.h>\n\n"
        "EMSCRIPTEN_KEEPALIVE\nint add(int a, int b) { return a + b; }\n"
    )
    return source
