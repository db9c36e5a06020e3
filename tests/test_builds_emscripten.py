"""Tests for builds/emscripten.py module.

Tests emcc command composition and wrapper synthesis.
Uses FakeToolchain in place of emcc/em++.
"""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import FakeToolchain
from wasmhost.builds.emscripten import (
    EmscriptenToolchain,
    build_emscripten,
    compose_emcc_command,
)
from wasmhost.builds.runner import ToolchainFailureError
from wasmhost.builds.wrappers import render_initialize_wrapper
from wasmhost.config import Settings


class TestEmscriptenToolchain:
    """Tests for EmscriptenToolchain configuration."""

    def test_compiler_for_c(self):
        assert EmscriptenToolchain().compiler_for(Path("a.c")) == "emcc"

    def test_compiler_for_cpp(self):
        assert EmscriptenToolchain().compiler_for(Path("a.cpp")) == "em++"

    def test_env_without_config(self):
        assert EmscriptenToolchain().env() == {}

    def test_env_with_config(self):
        toolchain = EmscriptenToolchain(em_config=Path("/root/.emscripten"))
        assert toolchain.env() == {"EM_CONFIG": "/root/.emscripten"}

    def test_from_settings(self):
        settings = Settings(emcc="/emsdk/emcc", em_config="/emsdk/.emscripten")
        toolchain = EmscriptenToolchain.from_settings(settings)
        assert toolchain.emcc == "/emsdk/emcc"
        assert toolchain.em_config == Path("/emsdk/.emscripten")
        assert toolchain.runtime == "deno"


class TestComposeEmccCommand:
    """Tests for compose_emcc_command function."""

    def test_fixed_flags(self, tmp_path):
        """Should carry the ES6 module, environment and unicode flags."""
        cmd = compose_emcc_command(
            EmscriptenToolchain(), tmp_path / "add.c", tmp_path / "out" / "add.js"
        )

        assert cmd[0] == "emcc"
        assert cmd[1] == str(tmp_path / "add.c")
        assert "WASM=1" in cmd
        assert "ENVIRONMENT=web,worker,deno" in cmd
        assert "EXPORT_ES6=1" in cmd
        assert "USE_ES6_IMPORT_META=0" in cmd
        assert "MODULARIZE=1" in cmd
        assert "--emit-unicode=1" in cmd
        assert cmd[-2:] == ["-o", str(tmp_path / "out" / "add.js")]

    def test_runtime_in_environment(self, tmp_path):
        cmd = compose_emcc_command(
            EmscriptenToolchain(runtime="node"), tmp_path / "a.c", tmp_path / "a.js"
        )
        assert "ENVIRONMENT=web,worker,node" in cmd


class TestBuildEmscripten:
    """Tests for build_emscripten with a fake toolchain."""

    def test_success(self, tmp_path, c_source, fake_toolchain):
        work_dir = tmp_path / "work"
        work_dir.mkdir()

        outputs = build_emscripten(c_source, "alpha", work_dir, EmscriptenToolchain())

        assert fake_toolchain.tools == ["emcc"]
        assert outputs.binary == work_dir / "out" / "alpha.wasm"
        assert outputs.loader == work_dir / "out" / "alpha.js"
        assert outputs.wrapper.read_text() == render_initialize_wrapper("alpha.js")

    def test_wrapper_shape(self):
        """The wrapper imports the loader and exposes initialize()."""
        wrapper = render_initialize_wrapper("alpha.js")
        assert 'import createModule from "./alpha.js";' in wrapper
        assert "export async function initialize()" in wrapper

    def test_cpp_uses_empp(self, tmp_path, fake_toolchain):
        source = tmp_path / "vec.cpp"
        source.write_text("int main() { return 0; }\n")
        work_dir = tmp_path / "work"
        work_dir.mkdir()

        build_emscripten(source, "vec", work_dir, EmscriptenToolchain())

        assert fake_toolchain.tools == ["em++"]

    def test_compile_failure(self, tmp_path, c_source):
        work_dir = tmp_path / "work"
        work_dir.mkdir()

        with patch("subprocess.run", side_effect=FakeToolchain(fail_on="emcc")):
            with pytest.raises(ToolchainFailureError) as exc_info:
                build_emscripten(c_source, "alpha", work_dir, EmscriptenToolchain())

        assert exc_info.value.exit_code == 1
        assert "emcc exploded" in exc_info.value.stderr
        assert not (work_dir / "out" / "alpha.ts").exists()

    def test_missing_binary(self, tmp_path, c_source):
        """emcc exiting 0 without writing the .wasm is a toolchain failure."""
        work_dir = tmp_path / "work"
        work_dir.mkdir()

        with patch(
            "subprocess.run",
            return_value=subprocess.CompletedProcess(["emcc"], 0, stdout="", stderr=""),
        ):
            with pytest.raises(ToolchainFailureError) as exc_info:
                build_emscripten(c_source, "alpha", work_dir, EmscriptenToolchain())

        assert exc_info.value.code == "toolchain_output_missing"
