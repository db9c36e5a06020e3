"""wasmhost - Build WebAssembly modules and host them over HTTP.

This package routes Rust and C/C++ sources to the matching WebAssembly
toolchain, normalizes the outputs into a wasm/loader/wrapper triplet,
publishes them into an artifact store, and serves the store over HTTP.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
