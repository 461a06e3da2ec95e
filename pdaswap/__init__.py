"""
pdaswap

Two ledger programs, a token escrow and a constant-product AMM, plus the
in-process ledger runtime that executes them.

Core imports are lazily loaded. For direct module access, import from
submodules:

    from pdaswap.runtime import Runtime
    from pdaswap.escrow import instructions as escrow_ix
    from pdaswap.amm import instructions as amm_ix
"""

__version__ = "0.1.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    if name == "Runtime":
        from .runtime import Runtime
        return Runtime
    elif name == "load_config":
        from .config import load_config
        return load_config
    elif name == "ProgramError":
        from .exceptions import ProgramError
        return ProgramError
    raise AttributeError(f"module 'pdaswap' has no attribute {name!r}")

__all__ = ["Runtime", "load_config", "ProgramError", "__version__"]
