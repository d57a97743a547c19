"""Core Package - session, steps, waits, cancellation and the teardown gate.

Submodules are imported lazily on attribute access.
"""

_SUBMODULES = frozenset(
    [
        "builtin_steps",
        "cancellation",
        "error_handling",
        "exceptions",
        "logging_config",
        "pausable_wait",
        "protocols",
        "retry",
        "run_state",
        "session",
        "step",
        "suspension",
        "teardown_gate",
    ]
)


def __getattr__(name: str):
    """Lazy import submodules on attribute access."""
    if name in _SUBMODULES:
        import importlib

        return importlib.import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return list(_SUBMODULES)
