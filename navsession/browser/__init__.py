"""Browser Automation Package.

- driver_factory: Chrome options translation, launch and failure classification
- proxy_extension: packaging of the proxy-authentication extension
"""

_SUBMODULES = frozenset(["driver_factory", "proxy_extension"])


def __getattr__(name: str):
    """Lazy import submodules on attribute access."""
    if name in _SUBMODULES:
        import importlib

        return importlib.import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return list(_SUBMODULES)
