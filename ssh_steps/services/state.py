"""Global state management for SSH steps."""

from ssh_steps.dependencies import Dependencies

# Global state (initialized on first access)
_deps: Dependencies | None = None


def get_dependencies() -> Dependencies:
    """Get or create the dependency container."""
    global _deps
    if _deps is None:
        _deps = Dependencies.create()
    return _deps


def set_dependencies(deps: Dependencies) -> None:
    """Set the global dependency container.

    Allows tests and the server lifespan to inject their own instance.
    """
    global _deps
    _deps = deps


def reset_state() -> None:
    """Reset global state for testing."""
    global _deps
    _deps = None
