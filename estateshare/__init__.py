"""EstateShare property crowdfunding service package."""


def __getattr__(name):
    """Lazy import so models and services load without building the app."""
    if name == "create_app":
        from .main import create_app
        return create_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
