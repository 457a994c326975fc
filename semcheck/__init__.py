"""Breaking-change classification for library interface snapshots."""

__version__ = "0.1.0"

from semcheck.engine import evaluate  # noqa: E402

__all__ = ["__version__", "evaluate"]
