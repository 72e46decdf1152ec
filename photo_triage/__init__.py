"""photo-triage: duplicate-group cleanup sessions for photo collections."""

__version__ = "1.0.0"

from .cleanup import CleanupSession  # noqa: E402
from .core import CleanupSettings, PhotoRecord  # noqa: E402

__all__ = ["__version__", "CleanupSession", "CleanupSettings", "PhotoRecord"]
