"""assetgen package."""

from .api import RunResult, generate, generate_specs
from .core.version import __version__

__all__ = ["RunResult", "generate", "generate_specs", "__version__"]
