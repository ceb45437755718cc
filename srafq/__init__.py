__all__ = ["__version__"]

# Resolve version from the installed package metadata, with safe fallbacks.
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("srafq")
except PackageNotFoundError:  # running from a source checkout without dist metadata
    __version__ = "0.0.0"
