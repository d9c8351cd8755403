# =============================
# backend/cwm_bridge/__init__.py
# =============================
from importlib.metadata import version, PackageNotFoundError
__all__ = ["__version__"]
try:
    __version__ = version("cwm-bridge")
except PackageNotFoundError:
    __version__ = "0.1"
