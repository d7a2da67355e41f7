"""
sqlitedb - dynamic records and signature-tracked meta trees over SQLite.
"""

from .core import *  # noqa: F401,F403
from .core import __all__  # noqa: F401
from .core.config import VERSION as __version__  # noqa: F401
