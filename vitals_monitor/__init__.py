"""
Vitals Monitor - continuous sampling of CPU, RAM, storage, temperature and GPU load.
"""

from .const import APP_VERSION

__version__ = APP_VERSION
