"""
Services package for the CityFix application
"""

from .blob_store import LocalBlobStore
from .reports import ReportRegistry
from .users import UserRegistry

__all__ = ['LocalBlobStore', 'ReportRegistry', 'UserRegistry']
