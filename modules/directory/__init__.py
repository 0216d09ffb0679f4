"""
Directory Module.

Employee directory with an org chart and offline caching.
"""

from modules.directory.directory_module import DirectoryModule, create_module

__all__ = ["DirectoryModule", "create_module"]
