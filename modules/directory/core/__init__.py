"""Directory module core configuration."""

from modules.directory.core.config import DirectorySettings, get_directory_settings

__all__ = ["DirectorySettings", "get_directory_settings"]
