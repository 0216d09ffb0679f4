"""
Directory Module Configuration.

Manages environment variables specific to the Directory module.
Uses prefix DIRECTORY_ to avoid conflicts with other modules.
"""

from functools import lru_cache
from typing import Annotated

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DirectorySettings(BaseSettings):
    """
    Directory module settings loaded from environment variables.

    Backend credentials are shared with the core (BACKEND_*); everything
    else uses the DIRECTORY_ prefix.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    backend_url: Annotated[
        str,
        Field(
            default="",
            description="Backend project URL",
            validation_alias="BACKEND_URL",
        ),
    ] = ""

    backend_anon_key: Annotated[
        SecretStr,
        Field(
            default=SecretStr(""),
            description="Backend anon key sent as apikey",
            validation_alias="BACKEND_ANON_KEY",
        ),
    ] = SecretStr("")

    employees_table: Annotated[
        str,
        Field(
            default="employees",
            description="Remote employees table",
            validation_alias="BACKEND_EMPLOYEES_TABLE",
        ),
    ] = "employees"

    # Connectivity
    connectivity_check_interval: Annotated[
        float,
        Field(
            default=15.0,
            gt=0,
            description="Seconds between reachability probes",
            validation_alias="DIRECTORY_CONNECTIVITY_CHECK_INTERVAL",
        ),
    ] = 15.0

    connectivity_probe_timeout: Annotated[
        float,
        Field(
            default=5.0,
            gt=0,
            description="HTTP timeout for a single reachability probe",
            validation_alias="DIRECTORY_CONNECTIVITY_PROBE_TIMEOUT",
        ),
    ] = 5.0

    auto_sync_on_reconnect: Annotated[
        bool,
        Field(
            default=True,
            description="Replay pending operations when connectivity returns",
            validation_alias="DIRECTORY_AUTO_SYNC_ON_RECONNECT",
        ),
    ] = True

    # Avatars
    avatar_size_list: Annotated[
        int,
        Field(
            default=40,
            description="Gravatar size for list rows and chart nodes",
            validation_alias="DIRECTORY_AVATAR_SIZE_LIST",
        ),
    ] = 40

    avatar_size_preview: Annotated[
        int,
        Field(
            default=96,
            description="Gravatar size for the edit dialog preview",
            validation_alias="DIRECTORY_AVATAR_SIZE_PREVIEW",
        ),
    ] = 96

    avatar_default_image: Annotated[
        str,
        Field(
            default="mp",
            description="Gravatar fallback image (d= parameter)",
            validation_alias="DIRECTORY_AVATAR_DEFAULT_IMAGE",
        ),
    ] = "mp"


@lru_cache
def get_directory_settings() -> DirectorySettings:
    """
    Get cached directory module settings.

    Returns:
        DirectorySettings: Directory settings instance.
    """
    return DirectorySettings()
