"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from media_downloader import DIST_NAME
from media_downloader.exceptions import ConfigurationError
from media_downloader.models.config import DownloadConfig

log = logging.getLogger(__name__)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / DIST_NAME


def _to_ini_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return ",".join(map(str, value))
    if hasattr(value, "value"):
        value = value.value
    # configparser uses % for interpolation, so we must escape it
    return str(value).replace("%", "%%")


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser()

    def load_config(self, cli_options: dict[str, Any] | None = None) -> DownloadConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        A missing file is not an error: the built-in defaults are used.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated DownloadConfig object.

        Raises:
            ConfigurationError: If the config file is invalid or validation fails.
        """
        config_from_file: dict[str, Any] = {}

        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e

            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            config_from_file = self._get_config_as_dict()
        else:
            log.debug(
                f"No configuration file at '{self.config_file_path}', using defaults."
            )

        # Override with CLI options
        if cli_options:
            config_from_file.update(cli_options)

        try:
            return DownloadConfig(**config_from_file)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any] | None = None) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save over the defaults.
        """
        try:
            merged = DownloadConfig(**(settings or {}))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

        config = configparser.ConfigParser()
        config["DEFAULT"] = {}
        for key in sorted(DownloadConfig.get_ini_keys()):
            config["DEFAULT"][key] = _to_ini_value(getattr(merged, key))

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        defaults = DownloadConfig()
        try:
            return {
                "download_type": section.get(
                    "download_type", defaults.download_type.value
                ),
                "video_format": section.get("video_format", defaults.video_format),
                "quality": section.get("quality", defaults.quality),
                "audio_format": section.get("audio_format", defaults.audio_format),
                "audio_quality": section.get("audio_quality", defaults.audio_quality),
                "download_subs": section.getboolean("download_subs", False),
                "subtitle_langs": section.get(
                    "subtitle_langs", ",".join(defaults.subtitle_langs)
                ),
                "download_thumb": section.getboolean("download_thumb", False),
                "embed_thumbnail": section.getboolean("embed_thumbnail", False),
                "noplaylist": section.getboolean("noplaylist", True),
                "verify_audio": section.getboolean("verify_audio", False),
                "output_dir": section.get("output_dir", defaults.output_dir),
                "output_template": section.get(
                    "output_template", defaults.output_template
                ),
            }
        except (ValueError, configparser.Error) as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = DownloadConfig()
        needs_saving = False

        config_section = self._parser["DEFAULT"]

        for key in sorted(DownloadConfig.get_ini_keys()):
            if key not in config_section:
                config_section[key] = _to_ini_value(getattr(defaults, key))
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving

    def get_config_as_dict(self) -> dict[str, Any]:
        """The effective settings, for display purposes."""
        if self.config_file_path.is_file() and not self._parser.defaults():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e
        if not self._parser.defaults():
            return {
                key: value.value if hasattr(value, "value") else value
                for key, value in DownloadConfig().model_dump().items()
                if key in DownloadConfig.get_ini_keys()
            }
        return self._get_config_as_dict()
