"""
Configuration management and loading.

Handles the settings document and the storage folder layout.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from machine_log.storage.documents import (
    SETTINGS_DOCUMENT,
    settings_fields_from_document,
    settings_to_document
)
from machine_log.storage.store import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_TIME_INTERVAL_MS = 10000
DEFAULT_LOG_FOLDER_NAME = "Log"


@dataclass(frozen=True)
class Settings:
    """Where the log documents live and how often they are flushed."""
    storage_location: str
    time_interval: int = DEFAULT_TIME_INTERVAL_MS
    
    def __post_init__(self):
        """Validate settings values."""
        if not self.storage_location:
            raise ValueError("storage_location cannot be empty")
        if self.time_interval <= 0:
            raise ValueError("time_interval must be > 0")
    
    def to_document(self) -> dict:
        return settings_to_document(self.storage_location, self.time_interval)


def default_log_folder(data_folder: str) -> Path:
    return Path(data_folder) / DEFAULT_LOG_FOLDER_NAME


def resolve_log_folder(settings: Settings, data_folder: str) -> Path:
    """Folder the production and machine-time documents are written to.
    
    Falls back to the default log folder under data_folder when the
    configured storage location is not an existing directory.
    """
    path = Path(settings.storage_location)
    if not path.is_dir():
        return default_log_folder(data_folder)
    return path


def read_settings(data_folder: str) -> Settings:
    """Read settings without touching the file system otherwise.
    
    An absent, unreadable or malformed settings document yields defaults
    that point at the default log folder.
    """
    data = DocumentStore(data_folder).read(SETTINGS_DOCUMENT)
    if data is not None:
        try:
            return Settings(**settings_fields_from_document(data))
        except ValueError as e:
            logger.warning("Invalid settings document, using defaults: %s", e)
    return Settings(storage_location=str(default_log_folder(data_folder)))


def load_settings(data_folder: str) -> Settings:
    """Load settings, creating the storage folders they name.
    
    Failure to create a folder is logged and otherwise ignored; later
    writes may then fail.
    
    Args:
        data_folder: Host data folder holding settings.json
        
    Returns:
        Loaded or default Settings
    """
    settings = read_settings(data_folder)
    try:
        Path(settings.storage_location).mkdir(parents=True, exist_ok=True)
        resolve_log_folder(settings, data_folder).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("Could not create log folder: %s", e)
    
    return settings


def save_settings_if_needed(data_folder: str, settings: Settings) -> bool:
    """Write settings on first run only.
    
    An existing settings document is never overwritten, so user edits
    survive even when the in-memory settings differ.
    
    Returns:
        True if the settings document was written
    """
    store = DocumentStore(data_folder)
    if store.exists(SETTINGS_DOCUMENT):
        return False
    
    Path(data_folder).mkdir(parents=True, exist_ok=True)
    store.write(SETTINGS_DOCUMENT, settings.to_document())
    logger.info("Wrote default settings to %s", store.path_for(SETTINGS_DOCUMENT))
    return True
