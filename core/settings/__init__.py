"""Settings for the image feed."""

from .settings_manager import SettingsManager, default_settings

__all__ = ['SettingsManager', 'default_settings']
