"""
Configuration management for Bantrap.

- **app_configuration.py**: YAML configuration loader for global settings
  (database location, ban message-retention window, audit preview length).
  Falls back to defaults on missing or malformed config files.

- **trap_settings.py**: Per-guild trap/log channel store. Keeps the whole
  mapping in memory for lock-free reads and writes it to SQLite after every
  change, serialising changes per guild.
"""
