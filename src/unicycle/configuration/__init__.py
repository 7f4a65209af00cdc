"""
Configuration management for unicycle.

- **app_configuration.py**: File-lock based YAML loader for global settings:
  the default guild, the moderation log channel, scheduler and batch flush
  intervals, banner rotation mode and image pool, booru access and storage
  paths. Falls back to defaults on missing or malformed config files.
"""
