"""
Utility helpers for Bantrap.

- **logger.py**: Centralized logging configuration with colored console output,
  rotating file handlers, and per-session log aggregation. Suppresses noise from
  Discord internals and networking layers. Uses prompt_toolkit so log output
  does not break the operator console prompt.
"""
