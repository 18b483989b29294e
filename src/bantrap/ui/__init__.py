"""
User interface components for Bantrap.

- **audit_embed.py**: Discord embed rendering for audit records.
- **console.py**: Interactive developer console for live bot management with
  status checks, guild and trap listing, and graceful shutdown/restart. Uses
  prompt_toolkit for non-blocking I/O alongside Discord event handling.
"""
