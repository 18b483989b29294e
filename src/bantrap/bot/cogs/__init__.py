"""
Discord cogs wiring Bantrap into py-cord's event system:

- **message_listener.py**: Feeds every guild message to the enforcement engine.
- **events_listener.py**: on_ready presence and application command errors.
- **trap_settings_cmds.py**: The ``/bantrap`` administrative command group.
"""
