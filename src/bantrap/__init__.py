"""
Bantrap - Trap-channel auto-ban guard for Discord

Administrators designate a trap channel in their server. Any member without
administrator or ban rights who posts there is banned on the spot, with the
last seven days of their messages purged, and the ban is optionally written
to an audit-log channel.

Core Components:

- **Trap Settings**: Per-server trap and log channel configuration, persisted
  to SQLite and loaded at startup
- **Enforcement Engine**: Turns each incoming message into a single
  ban / delete / ignore decision and returns a typed result
- **Audit Logger**: Best-effort embed summaries of bans sent to the log channel
- **Interactive Console**: Live bot administration interface for status checks,
  trap inspection, and graceful restart/shutdown

Usage:
    from bantrap.main import main
    main()  # Starts the bot with console interface
"""
