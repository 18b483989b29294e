"""
Trap-channel enforcement core.

- **exemption.py**: Pure staff-exemption policy.
- **gateway.py**: The platform operations the core needs, plus the py-cord
  implementation.
- **audit_logger.py**: Best-effort audit records for the log channel.
- **enforcement_engine.py**: Per-message filter, lookup, exemption, ban and
  record pipeline returning an ``EnforcementResult``.
"""
