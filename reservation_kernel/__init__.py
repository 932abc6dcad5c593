"""
Reservation Kernel

Shared-resource booking core for organizations:
- Recurrence-aware reservation requests
- Conflict-free scheduling per resource
- Role-based approval with department overrides
- Return verification and ownership transfer workflows
- Full auditability via hash chain
"""

__version__ = "0.1.0"
