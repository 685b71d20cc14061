"""
Lockbroker - Single-device action queue

Arbitrates exclusive access to one remote device that can perform one of
eight numbered actions (opening lock 1-8). Web clients push actions and
wait; the device pulls the next command and reports the outcome.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- config: Environment-driven configuration
- storage: Work item persistence (in-memory or Redis)
- queue: FIFO arbitration, claim/complete, wait for outcome
- api: REST request/response models
- device: Reference device-side polling client
"""

__version__ = "1.0.0"
