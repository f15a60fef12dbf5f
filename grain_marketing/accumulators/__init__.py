"""
Accumulator contracts.

Modules
-------
state_machine  Pure daily transition, EURO expiration, performance summary.
processor      Daily sweep across contracts with per-contract isolation.
"""
