"""
Earnings Kernel

Per-model earnings bookkeeping for half-month billing periods:
- Live raw values with per-platform freeze
- Pinned exchange rates per period
- Lock-guarded archive / cleanup / restore lifecycle
- Immutable archive snapshots, correctable only by rate correction
"""

__version__ = "0.1.0"
