"""
SLA Module
==========

Bounded Context for Service Level Agreement tracking.

Responsibilities:
- Business calendar arithmetic (working hours, weekends, holidays)
- SLA deadlines from the priority x category matrix
- Pause/resume with elapsed-budget snapshots
- Periodic compliance sweep with breach and at-risk notifications
- Engine configuration hot-reload via watchdog
"""

__version__ = "1.0.0"
