"""
DomainWatch - domain registration tracking service.

Tracks domain expiry dates, reconciles lifecycle status on a schedule,
sends expiry reminders and applies confirmed renewal payments.
"""

__version__ = "0.1.0"
