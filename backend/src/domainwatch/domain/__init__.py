"""
Domain package - Core business logic with no external dependencies.

This package contains pure Python domain models and lifecycle rules
that encapsulate how domain registrations age, expire and get renewed.
"""
