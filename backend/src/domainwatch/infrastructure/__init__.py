"""
Infrastructure package - clock, persistence and locking.
"""
