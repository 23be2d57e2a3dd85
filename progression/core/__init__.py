"""
Core infrastructure for the progression engine: configuration, logging,
database plumbing and infrastructure exceptions.
"""
