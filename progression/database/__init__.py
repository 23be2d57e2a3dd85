"""Persistence models for the progression engine."""
