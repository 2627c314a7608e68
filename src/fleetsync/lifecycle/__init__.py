"""Lifecycle layer.

Status state machine, double-booking detection and the orchestrator
that applies mutations locally first and hands failed remote writes to
the sync queue.
"""
