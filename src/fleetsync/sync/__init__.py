"""Sync layer.

Durable local store, the replay queue for mutations the remote
authority could not accept, and the background scheduler driving it.
"""
