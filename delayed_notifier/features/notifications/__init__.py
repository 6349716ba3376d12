"""Delayed notifications: scheduling, due polling, queue hand-off and delivery."""
