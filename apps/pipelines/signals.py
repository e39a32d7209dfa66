"""
Build lifecycle signals.

- build_changed: sent for every created or updated Build (real-time relays).
  kwargs: build, created
- build_completed: sent once per Build, when completed_at is first set.
  kwargs: build
"""

from django.dispatch import Signal

build_changed = Signal()
build_completed = Signal()
