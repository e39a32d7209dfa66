"""
Alert rules for pipeline health.

Evaluates per-pipeline threshold rules when builds complete, applies
cooldown and acknowledgement, and records every trigger with its
notification outcome.
"""
