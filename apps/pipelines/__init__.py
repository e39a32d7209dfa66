"""
Pipelines app.

Ingests CI/CD provider webhooks into canonical Build rows:
provider event → status mapping → idempotent upsert → build signals

Key concepts:
- One ProviderEvent type per provider, selected by provider identity
- Builds keyed by (pipeline, external_id); redelivery never duplicates
- Forward-only lifecycle: pending → running → success/failed/cancelled
- Rolling metrics computed on demand from a window of builds
"""
