"""
Notify app.

Delivers triggered pipeline alerts to chat, email and generic webhook
channels, and keeps a bounded in-memory feed of recent notifications.
"""
