"""
API tests package for the CarHaus backend.

Covers the HTTP and WebSocket surface:
- Inquiry threads (submission, dealer and buyer inboxes, admin view)
- Featured placement (admin slots, public feed, dealer requests)
- Subscriptions, plan overrides and the payment webhook
- Notifications and the realtime socket
- Health probes and metrics
"""
