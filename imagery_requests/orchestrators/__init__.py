"""Durable Functions orchestrator functions.

Delivers lifecycle notifications outside the HTTP request path:
1. Render the messages for one committed event
2. Send each through the activity, backing off on retryable failures
3. Report sent / failed counts
"""
