"""Durable Functions activity functions.

- send_notification: Deliver one rendered lifecycle e-mail
"""
