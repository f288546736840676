"""Notifications app package.

Turns booking lifecycle events into in-app notifications and e-mails.
Delivery is fire-and-forget: it runs after the booking transaction has
committed and never affects booking state.
"""
