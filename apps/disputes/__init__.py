"""Disputes app package.

Guests and hosts can open a dispute about a booking once payment has been
made. At most one dispute per booking may be open at a time; admins
resolve them.
"""
