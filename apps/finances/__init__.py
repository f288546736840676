"""Finances app package.

Card payment gateway integration used by the booking engine and the audit
trail of every call made to it.
"""
