"""Bookings app package.

The booking lifecycle engine: atomic reservation of listing dates, the
booking status machine with compare-and-set writes, the cash voucher
protocol and the periodic sweep that expires, activates and completes
bookings. Overlap is prevented by a listing row lock and, on PostgreSQL,
by an exclusion constraint.
"""
