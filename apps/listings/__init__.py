"""Listings app package.

A listing is anything a host rents out by the day: a stay (apartment,
house) or a vehicle. Bookings reserve half-open date ranges against a
listing; the listing row is also the lock that serializes reservations.
"""
