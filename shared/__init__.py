"""
Shared Kernel

Value objects, domain events, the unit of work and the event bus used by
every domain app of the booking engine.
"""
