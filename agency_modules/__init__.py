"""
agency_modules -- Service facades that own transaction boundaries.

Each subpackage exposes one service class.  Services commit on success and
roll back on failure; the kernel services and selectors they compose never
commit.
"""
