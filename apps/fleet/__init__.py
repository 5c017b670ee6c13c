"""Fleet app package.

Holds the castles that can be hired out together with their maintenance
windows. Bookings reference castles by id and keep a copy of the castle
name, so renaming or removing a castle never rewrites booking history.
"""
