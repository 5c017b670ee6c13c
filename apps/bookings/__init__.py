"""Bookings app package.

This app holds the booking lifecycle: reference allocation, conflict
detection against other bookings and castle maintenance, the status
machine, the append-only audit trail and the sweeper that completes
finished bookings. Double bookings are ultimately prevented by a partial
unique index on (castle, date) for bookings that are not expired.
"""
