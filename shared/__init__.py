"""
Shared Kernel

Base classes and utilities shared across the fleet and booking apps:
value objects, domain events, the unit of work, the retry policy and
the API error mapping.
"""
