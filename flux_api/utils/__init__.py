"""
Shared helpers: exceptions, dependencies, validation and constants.
"""
