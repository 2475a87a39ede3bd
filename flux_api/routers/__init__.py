"""
HTTP route handlers.
"""
