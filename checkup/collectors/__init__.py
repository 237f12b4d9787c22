"""
Fact collectors.

Thin wrappers around system tools and files. Each collector takes the run
Policy and returns a scalar, a text blob, None (data unavailable) or a
Skipped/Unavailable marker.
"""
