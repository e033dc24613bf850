"""Attendance Engine package.

This package is organized by feature modules (attendance, leaves, settings, ...)
with repository protocols at the storage seam and plain service classes on top.
The HTTP layer, authentication and message delivery live outside this package.
"""
