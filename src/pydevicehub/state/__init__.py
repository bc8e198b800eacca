"""State/store layer.

This package is the single source of truth for device telemetry: every
producer submission is appended here, and every accepted mutation is
published to live observers from here.
"""
