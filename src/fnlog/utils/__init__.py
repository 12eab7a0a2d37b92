"""
Utility helpers: console/logging setup and node rendering.
"""
