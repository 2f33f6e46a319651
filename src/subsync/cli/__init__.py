"""
Command-line interface for subsync.
"""
