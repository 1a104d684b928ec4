"""
Directory search over the resource catalog.
"""
