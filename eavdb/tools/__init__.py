"""
Command-line tools for eavdb.
"""
