"""
Command line tools for the device inventory store.
"""
