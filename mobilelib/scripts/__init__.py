"""
Console entrypoints, one per command, registered as `mobile-<module>-<command>` scripts.
"""
