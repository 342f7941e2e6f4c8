"""
On-disk state: the per-source cache and the emitted index files.
"""
