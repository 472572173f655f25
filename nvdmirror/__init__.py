"""NVD Mirror — keeps a git-tracked, one-file-per-CVE copy of the NVD feeds.

This package provides the logic for detecting stale NVD feed partitions,
downloading them, writing each CVE record to its own JSON file, and
publishing the resulting tree to a git remote.
"""

__version__ = "0.1.0"
