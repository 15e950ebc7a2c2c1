"""Component versioning engine: snapshots, diffs, lifecycle and extraction sessions."""
