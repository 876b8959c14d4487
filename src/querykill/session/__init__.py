"""Live session snapshots and action records."""
