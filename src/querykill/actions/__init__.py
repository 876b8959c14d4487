"""Response actions taken for matched sessions."""
