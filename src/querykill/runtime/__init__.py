"""Poll loop, run context and daemon lifecycle."""
