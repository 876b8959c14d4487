"""querykill — watch a database server's live sessions and act on runaway queries."""

__version__ = "0.1.0"
