"""External command execution."""
