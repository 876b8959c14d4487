"""Allow ``python -m querykill``."""

from querykill.cli import main

main()
