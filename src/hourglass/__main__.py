"""Allow ``python -m hourglass``."""

from hourglass._cli import main

main()
