"""Allow ``python -m samlcookie``."""

from samlcookie.app import main

main()
