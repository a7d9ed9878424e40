"""Allow ``python -m cmcontroller``."""

from cmcontroller.cli.main import main

main()
