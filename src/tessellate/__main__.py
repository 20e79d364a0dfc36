"""Allow running tessellate as `python -m tessellate`."""

from tessellate.cli import main

main()
