"""Module entrypoint for `python -m routeoptimizer`."""

from routeoptimizer.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
