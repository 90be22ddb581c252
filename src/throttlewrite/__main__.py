"""Module entrypoint for `python -m throttlewrite`."""

from throttlewrite.cli import run

if __name__ == "__main__":
    raise SystemExit(run())
