"""
Allow running CertiCV as a module: ``python -m certicv``.

This delegates to the CLI entry point so that both
``certicv`` (console script) and ``python -m certicv``
behave identically.
"""

from certicv.cli import main

if __name__ == "__main__":
    main()
