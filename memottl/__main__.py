"""Main entry point when executing memottl as a package.

This allows running the package using python -m memottl.
"""

from memottl.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
