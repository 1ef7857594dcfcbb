"""Allow ``python -m oadoi_enrich``."""

from .cli import main

if __name__ == "__main__":
    main()
