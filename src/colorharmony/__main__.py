"""Allow ``python -m colorharmony``."""

from colorharmony.cli import main

if __name__ == "__main__":
    main()
