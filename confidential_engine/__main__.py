"""Entry point for ``python -m confidential_engine``."""
from .cli import main

if __name__ == "__main__":
    main()
