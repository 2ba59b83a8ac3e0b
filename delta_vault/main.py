#!/usr/bin/env python3
"""Entry point for ``python -m delta_vault.main``."""
from .cli import main

if __name__ == "__main__":
    main()
