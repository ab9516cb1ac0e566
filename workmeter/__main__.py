from __future__ import annotations
from workmeter.cli import main

if __name__ == "__main__":
    main()
