"""Allow ``python -m autostep``."""

from autostep.cli import main

if __name__ == "__main__":
    main()
