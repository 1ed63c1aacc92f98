#!/usr/bin/env python3
"""
Enable running orderdesk commands via: python -m orderdesk

Usage:
    python -m orderdesk list --search 482
    python -m orderdesk bulk 3=Shipped 9=Cancelled
"""

import sys


def main():
    """Route to the CLI."""
    from orderdesk.cli import main as cli_main

    sys.exit(cli_main())


if __name__ == "__main__":
    main()
