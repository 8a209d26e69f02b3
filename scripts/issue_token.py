#!/usr/bin/env python3
"""
Issue a bearer token for a professional.

Usage:
    python scripts/issue_token.py <professional_id>
    python scripts/issue_token.py <professional_id> --minutes 120
"""

import argparse
from datetime import timedelta

from quiro_agenda.core.security import create_professional_token


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Issue a bearer token for a professional")
    parser.add_argument("professional_id", type=int, help="Professional ID")
    parser.add_argument("--minutes", type=int, help="Token lifetime in minutes")
    args = parser.parse_args()

    expires_delta = timedelta(minutes=args.minutes) if args.minutes else None
    print(create_professional_token(args.professional_id, expires_delta))


if __name__ == "__main__":
    main()
