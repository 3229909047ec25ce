"""
Issue a bearer token for an operator of the control API.

Run with: python -m scripts.issue_token ops@example.com [hours]
"""
from datetime import timedelta
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lien_sync.services.auth import create_access_token


def issue_token(operator: str, hours: int = 12) -> str:
    return create_access_token(operator, expires_delta=timedelta(hours=hours))


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python -m scripts.issue_token <operator> [hours]")
        sys.exit(1)

    hours = int(sys.argv[2]) if len(sys.argv) > 2 else 12
    token = issue_token(sys.argv[1], hours)
    print(f"Operator: {sys.argv[1]}")
    print(f"Expires in: {hours} hours")
    print(f"\nAuthorization: Bearer {token}")
