"""Mint a chat token for a visitor or an agent.

Usage:
    python -m scripts.issue_token --subject customer-42 --name "Ada" --email ada@example.com
    python -m scripts.issue_token --subject agent-7 --role agent --hours 8
    python -m scripts.issue_token --guest
"""

import argparse
from datetime import timedelta

from app.services.token_service import TokenService


def main() -> None:
    parser = argparse.ArgumentParser(description="Issue a chat token")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--subject", help="Host user id the token speaks for")
    group.add_argument("--guest", action="store_true", help="Mint an anonymous guest id")
    parser.add_argument("--role", choices=("user", "agent"), default="user")
    parser.add_argument("--name", default="", help="Display name")
    parser.add_argument("--email", default="", help="Contact email")
    parser.add_argument("--hours", type=float, default=None, help="Token lifetime")
    args = parser.parse_args()

    service = TokenService()
    if args.guest:
        token = service.issue_guest_token(name=args.name or "Guest", email=args.email)
    else:
        token = service.issue_token(
            subject=args.subject,
            role=args.role,
            name=args.name,
            email=args.email,
            expires_in=timedelta(hours=args.hours) if args.hours else None,
        )
    print(token)


if __name__ == "__main__":
    main()
