#!/usr/bin/env python3
"""Print the Linear user ids needed to configure the channel.

Usage: python utils/get_linear_ids.py <LINEAR_API_KEY>

Shows your own user (for LINEAR_USER_ID) and every workspace user
(for LINEAR_ALLOWED_USERS).
"""

import sys

from linear_bridge.integrations import LinearClient


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv or not argv[0].strip():
        print("Missing API key", file=sys.stderr)
        return 1

    client = LinearClient(api_key=argv[0].strip(), max_retries=0)
    try:
        print("\n=== Your user (for LINEAR_USER_ID) ===\n")
        viewer = client.fetch_viewer()
        print(f"  {viewer.id}  {viewer.label}")

        print("\n=== All workspace users (for LINEAR_ALLOWED_USERS) ===\n")
        for user in client.list_users():
            name = user["display_name"] or user["name"]
            print(f"  {user['id']}  {name}  {user['email']}")
        print()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        client.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
