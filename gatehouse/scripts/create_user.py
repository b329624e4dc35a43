"""
Create a user (e.g. first admin). Run from project root after seeding roles:
  python -m gatehouse.scripts.create_user EMAIL NAME PASSWORD [ROLE ...]
Example:
  python -m gatehouse.scripts.create_user admin@example.com "Site Admin" your-secure-password admin
"""
import argparse
import sys

from gatehouse.core.database import SessionLocal
from gatehouse.core.security import NAME_MAX_LEN, PASSWORD_MAX_LEN, PASSWORD_MIN_LEN
from gatehouse.services import accounts
from gatehouse.services.authorization import USER_ROLE, resolve_roles


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a Gatehouse user from the command line.")
    parser.add_argument("email", help="Unique email address")
    parser.add_argument("name", help="Display name (1-255 chars)")
    parser.add_argument("password", help="Password (8-128 chars)")
    parser.add_argument("roles", nargs="*", default=[USER_ROLE], help="Role names (default: user)")
    args = parser.parse_args(argv)

    name = args.name.strip()
    if not name or len(name) > NAME_MAX_LEN:
        print("Invalid name length.", file=sys.stderr)
        return 1
    if "@" not in args.email:
        print("Invalid email address.", file=sys.stderr)
        return 1
    if len(args.password) < PASSWORD_MIN_LEN or len(args.password) > PASSWORD_MAX_LEN:
        print("Password must be 8-128 characters.", file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        if accounts.email_taken(db, args.email):
            print(f"User '{args.email}' already exists.", file=sys.stderr)
            return 1
        roles, missing = resolve_roles(db, list(dict.fromkeys(args.roles)))
        if missing:
            print(
                f"Unknown role(s): {', '.join(missing)}. Run gatehouse.scripts.seed first.",
                file=sys.stderr,
            )
            return 1
        user = accounts.create_user(db, name, args.email, args.password, roles=roles)
        db.commit()
        print(f"Created user '{user.email}' with roles: {', '.join(user.role_names()) or '-'}.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
