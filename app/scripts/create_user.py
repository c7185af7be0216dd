"""
Create a user with a permission profile. Run from project root:
  python -m app.scripts.create_user USERNAME PASSWORD [--profile NAME] [--permission P ...]
Example:
  python -m app.scripts.create_user contador s3cret --profile Accountant \
      --permission accounting.full --permission tax.full
"""
import argparse
import sys

from app.core.database import SessionLocal
from app.core.security import (
    NEW_PASSWORD_MIN_LEN,
    NEW_USERNAME_MIN_LEN,
    PASSWORD_MAX_LEN,
    USERNAME_MAX_LEN,
    hash_password,
)
from app.models import Profile, User


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create an ERP user (no registration UI).")
    parser.add_argument("username", help=f"Username ({NEW_USERNAME_MIN_LEN}-{USERNAME_MAX_LEN} chars)")
    parser.add_argument("password", help=f"Password ({NEW_PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("--email", default=None)
    parser.add_argument("--profile", default="User", help="Profile name (default: User)")
    parser.add_argument(
        "--permission",
        action="append",
        default=[],
        dest="permissions",
        help="Permission string; repeat for several (use 'all' for an administrator)",
    )
    parser.add_argument("--inactive", action="store_true", help="Create the account disabled")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    username = args.username.strip()
    if not (NEW_USERNAME_MIN_LEN <= len(username) <= USERNAME_MAX_LEN):
        print("Invalid username length.", file=sys.stderr)
        return 1
    if not (NEW_PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN):
        print(
            f"Password must be {NEW_PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.",
            file=sys.stderr,
        )
        return 1

    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.username == username).first()
        if existing:
            print(f"User '{username}' already exists.", file=sys.stderr)
            return 1
        user = User(
            username=username,
            email=args.email,
            password_hash=hash_password(args.password),
            active=not args.inactive,
        )
        user.profile = Profile(
            name=args.profile,
            description=f"Profile of {args.profile}",
            permissions=list(dict.fromkeys(args.permissions)),
        )
        db.add(user)
        db.commit()
        print(
            f"Created user '{username}' with profile '{args.profile}' "
            f"and permissions {user.profile.permissions}."
        )
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
