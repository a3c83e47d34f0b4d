import sys

from asset_tracker.auth import create_user
from asset_tracker.database import get_sessionmaker, init_db


def main(argv: list[str]) -> int:
    if len(argv) not in (3, 4):
        print("usage: create_user.py USERNAME PASSWORD ROLE [EMAIL]")
        return 2
    username, password, role = argv[:3]
    email = argv[3] if len(argv) == 4 else None

    init_db()
    SessionLocal = get_sessionmaker()
    db = SessionLocal()
    try:
        user = create_user(db, username, password, role=role, email=email)
    finally:
        db.close()
    if user is None:
        print(f"User {username} already exists")
    else:
        print(f"User {username} created")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
