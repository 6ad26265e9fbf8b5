import argparse
import logging

from database import SessionLocal, init_db
from models import User

logger = logging.getLogger(__name__)


def delete_users(db, email=None) -> int:
    """
    Delete one user by email, or every user when no email is given.
    Their time entries go with them.
    """
    query = db.query(User)
    if email:
        query = query.filter(User.email == email.strip().lower())
    users = query.all()
    for user in users:
        db.delete(user)
    db.commit()
    return len(users)


def main() -> None:
    """
    Administrative removal of accounts from the `users` table.

    This is a maintenance script intended for local/dev use.
    """
    parser = argparse.ArgumentParser(description="Delete registered users and their time entries.")
    parser.add_argument("--email", help="only delete the user with this email")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    init_db()
    db = SessionLocal()
    try:
        deleted = delete_users(db, args.email)
        logger.info("Deleted %d user(s) from the database.", deleted)
    finally:
        db.close()


if __name__ == "__main__":
    main()
