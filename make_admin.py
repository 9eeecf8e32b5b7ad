# make_admin.py
# Usage: python make_admin.py <email>

import sys

from app import create_app
from models import db, User


def make_admin(email):
    app = create_app()
    with app.app_context():
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            print(f"No user with email {email} found. Register the account first.")
            return False

        if user.is_admin:
            print(f"User id={user.id} ({user.email}) is already an admin.")
            return True

        user.is_admin = True
        db.session.commit()
        print(f"User (id={user.id}, email={user.email}) is now admin.")
        return True


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python make_admin.py <email>")
        sys.exit(2)
    sys.exit(0 if make_admin(sys.argv[1]) else 1)
