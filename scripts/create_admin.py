"""Create (or reset) an admin user and print its API token.

Usage:
  python scripts/create_admin.py admin@example.com "Admin Name" <password>
"""

import sys
import os

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
  sys.path.insert(0, ROOT)

from hirehub import create_app
from hirehub.extensions import db
from hirehub.models.user import User, UserRole
from hirehub.services.tokens import new_token


def main(argv):
  if len(argv) != 4:
    print(__doc__)
    return 2
  email, name, password = argv[1].strip().lower(), argv[2], argv[3]
  app = create_app()
  with app.app_context():
    user = User.query.filter_by(email=email).first()
    if user is None:
      user = User(email=email, name=name)
      db.session.add(user)
    user.role = UserRole.ADMIN
    user.set_password(password)
    user.api_token = new_token()
    db.session.commit()
    print(f'admin {user.email} id={user.id} api_token={user.api_token}')
  return 0


if __name__ == '__main__':
  sys.exit(main(sys.argv))
