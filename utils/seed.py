from models import db
from models.user import Role, User

DEFAULT_ROLES = ["VISITOR", "ADMIN"]

def seed_roles():
    existing = {r.name for r in Role.query.all()}
    for name in DEFAULT_ROLES:
        if name not in existing:
            db.session.add(Role(name=name))
    db.session.commit()


def get_role(name: str) -> Role:
    role = Role.query.filter_by(name=name).first()
    if role is None:
        role = Role(name=name)
        db.session.add(role)
        db.session.flush()
    return role


def promote_to_admin(email: str):
    """Returns the promoted user, or None if no account uses that email."""
    user = User.query.filter_by(email=email.strip().lower()).first()
    if not user:
        return None

    admin_role = get_role("ADMIN")
    if admin_role not in user.roles:
        user.roles.append(admin_role)
    db.session.commit()
    return user
