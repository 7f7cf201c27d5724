import os

from flask import jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# ======================
# Database
# ======================
db = SQLAlchemy()
migrate = Migrate()

# ======================
# Login Manager
# ======================
login_manager = LoginManager()
login_manager.login_view = "auth.login"


@login_manager.user_loader
def load_user(user_id):
    from hmjaya.models import User

    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


@login_manager.unauthorized_handler
def unauthorized():
    # JSON clients (the /api surface) get a 401 instead of a redirect
    return jsonify({"success": False, "error": "Unauthorized"}), 401


# ======================
# Rate Limiter
# ======================
# Prefer Redis in production, fall back to in-memory locally.
_limiter_storage = (
    os.getenv("LIMITER_STORAGE_URL")
    or os.getenv("REDIS_URL")
    or "memory://"
)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],              # No global limits by default
    storage_uri=_limiter_storage,
)
