import logging

from db.database import Database
from errors import AuthenticationError
from sessions.registry import UserIdentity

logger = logging.getLogger(__name__)


def authenticate(db: Database, user_id: str | None) -> UserIdentity:
    """Resolve the user id claimed at connection time.

    Only existence in the users table is checked; tokens are handled upstream.
    """
    if not user_id:
        raise AuthenticationError("Error de autenticacion: falta userId")

    user = db.get_user(user_id)
    if user is None:
        logger.warning("Conexion rechazada: usuario %s no existe", user_id)
        raise AuthenticationError("Error de autenticacion: usuario no encontrado")

    return UserIdentity(id=user["id"], email=user["email"], name=user["name"])
