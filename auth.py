import logging
import re

from werkzeug.security import check_password_hash, generate_password_hash

import habits_repo
from errors import AuthenticationError, ValidationError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class AuthManager:
    @staticmethod
    def validate_email(email):
        """Validate email format"""
        if not isinstance(email, str):
            return False
        pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9-]+(\.[a-zA-Z0-9-]+)*\.[a-zA-Z]{2,}$'
        return bool(re.match(pattern, email))

    @staticmethod
    def validate_password(password):
        """Validate password strength"""
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        return True, "Password is valid"

    @staticmethod
    def sign_up(engine, email, password):
        """Create a user account and return its public id."""
        errors = []
        if not AuthManager.validate_email(email):
            errors.append("Invalid email format")
        password_valid, msg = AuthManager.validate_password(password)
        if not password_valid:
            errors.append(msg)
        if errors:
            raise ValidationError(", ".join(errors))

        user = habits_repo.create_user(engine, email, generate_password_hash(password))
        logger.info("[sign_up] new account %s", user["public_id"])
        return user["public_id"]

    @staticmethod
    def login(engine, email, password):
        """Check credentials and return the user's public id."""
        user = habits_repo.find_user_by_email(engine, email) if isinstance(email, str) else None
        if not user or not isinstance(password, str) \
                or not check_password_hash(user["hashed_password"], password):
            raise AuthenticationError("Invalid email or password")
        return user["public_id"]
