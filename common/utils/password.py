"""
Password rules applied at signup.

Example:
    is_valid, errors = validate_password(body.password)
    if not is_valid:
        raise ValidationException("Password too weak", errors=errors)
"""

import re
from typing import List, Tuple, Optional

COMMON_PASSWORDS = frozenset(
    {
        "123456",
        "12345678",
        "123456789",
        "password",
        "password1",
        "password123",
        "qwerty",
        "111111",
        "abc123",
        "letmein",
        "welcome",
        "admin",
        "iloveyou",
        "contractor",
        "roofing123",
    }
)


def is_common_password(password: str, common: Optional[frozenset] = None) -> bool:
    """True if the password appears in the common-password list."""
    return password.lower() in (common or COMMON_PASSWORDS)


def validate_password(
    password: str,
    min_length: int = 8,
    max_length: int = 128,
    require_uppercase: bool = True,
    require_lowercase: bool = True,
    require_digit: bool = True,
    require_special: bool = False,
    special_chars: str = r"!@#$%^&*(),.?\":{}|<>",
) -> Tuple[bool, List[str]]:
    """
    Validate password strength.

    Returns:
        (is_valid, errors) where errors are user-facing messages
    """
    errors: List[str] = []

    if len(password) < min_length:
        errors.append(f"Password must be at least {min_length} characters")

    if len(password) > max_length:
        errors.append(f"Password must be no more than {max_length} characters")

    if require_uppercase and not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")

    if require_lowercase and not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")

    if require_digit and not re.search(r"\d", password):
        errors.append("Password must contain at least one digit")

    if require_special and not re.search(f"[{re.escape(special_chars)}]", password):
        errors.append("Password must contain at least one special character")

    if is_common_password(password):
        errors.append("Password is too common")

    return len(errors) == 0, errors
