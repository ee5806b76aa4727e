import secrets
import string

# Uppercase letters and digits without the look-alikes 0/O and 1/I
INVITE_CODE_ALPHABET = "".join(
    c for c in string.ascii_uppercase + string.digits if c not in "0O1I"
)


def generate_invite_code(length: int = 8) -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def normalize_invite_code(code) -> str:
    """Codes are stored upper-case; lookups are case-insensitive."""
    if not isinstance(code, str):
        return ""
    return code.strip().upper()
