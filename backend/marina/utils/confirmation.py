import secrets

CONFIRMATION_CODE_BYTES = 4


def generate_confirmation_code() -> str:
    """Eight upper-case hex characters (32 random bits), e.g. ``9F03A1C4``."""
    return secrets.token_hex(CONFIRMATION_CODE_BYTES).upper()


def normalize_confirmation_code(code: str) -> str:
    return code.strip().upper()
