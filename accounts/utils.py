"""Normalization of user identity fields into comparison keys."""


def normalize_username(username: str | None) -> str | None:
    """Lowercase a username. Empty values pass through unchanged."""
    if not username:
        return username
    return username.lower()


def normalize_email(email: str | None) -> str | None:
    """Canonical form of an email address.

    Dots are removed from the local part and anything from the first "+" on
    is dropped; both parts are lowercased. Empty values pass through unchanged.
    """
    if not email:
        return email
    local_part, separator, domain = email.partition("@")
    local_part = local_part.replace(".", "").split("+")[0].lower()
    return f"{local_part}{separator}{domain.lower()}"
