import secrets


# Stored passwords are plaintext; only the comparison is hardened.
def verify_password(raw_password: str, stored_password: str) -> bool:
    return secrets.compare_digest(str(raw_password).encode('utf-8'), str(stored_password).encode('utf-8'))
