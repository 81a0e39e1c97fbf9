import secrets


ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
SIZE = 12


def nanoid(size: int = SIZE) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(size))
