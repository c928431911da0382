from .tokens import decrypt_token, encrypt_token

__all__ = ["decrypt_token", "encrypt_token"]
