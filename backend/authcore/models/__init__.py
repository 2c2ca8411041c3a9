from authcore.models.user import PendingSecret, SecretPurpose, User

__all__ = [
    "PendingSecret",
    "SecretPurpose",
    "User",
]
