from .pahe import decrypt_pahe
from .signing import canonical_request, client_token, md5_hex, sign_request
from .text import b64decode, b64encode, decode_redirect_payload, rot13

__all__ = [
    "b64decode",
    "b64encode",
    "canonical_request",
    "client_token",
    "decode_redirect_payload",
    "decrypt_pahe",
    "md5_hex",
    "rot13",
    "sign_request",
]
