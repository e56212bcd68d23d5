# Signature assets
from signdesk.signatures.decode import (
    SignatureDecodeError,
    decode_signature_image,
    signature_bytes,
)
from signdesk.signatures.generator import SignatureGenerator, get_signature_generator

__all__ = [
    "SignatureDecodeError",
    "decode_signature_image",
    "signature_bytes",
    "SignatureGenerator",
    "get_signature_generator",
]
