"""
Codec chain for session tokens and payloads.

A SecureCodec authenticates and encrypts a value bound to a name, using
Fernet (AES-128-CBC with HMAC-SHA256) from the cryptography package. The
Fernet key is derived with HKDF from a key pair: the hash key is the input
key material and the optional block key is the salt.

Codecs are used as an ordered chain to support key rotation: the newest
key pair comes first, encode_multi always encodes with the first codec, and
decode_multi tries each codec in order until one succeeds.
"""

import base64
import binascii
import json
import logging
from datetime import datetime
from typing import Any, Optional, Sequence

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from mongosession.errors.exceptions import CodecError

logger = logging.getLogger(__name__)


# Maximum token age accepted by decode, in seconds. Zero disables the check.
DEFAULT_CODEC_MAX_AGE = 86400 * 30

_HKDF_INFO = b"mongosession.codec"

# Separates the bound name from the serialized value inside the plaintext
_NAME_SEPARATOR = b"|"


class JSONSerializer:
    """
    JSON serializer that preserves a few non-JSON types.

    Datetimes, bytes and tuples are wrapped in single-key tagged objects
    so they survive a round trip. A user mapping whose only key starts
    with a space is stored as a ``[key, value]`` pair under the escape tag,
    so it never reads back as a tagged value. Mapping keys must be strings.
    """

    TAG_DATETIME = " d"
    TAG_BYTES = " b"
    TAG_TUPLE = " t"
    TAG_MAPPING = " m"

    def dumps(self, value: Any) -> bytes:
        return json.dumps(self._tag(value), separators=(",", ":")).encode("utf-8")

    def loads(self, data: bytes) -> Any:
        return json.loads(data.decode("utf-8"), object_hook=self._untag)

    def _tag(self, value: Any) -> Any:
        if isinstance(value, dict):
            for key in value:
                if not isinstance(key, str):
                    raise TypeError(f"mapping keys must be strings, got {type(key).__name__}")
            if len(value) == 1:
                key, item = next(iter(value.items()))
                if key.startswith(" "):
                    return {self.TAG_MAPPING: [key, self._tag(item)]}
            return {key: self._tag(item) for key, item in value.items()}
        if isinstance(value, tuple):
            return {self.TAG_TUPLE: [self._tag(item) for item in value]}
        if isinstance(value, list):
            return [self._tag(item) for item in value]
        if isinstance(value, datetime):
            return {self.TAG_DATETIME: value.isoformat()}
        if isinstance(value, (bytes, bytearray)):
            return {self.TAG_BYTES: base64.b64encode(bytes(value)).decode("ascii")}
        return value

    def _untag(self, obj: dict[str, Any]) -> Any:
        if len(obj) != 1:
            return obj
        key, value = next(iter(obj.items()))
        if key == self.TAG_DATETIME:
            return datetime.fromisoformat(value)
        if key == self.TAG_BYTES:
            return base64.b64decode(value)
        if key == self.TAG_TUPLE:
            return tuple(value)
        if key == self.TAG_MAPPING:
            escaped_key, item = value
            return {escaped_key: item}
        return obj


class SecureCodec:
    """
    Authenticate+encrypt capability derived from one key pair.

    Example:
        codec = SecureCodec(b"hash-key", b"block-key")
        token = codec.encode("session-key", "65f1c0ffee...")
        codec.decode("session-key", token)
    """

    def __init__(
        self,
        hash_key: bytes,
        block_key: Optional[bytes] = None,
        max_age: int = DEFAULT_CODEC_MAX_AGE,
        serializer: Optional[JSONSerializer] = None
    ):
        """
        Initialize the codec.

        Args:
            hash_key: Secret key material, required
            block_key: Optional second key, used as the HKDF salt
            max_age: Maximum token age in seconds accepted by decode,
                zero to accept tokens of any age
            serializer: Value serializer, JSONSerializer by default

        Raises:
            ValueError: If hash_key is empty
        """
        if not hash_key:
            raise ValueError("hash key is not set")

        kdf = HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=block_key or None,
            info=_HKDF_INFO,
        )
        self._fernet = Fernet(base64.urlsafe_b64encode(kdf.derive(hash_key)))
        self.max_age = max_age
        self.serializer = serializer or JSONSerializer()

    def encode(self, name: str, value: Any) -> str:
        """
        Serialize, encrypt and authenticate value bound to name.

        Returns:
            An unpadded URL-safe base64 token

        Raises:
            CodecError: If the value cannot be serialized
        """
        try:
            serialized = self.serializer.dumps(value)
        except (TypeError, ValueError) as e:
            raise CodecError(f"value could not be serialized: {e}") from e

        plaintext = name.encode("utf-8") + _NAME_SEPARATOR + serialized
        token = self._fernet.encrypt(plaintext).decode("ascii")
        return token.rstrip("=")

    def decode(self, name: str, token: str) -> Any:
        """
        Verify, decrypt and deserialize a token produced by encode.

        Raises:
            CodecError: If the token is malformed, fails authentication,
                has expired, was issued for another name, or holds a value
                that cannot be deserialized
        """
        if not token:
            raise CodecError("the value is empty")

        padded = token + "=" * (-len(token) % 4)
        try:
            plaintext = self._fernet.decrypt(
                padded.encode("ascii"),
                ttl=self.max_age or None,
            )
        except (InvalidToken, UnicodeEncodeError, binascii.Error) as e:
            raise CodecError("the value is not valid") from e

        prefix = name.encode("utf-8") + _NAME_SEPARATOR
        if not plaintext.startswith(prefix):
            raise CodecError("the value was not issued for this name")

        try:
            return self.serializer.loads(plaintext[len(prefix):])
        except (TypeError, ValueError) as e:
            raise CodecError(f"value could not be deserialized: {e}") from e


def codecs_from_pairs(*key_pairs: Optional[bytes], max_age: int = DEFAULT_CODEC_MAX_AGE) -> list[SecureCodec]:
    """
    Build a codec chain from alternating hash and block keys.

    A trailing hash key without a block key is allowed, and a block key may
    be None or empty.

    Example:
        codecs_from_pairs(new_hash, new_block, old_hash, old_block)
    """
    codecs = []
    for i in range(0, len(key_pairs), 2):
        hash_key = key_pairs[i]
        block_key = key_pairs[i + 1] if i + 1 < len(key_pairs) else None
        codecs.append(SecureCodec(hash_key, block_key, max_age=max_age))
    return codecs


def encode_multi(name: str, value: Any, codecs: Sequence[SecureCodec]) -> str:
    """
    Encode value with the first codec of the chain.

    Raises:
        CodecError: If the chain is empty or encoding fails
    """
    if not codecs:
        raise CodecError("no codecs were provided")
    return codecs[0].encode(name, value)


def decode_multi(name: str, token: str, codecs: Sequence[SecureCodec]) -> Any:
    """
    Decode token with the first codec of the chain that accepts it.

    Raises:
        CodecError: If the chain is empty or no codec accepts the token;
            the per-codec failures are available on ``errors``
    """
    if not codecs:
        raise CodecError("no codecs were provided")

    errors: list[CodecError] = []
    for codec in codecs:
        try:
            return codec.decode(name, token)
        except CodecError as e:
            errors.append(e)

    logger.debug(
        "Token rejected by every codec",
        extra={"extra_data": {"name": name, "codecs_tried": len(codecs)}}
    )
    raise CodecError(
        "; ".join(e.message for e in errors),
        errors=errors,
    )
