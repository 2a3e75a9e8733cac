from typing import Any, Protocol, Optional
import json
import yaml


class Serializer(Protocol):
    """Serialize/deserialize Python values for drivers that store text.

    Implementations should be symmetric: `dump` -> str, `load` <- str.
    """

    def dump(self, value: Any) -> str: ...

    def load(self, data: str) -> Any: ...


class JSONSerializer:
    """Default serializer using JSON. Caller must ensure values are JSON-serializable."""

    def dump(self, value: Any) -> str:
        return json.dumps(value, default=lambda o: o.__dict__)

    def load(self, data: str) -> Any:
        if isinstance(data, (bytes, bytearray)):
            data = data.decode("utf-8")
        return json.loads(data)


class YAMLSerializer:
    """Serializer using YAML (text). Caller must ensure values are YAML-serializable."""

    def dump(self, value: Any) -> str:
        return yaml.safe_dump(value)

    def load(self, data: str) -> Any:
        if isinstance(data, (bytes, bytearray)):
            data = data.decode("utf-8")
        return yaml.safe_load(data)


class EncryptedSerializer:
        """Serializer that encrypts payloads using Fernet (symmetric, authenticated).

        Notes:
        - Fernet is an authenticated symmetric cipher (AES-CBC + HMAC under the
            hood via the cryptography library).
        - `base_serializer` defaults to JSON and is set inside `__init__` to
            avoid mutable default arguments.
        - For passphrase-derived keys PBKDF2 is applied with a random salt per
            payload; the salt and iteration count travel in the frame.
        """

        def __init__(
            self,
            *,
            key: Optional[bytes] = None,
            password: Optional[str] = None,
            iterations: int = 390000,
            base_serializer: Optional[Serializer] = None,
        ) -> None:
            if key is None and password is None:
                raise ValueError("EncryptedSerializer requires either `key` or `password`")
            self._key = key.encode("ascii") if isinstance(key, str) else key
            self._password = password
            self._iterations = iterations
            self.base_serializer = base_serializer or JSONSerializer()

        def _derive_key(self, password: str, salt: bytes, iterations: int) -> bytes:
            import base64
            from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
            from cryptography.hazmat.primitives import hashes

            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=32,
                salt=salt,
                iterations=iterations,
            )
            return base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))

        def dump(self, value: Any) -> str:
            """Serialize and encrypt value, returning a framed JSON string."""
            import os
            import base64
            from cryptography.fernet import Fernet
            inner = self.base_serializer.dump(value).encode("utf-8")

            if self._password is not None:
                salt = os.urandom(16)
                f = Fernet(self._derive_key(self._password, salt, self._iterations))
                frame = {
                    "v": 1,
                    "mode": "password",
                    "kdf": "pbkdf2",
                    "iterations": self._iterations,
                    "salt": base64.urlsafe_b64encode(salt).decode("ascii"),
                    "ct": f.encrypt(inner).decode("ascii"),
                }
                return json.dumps(frame)

            f = Fernet(self._key)
            return json.dumps({"v": 1, "mode": "key", "ct": f.encrypt(inner).decode("ascii")})

        def load(self, data: str) -> Any:
            """Parse the frame, derive the key if needed, decrypt and deserialize."""
            import base64
            from cryptography.fernet import Fernet

            frame = json.loads(data)
            mode = frame.get("mode")
            if mode == "password":
                if self._password is None:
                    raise ValueError("serializer was not configured with a password")
                salt = base64.urlsafe_b64decode(frame["salt"].encode("ascii"))
                iterations = frame.get("iterations", self._iterations)
                f = Fernet(self._derive_key(self._password, salt, iterations))
            elif mode == "key":
                if self._key is None:
                    raise ValueError("serializer was not configured with a key")
                f = Fernet(self._key)
            else:
                raise ValueError("unknown frame format")
            pt = f.decrypt(frame["ct"].encode("ascii"))
            return self.base_serializer.load(pt.decode("utf-8"))


def create_serializer(name: str, *, key: Optional[bytes] = None, password: Optional[str] = None) -> Serializer:
    """Return the serializer registered under `name` (json, yaml or encrypted)."""
    if name == "json":
        return JSONSerializer()
    if name == "yaml":
        return YAMLSerializer()
    if name == "encrypted":
        return EncryptedSerializer(key=key, password=password)
    raise ValueError(f"Unknown serializer: {name!r}")
