from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

import structlog
from cryptography.fernet import Fernet, InvalidToken

from .errors import CredentialError, CredentialStoreNotFoundError, KeyNotFoundError
from .services import ServiceConfig

log = structlog.get_logger()


class CredentialProvider(Protocol):
    def get(self, key_name: str) -> str:
        """Return the secret for ``key_name``.

        Raises KeyNotFoundError or CredentialStoreNotFoundError.
        """
        ...


class EncryptedCredentialStore:
    """
    Encrypted-at-rest key store.

    Stores ONE blob at `path`: Fernet-encrypted JSON object mapping logical
    key names (e.g. "anthropic") to secrets.
    """

    def __init__(self, path: str | Path, fernet_key: str | None):
        self.path = Path(path)
        self.fernet_key = fernet_key

    def _fernet(self) -> Fernet:
        if not self.fernet_key:
            raise CredentialError(
                f"LLM_CORE_FERNET_KEY is required to read the credential store at {self.path}."
            )
        try:
            return Fernet(self.fernet_key.encode("utf-8"))
        except ValueError as e:
            raise CredentialError(
                f"LLM_CORE_FERNET_KEY is not a valid Fernet key (needed for {self.path}): {e}"
            ) from e

    def exists(self) -> bool:
        return self.path.exists()

    def _read(self) -> dict[str, str]:
        if not self.exists():
            raise CredentialStoreNotFoundError(self.path)
        try:
            raw = self._fernet().decrypt(self.path.read_bytes())
        except InvalidToken as e:
            raise CredentialError(
                f"Failed to decrypt {self.path} (wrong LLM_CORE_FERNET_KEY or corrupted file)."
            ) from e
        try:
            payload = json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise CredentialError(f"Credential payload in {self.path} is not valid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise CredentialError(f"Credential payload in {self.path} must be a JSON object.")
        return {str(k): str(v) for k, v in payload.items()}

    def keys(self) -> list[str]:
        return sorted(self._read())

    def get(self, key_name: str) -> str:
        secrets = self._read()
        if key_name not in secrets:
            raise KeyNotFoundError(key_name, sorted(secrets))
        return secrets[key_name]

    def put(self, key_name: str, secret: str) -> None:
        secrets = self._read() if self.exists() else {}
        secrets[key_name] = secret
        token = self._fernet().encrypt(json.dumps(secrets).encode("utf-8"))
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(token)
        log.info("credential_stored", key_name=key_name, path=str(self.path))


def load_api_key(service: ServiceConfig, provider: CredentialProvider) -> str | None:
    """
    Return the API key for `service`, or None when the service needs none.

    Lookup failures are re-raised as CredentialError with remediation text.
    """
    if not service.key_required:
        return None

    if not service.key:
        raise CredentialError(
            f'Service "{service.name}" requires an API key but no "key" field is configured. '
            'Add a "key" field pointing to a credential key name in services.toml.'
        )

    try:
        return provider.get(service.key)
    except KeyNotFoundError as e:
        raise CredentialError(
            f'API key "{e.key_name}" not found. '
            f'Available keys: [{", ".join(e.available)}]. '
            "Add it to the credential store (llm-core --set-key NAME)."
        ) from e
    except CredentialStoreNotFoundError as e:
        raise CredentialError(
            f"Credential store not found at {e.path}. "
            "Create it with llm-core --set-key NAME (reads the secret from stdin) "
            "or point LLM_CORE_CREDENTIALS_PATH at an existing store."
        ) from e
