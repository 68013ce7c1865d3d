"""
Credential storage.

Holds the current access token and the cached identity of the signed-in user.
The token and the identity are always written and cleared together, so a
token is never visible without the identity it belongs to.
"""

import json
import logging
import os
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Default storage path
DEFAULT_CREDENTIALS_FILE = Path(__file__).parent.parent / "data" / ".leaseclient_credentials.json"

# Storage keys, kept apart so either can be inspected on its own
TOKEN_KEY = "token"
IDENTITY_KEY = "userInfo"


class Role(str, Enum):
    """Account roles issued by the backend."""
    ADMIN = "admin"
    LANDLORD = "landlord"
    TENANT = "tenant"
    PROPERTY_MANAGER = "property_manager"
    LAW_REVIEWER = "law_reviewer"


@dataclass(frozen=True)
class UserIdentity:
    """Identity of the signed-in user as reported by the backend."""
    id: str
    name: str
    role: Role = Role.TENANT
    email: Optional[str] = None
    is_verified: bool = False
    is_phone_verified: bool = False

    def to_dict(self) -> dict:
        """Serialize using the backend's field names."""
        return {
            "_id": self.id,
            "name": self.name,
            "role": self.role.value,
            "email": self.email,
            "isVerified": self.is_verified,
            "isPhoneVerified": self.is_phone_verified,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UserIdentity":
        """
        Build an identity from a login/OAuth payload or a stored record.

        Raises:
            ValueError: If the role is not one of the known roles
        """
        return cls(
            id=str(data.get("_id") or data.get("id") or ""),
            name=data.get("name") or "",
            role=Role(data.get("role") or Role.TENANT.value),
            email=data.get("email"),
            is_verified=bool(data.get("isVerified", False)),
            is_phone_verified=bool(data.get("isPhoneVerified", False)),
        )

    def with_phone_verified(self) -> "UserIdentity":
        return replace(self, is_phone_verified=True)


@dataclass(frozen=True)
class Credential:
    """Snapshot of the stored credential. Fields are None when absent."""
    access_token: Optional[str] = None
    identity: Optional[UserIdentity] = None

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None


class CredentialStore:
    """
    Interface for credential storage.

    Implementations must never raise from get(); anything unreadable is
    reported as an empty Credential.
    """

    def get(self) -> Credential:
        raise NotImplementedError

    def set(self, token: str, identity: UserIdentity):
        raise NotImplementedError

    def clear(self):
        raise NotImplementedError

    def replace_token(self, token: str):
        """Swap the access token, keeping the current identity."""
        identity = self.get().identity
        if identity is None:
            raise ValueError("Cannot store a token without an identity")
        self.set(token, identity)


class MemoryCredentialStore(CredentialStore):
    """In-process store, lost when the process exits."""

    def __init__(self, token: Optional[str] = None, identity: Optional[UserIdentity] = None):
        self._credential = Credential()
        if token is not None and identity is not None:
            self.set(token, identity)

    def get(self) -> Credential:
        return self._credential

    def set(self, token: str, identity: UserIdentity):
        if not token or identity is None:
            raise ValueError("Token and identity must be set together")
        self._credential = Credential(access_token=token, identity=identity)

    def clear(self):
        self._credential = Credential()


class FileCredentialStore(CredentialStore):
    """
    JSON file backed store.

    Survives restarts the way browser local storage survives a page reload.
    Writes go through a temporary file and an atomic rename.
    """

    def __init__(self, file_path: Optional[Path] = None):
        """
        Initialize the store.

        Args:
            file_path: Path to the credentials file (default: data/.leaseclient_credentials.json)
        """
        self.file_path = Path(file_path) if file_path else DEFAULT_CREDENTIALS_FILE

    def _load_raw(self) -> dict:
        """Load the raw key/value record from file."""
        try:
            with open(self.file_path, "r") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Could not read credentials file: {e}")
            return {}

    def _save_raw(self, data: dict):
        """Write the record atomically."""
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.file_path.with_suffix(self.file_path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self.file_path)

    def get(self) -> Credential:
        data = self._load_raw()
        token = data.get(TOKEN_KEY)
        raw_identity = data.get(IDENTITY_KEY)

        if not token or not raw_identity:
            return Credential()

        try:
            identity = UserIdentity.from_dict(json.loads(raw_identity))
        except (ValueError, TypeError) as e:
            logger.warning(f"Discarding unreadable stored identity: {e}")
            return Credential()

        return Credential(access_token=token, identity=identity)

    def set(self, token: str, identity: UserIdentity):
        if not token or identity is None:
            raise ValueError("Token and identity must be set together")

        self._save_raw({
            TOKEN_KEY: token,
            IDENTITY_KEY: json.dumps(identity.to_dict()),
        })
        logger.debug("Credentials saved")

    def clear(self):
        try:
            self.file_path.unlink()
            logger.info("Stored credentials cleared")
        except FileNotFoundError:
            pass
