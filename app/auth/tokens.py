"""Source token registries."""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
import orjson
import structlog
from ..config import AuthMode, ConfigurationError
from ..services.crypto import hash_token, hashes_match

log = structlog.get_logger()


class TokenRegistry(ABC):
    """
    Registry of hashed source tokens.

    Tokens are hashed as they are added so that plain text tokens do not
    float around in memory long-term. Registries are populated once at
    startup and only read afterwards.
    """

    mode: AuthMode

    @abstractmethod
    def __len__(self) -> int:
        pass


class SourceTokenRegistry(TokenRegistry):
    """Maps each event source to its hashed token, salted with the source."""

    mode = AuthMode.PER_SOURCE

    def __init__(self):
        self._hashed_tokens_by_source: dict[str, str] = {}

    def add_token(self, source: str, token: str):
        """
        Register the token for a source, replacing any earlier token.

        Args:
            source: Event source the token is valid for
            token: Plain text token
        """
        self._hashed_tokens_by_source[source] = hash_token(source, token)

    def lookup(self, source: str) -> str | None:
        """Return the hashed token registered for a source, if any."""
        return self._hashed_tokens_by_source.get(source)

    def __len__(self) -> int:
        return len(self._hashed_tokens_by_source)


class FlatTokenRegistry(TokenRegistry):
    """
    Unsalted allow-list of hashed tokens.

    Legacy mode: a token registered here is accepted for events from any
    source.
    """

    mode = AuthMode.FLAT

    def __init__(self):
        self._hashed_tokens: list[str] = []

    def add_token(self, token: str):
        """Register a token."""
        self._hashed_tokens.append(hash_token("", token))

    def contains(self, hashed_token: str) -> bool:
        """Check whether a hashed token is registered."""
        return any(hashes_match(hashed_token, known) for known in self._hashed_tokens)

    def __len__(self) -> int:
        return len(self._hashed_tokens)


def load_token_registry(path: Path | str, mode: AuthMode = AuthMode.PER_SOURCE) -> TokenRegistry:
    """
    Build a token registry from a JSON token file.

    Per-source mode expects an object mapping sources to tokens. Flat mode
    accepts either a list of tokens or an object whose values are tokens.

    Args:
        path: Path to the token file
        mode: Registry shape to build

    Returns:
        Populated token registry

    Raises:
        ConfigurationError: If the file is missing, unreadable or malformed
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"file {path} does not exist")
    try:
        raw = orjson.loads(path.read_bytes())
    except OSError as e:
        raise ConfigurationError(f"error reading token file {path}: {e}") from e
    except orjson.JSONDecodeError as e:
        raise ConfigurationError(f"error parsing token file {path}: {e}") from e

    if mode == AuthMode.PER_SOURCE:
        registry = _build_source_registry(path, raw)
    else:
        registry = _build_flat_registry(path, raw)

    log.info("source_tokens.loaded", mode=mode.value, count=len(registry))
    return registry


def _build_source_registry(path: Path, raw: Any) -> SourceTokenRegistry:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"token file {path} must contain an object mapping sources to tokens")
    registry = SourceTokenRegistry()
    for source, token in raw.items():
        if not isinstance(token, str) or not token:
            raise ConfigurationError(f"token for source {source!r} in {path} must be a non-empty string")
        registry.add_token(source, token)
    return registry


def _build_flat_registry(path: Path, raw: Any) -> FlatTokenRegistry:
    if isinstance(raw, dict):
        tokens = list(raw.values())
    elif isinstance(raw, list):
        tokens = raw
    else:
        raise ConfigurationError(f"token file {path} must contain a list or object of tokens")
    registry = FlatTokenRegistry()
    for token in tokens:
        if not isinstance(token, str) or not token:
            raise ConfigurationError(f"tokens in {path} must be non-empty strings")
        registry.add_token(token)
    return registry
