"""
Fallback list of previously-successful addresses.

The on-disk form is an ordered YAML (or JSON) sequence of address strings,
most recently confirmed first:

    - 192.168.10.116
    - 192.168.1.100
"""
import logging
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

import yaml

from .config import is_valid_address
from .types import FallbackPolicy

logger = logging.getLogger(__name__)


DEFAULT_FALLBACK_CAP = 5


def _normalize(
    addresses: Iterable[object],
    cap: int,
    source: str,
) -> list[str]:
    """Drop malformed entries and duplicates, keep order, apply the cap"""
    result: list[str] = []
    for address in addresses:
        if not is_valid_address(address):
            logger.warning(f"Skipping invalid fallback address {address!r} from {source}")
            continue
        if address in result:
            continue
        result.append(address)  # type: ignore[arg-type]
    return result[:cap]


class FallbackList:
    """
    Ordered, deduplicated, capped history of addresses that answered.

    Example:
        fallback = FallbackList(["192.168.1.100"], cap=5)
        fallback.record_success("192.168.1.108")
        fallback.list()  # ("192.168.1.108", "192.168.1.100")
    """

    def __init__(
        self,
        initial: Iterable[str] = (),
        cap: int = DEFAULT_FALLBACK_CAP,
        policy: FallbackPolicy = "promote",
        path: Optional[Union[str, Path]] = None,
    ) -> None:
        if cap < 1:
            raise ValueError("cap must be at least 1")
        if policy not in ("promote", "keep"):
            raise ValueError(f"Unknown fallback policy: {policy!r}")
        self._cap = cap
        self._policy = policy
        self._path = Path(path) if path is not None else None
        self._addresses = _normalize(initial, cap, "initial addresses")

    @property
    def cap(self) -> int:
        return self._cap

    @property
    def policy(self) -> FallbackPolicy:
        return self._policy

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def list(self) -> tuple[str, ...]:
        """Current addresses, most recently confirmed first"""
        return tuple(self._addresses)

    def record_success(self, address: str) -> bool:
        """
        Record an address that just answered a probe.

        New addresses go to the front. A known address moves to the front
        under the "promote" policy and stays put under "keep". The tail is
        trimmed to the cap.

        Returns:
            True if the list changed
        """
        before = list(self._addresses)

        if address in self._addresses:
            if self._policy == "promote":
                self._addresses.remove(address)
                self._addresses.insert(0, address)
        else:
            self._addresses.insert(0, address)
            del self._addresses[self._cap:]

        changed = self._addresses != before
        if changed:
            logger.debug(f"Fallback list is now {self._addresses}")
            self._persist()
        return changed

    def remove(self, address: str) -> bool:
        """Remove an address. Returns True if it was present."""
        if address not in self._addresses:
            return False
        self._addresses.remove(address)
        self._persist()
        return True

    def clear(self) -> None:
        self._addresses.clear()
        self._persist()

    def _persist(self) -> None:
        """Write a file-bound list back to disk; write failures are logged"""
        if self._path is None:
            return
        try:
            self.save()
        except OSError as e:
            logger.warning(f"Could not save fallback list to {self._path}: {e}")

    def replace(
        self,
        addresses: Iterable[str],
        path: Optional[Union[str, Path]] = None,
    ) -> None:
        """Swap in new contents, optionally binding the list to a file"""
        self._addresses = _normalize(addresses, self._cap, "replacement addresses")
        if path is not None:
            self._path = Path(path)

    def save(self, path: Optional[Union[str, Path]] = None) -> Path:
        """
        Write the list to disk as a YAML sequence.

        Args:
            path: Target file, defaults to the bound path

        Returns:
            The path written
        """
        target = Path(path) if path is not None else self._path
        if target is None:
            raise ValueError("No path given and fallback list is not bound to a file")

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(
            yaml.safe_dump(list(self._addresses), default_flow_style=False),
            encoding="utf-8",
        )
        logger.debug(f"Saved {len(self._addresses)} fallback addresses to {target}")
        return target

    @classmethod
    def load(
        cls,
        path: Union[str, Path],
        cap: int = DEFAULT_FALLBACK_CAP,
        policy: FallbackPolicy = "promote",
        default: Iterable[str] = (),
    ) -> "FallbackList":
        """
        Load a fallback list bound to a file.

        A missing or unreadable file yields a list seeded from `default`;
        invalid entries are skipped with a warning.
        """
        target = Path(path)
        if not target.exists():
            logger.info(f"Fallback file {target} not found, using defaults")
            return cls(default, cap=cap, policy=policy, path=target)

        try:
            data = yaml.safe_load(target.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not read fallback file {target}: {e}")
            return cls(default, cap=cap, policy=policy, path=target)

        if data is None:
            data = []
        if not isinstance(data, list):
            logger.warning(
                f"Fallback file {target} must contain a sequence, got {type(data).__name__}"
            )
            return cls(default, cap=cap, policy=policy, path=target)

        instance = cls(cap=cap, policy=policy, path=target)
        instance._addresses = _normalize(data, cap, str(target))
        logger.info(f"Loaded {len(instance._addresses)} fallback addresses from {target}")
        return instance

    def __len__(self) -> int:
        return len(self._addresses)

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._addresses))

    def __contains__(self, address: object) -> bool:
        return address in self._addresses

    def __repr__(self) -> str:
        return f"FallbackList({self._addresses!r}, cap={self._cap}, policy={self._policy!r})"
