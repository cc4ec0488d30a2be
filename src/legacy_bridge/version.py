"""Bridge version and build id for the status snapshot."""

from __future__ import annotations

from pathlib import Path

from legacy_bridge import __version__
from legacy_bridge.const import BRIDGE_COMMIT
from legacy_bridge.structs import BridgeVersion

_HASH_FILE = Path(__file__).resolve().parent / ".hash"


async def get_bridge_version(commit: str | None = None) -> BridgeVersion:
    """Package version plus commit hash from ``commit``, BRIDGE_COMMIT, or a bundled .hash file."""
    commit_hash = commit or BRIDGE_COMMIT
    if not commit_hash and _HASH_FILE.is_file():
        commit_hash = _HASH_FILE.read_text().strip()
    return BridgeVersion(version=__version__, commit_hash=commit_hash or "unknown")
