"""NodeTypeCatalog — read-only, local-first n8n node-type lookup.

The catalog is the validator's only source of truth about node types:
property schemas, declared typeVersions, and the capability flags used by
the structural checks (trigger, webhook, tool, agent).

Design constraints:
- Read-only. Nothing in the validation / diff core ever mutates it.
- Injected, never a module-level singleton. Tests build fixture catalogs with
  NodeTypeCatalog.from_descriptors().
- One snapshot per instance: every lookup made during a validation call
  observes the same data.
"""

from __future__ import annotations

import difflib
import hashlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from n8n_dev_agent.config import DEFAULT_CATALOG_META_PATH, DEFAULT_CATALOG_PATH

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Type identifier prefixes
# ---------------------------------------------------------------------------

BASE_PREFIX = "n8n-nodes-base."
LANGCHAIN_PREFIX = "@n8n/n8n-nodes-langchain."

# Short forms used by the documentation database. The runtime only accepts the
# full package prefix, so the validator reports these as errors even though the
# catalog resolves them.
SHORT_PREFIXES: dict[str, str] = {
    "nodes-base.": BASE_PREFIX,
    "nodes-langchain.": LANGCHAIN_PREFIX,
    "n8n-nodes-langchain.": LANGCHAIN_PREFIX,
}


def full_type_name(node_type: str) -> str:
    """Return node_type with any short package prefix expanded."""
    for short, full in SHORT_PREFIXES.items():
        if node_type.startswith(short):
            return full + node_type[len(short):]
    return node_type


# ---------------------------------------------------------------------------
# Descriptor
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NodeTypeDescriptor:
    """Schema + capability flags for one node type.

    versions:   declared typeVersion set (ascending). max_version is derived.
    outputs:    number of `main` outputs. If/Switch declare more than one, which
                makes main[1] an ordinary branch rather than the error output.
    properties: n8n property definitions (name, type, required, default,
                options, displayOptions).
    is_external: node talks to an external service (strict-profile error
                handling hint).
    """

    node_type: str
    display_name: str = ""
    versions: tuple[float, ...] = ()
    is_trigger: bool = False
    is_webhook: bool = False
    is_tool: bool = False
    is_agent: bool = False
    is_external: bool = False
    outputs: int = 1
    properties: tuple[dict[str, Any], ...] = ()
    credentials: tuple[str, ...] = ()

    @property
    def max_version(self) -> float | None:
        return max(self.versions) if self.versions else None

    @property
    def is_versioned(self) -> bool:
        return bool(self.versions)

    def get_property(self, name: str) -> dict[str, Any] | None:
        for prop in self.properties:
            if prop.get("name") == name:
                return prop
        return None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> NodeTypeDescriptor:
        node_type = raw.get("node_type") or raw.get("nodeType") or raw.get("name") or ""
        versions = raw.get("versions")
        if versions is None:
            version = raw.get("version")
            if isinstance(version, list):
                versions = version
            elif isinstance(version, (int, float)) and not isinstance(version, bool):
                versions = [version]
            else:
                versions = []
        return cls(
            node_type=node_type,
            display_name=raw.get("display_name") or raw.get("displayName") or "",
            versions=tuple(sorted(float(v) for v in versions)),
            is_trigger=bool(raw.get("is_trigger", False)),
            is_webhook=bool(raw.get("is_webhook", False)),
            is_tool=bool(raw.get("is_tool", False)),
            is_agent=bool(raw.get("is_agent", False)),
            is_external=bool(raw.get("is_external", False)),
            outputs=int(raw.get("outputs", 1)),
            properties=tuple(raw.get("properties") or ()),
            credentials=tuple(raw.get("credentials") or ()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodeType": self.node_type,
            "displayName": self.display_name,
            "versions": list(self.versions),
            "maxVersion": self.max_version,
            "isTrigger": self.is_trigger,
            "isWebhook": self.is_webhook,
            "isTool": self.is_tool,
            "isAgent": self.is_agent,
            "outputs": self.outputs,
            "credentials": list(self.credentials),
            "properties": list(self.properties),
        }


# ---------------------------------------------------------------------------
# NodeTypeCatalog
# ---------------------------------------------------------------------------


class NodeTypeCatalog:
    """Local node-type lookup backed by knowledge/n8n_nodes.snapshot.json.

    Lifecycle:
      - Snapshot is loaded lazily on first lookup.
      - Fingerprint is validated at load time; a mismatch triggers a warning but
        does not block — the on-disk bytes are used as-is.
      - A snapshot that fails to parse leaves the catalog empty (logged), so
        every type resolves as unknown instead of crashing the validator.
    """

    def __init__(
        self,
        snapshot_path: Path = DEFAULT_CATALOG_PATH,
        meta_path: Path = DEFAULT_CATALOG_META_PATH,
    ) -> None:
        self._snapshot_path = Path(snapshot_path)
        self._meta_path = Path(meta_path)
        self._index: dict[str, NodeTypeDescriptor] = {}
        # lowered node_type → canonical node_type (case-insensitive fallback)
        self._lower_index: dict[str, str] = {}
        self._loaded = False

    @classmethod
    def from_descriptors(cls, descriptors: Iterable[NodeTypeDescriptor | dict[str, Any]]) -> NodeTypeCatalog:
        """Build an in-memory catalog (no snapshot file involved)."""
        catalog = cls.__new__(cls)
        catalog._snapshot_path = None
        catalog._meta_path = None
        catalog._index = {}
        catalog._lower_index = {}
        catalog._loaded = True
        for desc in descriptors:
            if isinstance(desc, dict):
                desc = NodeTypeDescriptor.from_dict(desc)
            catalog._add(desc)
        return catalog

    @classmethod
    def from_settings(cls, settings) -> NodeTypeCatalog:
        return cls(snapshot_path=settings.catalog_path, meta_path=settings.catalog_meta_path)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _add(self, desc: NodeTypeDescriptor) -> None:
        if not desc.node_type:
            return
        self._index[desc.node_type] = desc
        self._lower_index[desc.node_type.lower()] = desc.node_type

    def _load(self) -> None:
        """Load snapshot into memory index. Idempotent; called lazily."""
        if self._loaded:
            return
        self._loaded = True

        if not self._snapshot_path.exists():
            logger.warning("[NodeTypeCatalog] Snapshot not found at %s", self._snapshot_path)
            return

        try:
            raw_bytes = self._snapshot_path.read_bytes()

            # Fingerprint check, warn only
            if self._meta_path is not None and self._meta_path.exists():
                meta = json.loads(self._meta_path.read_text(encoding="utf-8"))
                stored = meta.get("fingerprint") or meta.get("sha256")
                if stored:
                    actual = hashlib.sha256(raw_bytes).hexdigest()
                    if actual != stored:
                        logger.warning(
                            "[NodeTypeCatalog] Fingerprint mismatch — snapshot may be "
                            "externally modified. Proceeding with on-disk content."
                        )

            entries: list[dict] = json.loads(raw_bytes.decode("utf-8"))
            for entry in entries:
                self._add(NodeTypeDescriptor.from_dict(entry))

            logger.info("[NodeTypeCatalog] Loaded %d node types from snapshot", len(self._index))
        except Exception:
            logger.exception("[NodeTypeCatalog] Failed to load snapshot")

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def lookup(self, node_type: str) -> NodeTypeDescriptor | None:
        """Return the descriptor for node_type, or None.

        Exact match first, then short-prefix expansion, then case-insensitive.
        """
        if not isinstance(node_type, str) or not node_type:
            return None
        self._load()
        desc = self._index.get(node_type)
        if desc is not None:
            return desc
        expanded = full_type_name(node_type)
        desc = self._index.get(expanded)
        if desc is not None:
            return desc
        canonical = self._lower_index.get(expanded.lower())
        if canonical is not None:
            logger.debug("[NodeTypeCatalog] Case-insensitive match: '%s' → '%s'", node_type, canonical)
            return self._index[canonical]
        return None

    def is_tool_capable(self, node_type: str) -> bool:
        desc = self.lookup(node_type)
        return desc is not None and desc.is_tool

    def is_trigger_capable(self, node_type: str) -> bool:
        desc = self.lookup(node_type)
        return desc is not None and (desc.is_trigger or desc.is_webhook)

    def is_agent_capable(self, node_type: str) -> bool:
        desc = self.lookup(node_type)
        return desc is not None and desc.is_agent

    def max_version(self, node_type: str) -> float | None:
        desc = self.lookup(node_type)
        return desc.max_version if desc is not None else None

    def suggest(self, node_type: str, limit: int = 3) -> list[str]:
        """Return up to *limit* known node types that look like *node_type*."""
        if not isinstance(node_type, str) or not node_type:
            return []
        self._load()
        wanted = full_type_name(node_type).lower()
        wanted_short = wanted.rsplit(".", 1)[-1]

        by_short: dict[str, str] = {}
        for canonical in self._index:
            by_short.setdefault(canonical.rsplit(".", 1)[-1].lower(), canonical)

        matches = difflib.get_close_matches(wanted, list(self._lower_index), n=limit, cutoff=0.8)
        suggestions = [self._lower_index[m] for m in matches]
        for m in difflib.get_close_matches(wanted_short, list(by_short), n=limit, cutoff=0.6):
            canonical = by_short[m]
            if canonical not in suggestions:
                suggestions.append(canonical)
        return suggestions[:limit]

    def node_types(self) -> list[str]:
        self._load()
        return sorted(self._index)

    def __contains__(self, node_type: object) -> bool:
        return isinstance(node_type, str) and self.lookup(node_type) is not None

    def __len__(self) -> int:
        self._load()
        return len(self._index)
