"""Node-type knowledge layer — read-only catalog snapshot.

Public surface:
    NodeTypeCatalog    — loads knowledge/n8n_nodes.snapshot.json (lazy, fingerprinted).
    NodeTypeDescriptor — schema + capability flags for one node type.
    full_type_name     — expand short package prefixes (nodes-base.x → n8n-nodes-base.x).
"""

from n8n_dev_agent.knowledge.catalog import (
    BASE_PREFIX,
    LANGCHAIN_PREFIX,
    SHORT_PREFIXES,
    NodeTypeCatalog,
    NodeTypeDescriptor,
    full_type_name,
)

__all__ = [
    "BASE_PREFIX",
    "LANGCHAIN_PREFIX",
    "SHORT_PREFIXES",
    "NodeTypeCatalog",
    "NodeTypeDescriptor",
    "full_type_name",
]
