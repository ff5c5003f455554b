"""
Entitlement resolver (internal library).
Decision (decide_access, pure) and lookup (resolve_access, reads the ledger) are
separate; the contract between them is AccessContext.
"""
from marketplace.entitlements.access import build_access_context, decide_access, resolve_access
from marketplace.entitlements.models import AccessContext, AccessLevel, Role, Viewer

__all__ = [
    "AccessContext",
    "AccessLevel",
    "Role",
    "Viewer",
    "build_access_context",
    "decide_access",
    "resolve_access",
]
