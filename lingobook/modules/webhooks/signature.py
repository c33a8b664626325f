"""Payment event checksum verification."""

from __future__ import annotations

import hashlib
import hmac
from typing import Any

from lingobook.shared.exceptions import SignatureException

_MISSING = object()


def resolve_property(payload: dict[str, Any], path: str) -> Any:
    """Value at a dotted path, looked up under ``data`` first and then at the root."""
    for root in (payload.get("data"), payload):
        node: Any = root
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                node = _MISSING
                break
            node = node[part]
        if node is not _MISSING:
            return node
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def compute_checksum(payload: dict[str, Any], properties: list[str], timestamp: Any, secret: str) -> str:
    """SHA-256 hex of the property values, then the timestamp, then the secret."""
    material = "".join(_as_text(resolve_property(payload, path)) for path in properties)
    material += _as_text(timestamp) + secret
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


def verify_signature(payload: dict[str, Any], secret: str) -> None:
    signature = payload.get("signature")
    if not isinstance(signature, dict) or not signature.get("checksum"):
        raise SignatureException("Missing event signature")

    properties = signature.get("properties") or []
    if not isinstance(properties, list):
        raise SignatureException("Malformed event signature")

    expected = compute_checksum(payload, [str(path) for path in properties], payload.get("timestamp"), secret)
    if not hmac.compare_digest(expected, str(signature["checksum"]).lower()):
        raise SignatureException("Invalid event signature")
