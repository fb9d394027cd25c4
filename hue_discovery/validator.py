"""Decide whether a fetched descriptor belongs to a Hue Bridge.

Everything here is pure text scanning over bytes already fetched by a
strategy. The two fixed formats are the ``/api/0/config`` JSON document and
the UPnP ``description.xml`` device description.
"""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional, Union

from .models import DEFAULT_BRIDGE_NAME

Body = Union[str, bytes]

VENDOR_MARKERS = ("philips hue", "royal philips", "signify", "ipbridge")
MODEL_MARKERS = ("hue", "bsb")

_MODEL_NAME_RE = re.compile(r"<modelName>[^<]*hue bridge", re.IGNORECASE)
_MANUFACTURER_RE = re.compile(
    r"<manufacturer>\s*(?:signify|royal philips)", re.IGNORECASE
)
_SERIAL_RE = re.compile(r"<serialNumber>(.*?)</serialNumber>", re.IGNORECASE | re.DOTALL)
_UDN_RE = re.compile(r"<UDN>\s*uuid:(.*?)</UDN>", re.IGNORECASE | re.DOTALL)
_NAME_RES = (
    re.compile(r"<friendlyName>(.*?)</friendlyName>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<modelDescription>(.*?)</modelDescription>", re.IGNORECASE | re.DOTALL),
)


class ContentKind(str, Enum):
    JSON = "json"
    XML = "xml"


class BridgeIdentity(NamedTuple):
    id: str
    name: str


def _as_text(body: Body) -> Optional[str]:
    if isinstance(body, bytes):
        try:
            return body.decode("utf-8")
        except UnicodeDecodeError:
            return None
    return body


def _load_config(body: Body) -> Optional[Dict[str, Any]]:
    text = _as_text(body)
    if not text or not text.strip():
        return None
    try:
        data = json.loads(text)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _model_is_hue(model_id: Any) -> bool:
    if model_id is None:
        return True
    if not isinstance(model_id, str):
        return False
    lowered = model_id.lower()
    return any(marker in lowered for marker in MODEL_MARKERS)


def _xml_has_markers(xml: str) -> bool:
    lowered = xml.lower()
    if any(marker in lowered for marker in VENDOR_MARKERS):
        return True
    if _MODEL_NAME_RE.search(xml):
        return True
    return bool(_MANUFACTURER_RE.search(xml)) and "hue" in lowered


def is_hue_bridge_descriptor(body: Body, kind: ContentKind) -> bool:
    """Return True if ``body`` looks like a Hue Bridge descriptor."""
    if kind is ContentKind.JSON:
        config = _load_config(body)
        if config is None:
            return False
        bridge_id = config.get("bridgeid")
        return isinstance(bridge_id, str) and bool(bridge_id.strip()) and _model_is_hue(
            config.get("modelid")
        )

    text = _as_text(body)
    return bool(text) and _xml_has_markers(text)


def _first_match(patterns, text: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            value = match.group(1).strip()
            if value:
                return value
    return None


def extract_xml_id(xml: str) -> Optional[str]:
    """Serial number, else the last 12 characters of the UDN uuid."""
    serial = _first_match((_SERIAL_RE,), xml)
    if serial:
        return serial

    match = _UDN_RE.search(xml)
    if match:
        udn = match.group(1).strip()
        if len(udn) >= 12:
            return udn[-12:]
    return None


def extract_xml_name(xml: str) -> Optional[str]:
    return _first_match(_NAME_RES, xml)


def extract_identity(body: Body, kind: ContentKind) -> Optional[BridgeIdentity]:
    """Extract ``(id, name)`` from a validated descriptor, or None if not a bridge."""
    if kind is ContentKind.JSON:
        if not is_hue_bridge_descriptor(body, kind):
            return None
        config = _load_config(body) or {}
        name = config.get("name")
        if not isinstance(name, str) or not name.strip():
            name = DEFAULT_BRIDGE_NAME
        return BridgeIdentity(id=config["bridgeid"].strip(), name=name.strip())

    text = _as_text(body)
    if not text or not _xml_has_markers(text):
        return None

    bridge_id = extract_xml_id(text)
    if not bridge_id:
        return None
    return BridgeIdentity(id=bridge_id, name=extract_xml_name(text) or DEFAULT_BRIDGE_NAME)
