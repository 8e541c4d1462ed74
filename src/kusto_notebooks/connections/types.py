"""Connection identity.

A connection is identified by its canonical serialization: the info's fields as JSON
with sorted keys, base64 encoded. That token is the key for the persisted connection
set, the schema cache and the kernel controllers, so it must not depend on the order
in which fields were produced.
"""
from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlparse

from kusto_notebooks.exceptions.errors import MalformedConnectionToken

AZ_AUTH = "azAuth"
APP_INSIGHTS = "appInsights"


@dataclass(frozen=True)
class AzureAuthConnectionInfo:
    id: str
    display_name: str
    cluster: str
    database: Optional[str] = None
    type: str = AZ_AUTH

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "displayName": self.display_name,
            "type": self.type,
            "cluster": self.cluster,
        }
        if self.database is not None:
            out["database"] = self.database
        return out


@dataclass(frozen=True)
class AppInsightsConnectionInfo:
    id: str
    display_name: str
    type: str = APP_INSIGHTS

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "displayName": self.display_name, "type": self.type}


ConnectionInfo = Union[AzureAuthConnectionInfo, AppInsightsConnectionInfo]


@dataclass(frozen=True)
class DisplayInfo:
    label: str
    description: str


def connection_info_from_dict(raw: Mapping[str, Any]) -> ConnectionInfo:
    """Build a ConnectionInfo from its serialized mapping.

    Raises ValueError when the mapping is not a known, well-formed variant.
    """
    kind = raw.get("type")
    cid = raw.get("id")
    name = raw.get("displayName")
    if not isinstance(cid, str) or not isinstance(name, str):
        raise ValueError("Connection info requires string 'id' and 'displayName'")
    if kind == AZ_AUTH:
        cluster = raw.get("cluster")
        database = raw.get("database")
        if not isinstance(cluster, str):
            raise ValueError("azAuth connection requires a string 'cluster'")
        if database is not None and not isinstance(database, str):
            raise ValueError("azAuth 'database' must be a string")
        return AzureAuthConnectionInfo(id=cid, display_name=name, cluster=cluster, database=database)
    if kind == APP_INSIGHTS:
        return AppInsightsConnectionInfo(id=cid, display_name=name)
    raise ValueError(f"Unknown connection type: {kind!r}")


def _canonical_json(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _to_token(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def encode_connection_info(info: ConnectionInfo) -> str:
    return _to_token(_canonical_json(info.to_dict()))


def decode_connection_info(token: str) -> ConnectionInfo:
    try:
        text = base64.b64decode(token.encode("ascii"), validate=True).decode("utf-8")
        payload = json.loads(text)
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise MalformedConnectionToken(f"Connection token is not valid base64 JSON: {token[:40]}") from e
    if not isinstance(payload, dict):
        raise MalformedConnectionToken("Connection token does not hold an object")

    try:
        info = connection_info_from_dict(payload)
    except ValueError as e:
        raise MalformedConnectionToken(str(e)) from e

    # Tokens from a non-canonical encoder are accepted only if nothing is lost.
    if encode_connection_info(info) != _to_token(_canonical_json(payload)):
        raise MalformedConnectionToken("Connection token does not round-trip to its canonical form")
    return info


def same_connection(a: ConnectionInfo, b: ConnectionInfo) -> bool:
    return encode_connection_info(a) == encode_connection_info(b)


def get_cluster_display_name(cluster: str) -> str:
    """``https://help.kusto.windows.net`` -> ``help``."""
    c = (cluster or "").strip()
    host = urlparse(c).hostname if "://" in c else c.split("/")[0]
    host = host or c
    return host.split(".")[0]


def get_display_info(info: ConnectionInfo) -> DisplayInfo:
    name = info.display_name or info.id
    if isinstance(info, AppInsightsConnectionInfo):
        return DisplayInfo(label=f"Kusto {name}", description="")
    database = f"({info.database})" if info.database else ""
    return DisplayInfo(label=f"Kusto {name} {database}".rstrip(), description=info.cluster)
