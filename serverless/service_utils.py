"""
Service utilities - connection string parsing and access token signing.

The hub service authenticates every REST call and every client connection
with a short-lived HS256 JWT signed with the access key from the connection
string. The audience is the exact URL being called.

Connection string format:
    Endpoint=https://<name>.service.signalr.net;AccessKey=<key>;Version=1.0;
    (optional) Port=<port>;
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from urllib.parse import urlparse

import jwt
import structlog

logger = structlog.get_logger(__name__)

ENDPOINT_PROPERTY = "endpoint"
ACCESS_KEY_PROPERTY = "accesskey"
VERSION_PROPERTY = "version"
PORT_PROPERTY = "port"

PROPERTY_SEPARATOR = ";"
KEY_VALUE_SEPARATOR = "="

DEFAULT_TOKEN_LIFETIME = timedelta(hours=1)
TOKEN_ALGORITHM = "HS256"


class ConfigurationError(ValueError):
    """Invalid or missing configuration (connection string, settings)."""


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Endpoint and access key parsed from a connection string."""
    endpoint: str
    access_key: str
    version: Optional[str] = None


def _split_properties(connection_string: str) -> Dict[str, str]:
    properties: Dict[str, str] = {}
    for segment in connection_string.split(PROPERTY_SEPARATOR):
        segment = segment.strip()
        if not segment:
            continue
        key, sep, value = segment.partition(KEY_VALUE_SEPARATOR)
        if not sep:
            raise ConfigurationError(
                f"Connection string segment '{segment}' is not a key=value pair"
            )
        properties[key.strip().lower()] = value.strip()
    return properties


def parse_connection_string(connection_string: Optional[str]) -> ConnectionDescriptor:
    """
    Parse a connection string into a ConnectionDescriptor.

    Args:
        connection_string: "Endpoint=...;AccessKey=...;" style string

    Raises:
        ConfigurationError: when the string is empty, malformed or misses
            the endpoint or access key
    """
    if not connection_string or not connection_string.strip():
        raise ConfigurationError("Connection string is empty")

    properties = _split_properties(connection_string)

    endpoint = properties.get(ENDPOINT_PROPERTY)
    access_key = properties.get(ACCESS_KEY_PROPERTY)
    if not endpoint or not access_key:
        raise ConfigurationError(
            f"Connection string missing required properties "
            f"{ENDPOINT_PROPERTY} and {ACCESS_KEY_PROPERTY}."
        )

    parsed = urlparse(endpoint)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(f"Endpoint '{endpoint}' is not an absolute http(s) URL")

    endpoint = endpoint.rstrip("/")

    port = properties.get(PORT_PROPERTY)
    if port:
        if not port.isdigit():
            raise ConfigurationError(f"Invalid port '{port}' in connection string")
        endpoint = f"{endpoint}:{port}"

    return ConnectionDescriptor(
        endpoint=endpoint,
        access_key=access_key,
        version=properties.get(VERSION_PROPERTY),
    )


class ServiceUtils:
    """
    Resolves the service endpoint and signs access tokens.

    Usage:
        utils = ServiceUtils(connection_string)
        token = utils.generate_access_token(url, "user-1")
    """

    def __init__(self, connection_string: str):
        self.descriptor = parse_connection_string(connection_string)

        logger.debug("connection_string_parsed",
                     endpoint=self.descriptor.endpoint,
                     version=self.descriptor.version)

    @property
    def endpoint(self) -> str:
        return self.descriptor.endpoint

    @property
    def access_key(self) -> str:
        return self.descriptor.access_key

    def generate_access_token(
        self,
        target_url: str,
        principal_id: str,
        lifetime: Optional[timedelta] = None,
    ) -> str:
        """
        Sign a bearer token for a target URL on behalf of a principal.

        Args:
            target_url: URL the token authorizes (JWT audience)
            principal_id: server name or client user id (nameid claim)
            lifetime: token validity (default: 1 hour)
        """
        now = datetime.now(timezone.utc)
        expires = now + (lifetime or DEFAULT_TOKEN_LIFETIME)

        claims = {
            "aud": target_url,
            "nameid": principal_id,
            "iat": now,
            "nbf": now,
            "exp": expires,
        }

        return jwt.encode(claims, self.access_key, algorithm=TOKEN_ALGORITHM)
