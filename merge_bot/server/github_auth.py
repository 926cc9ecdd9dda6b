"""GitHub credential and webhook secret loading with safe handling."""

from __future__ import annotations

import hashlib
import hmac
import os
from dataclasses import dataclass


SIGNATURE_256_HEADER = "x-hub-signature-256"
SIGNATURE_SHA1_HEADER = "x-hub-signature"


@dataclass(frozen=True)
class GitHubAuth:
    token: str | None
    webhook_secret: str | None

    def redacted(self) -> dict[str, str]:
        return {
            "token": _redact_token(self.token),
            "webhook_secret": _redact_token(self.webhook_secret),
        }

    def missing(self) -> list[str]:
        missing: list[str] = []
        if not self.token:
            missing.append("MERGE_BOT_GITHUB_TOKEN")
        if not self.webhook_secret:
            missing.append("MERGE_BOT_WEBHOOK_SECRET")
        return missing


def load_github_auth_from_env(env: dict[str, str] | None = None) -> GitHubAuth:
    env_map = os.environ if env is None else env

    token = _clean(
        env_map.get("MERGE_BOT_GITHUB_TOKEN")
        or env_map.get("USER_TOKEN")
        or env_map.get("GITHUB_TOKEN")
    )
    webhook_secret = _clean(
        env_map.get("MERGE_BOT_WEBHOOK_SECRET") or env_map.get("WEBHOOK_SECRET")
    )
    return GitHubAuth(token=token, webhook_secret=webhook_secret)


def require_server_credentials(auth: GitHubAuth) -> GitHubAuth:
    missing = auth.missing()
    if missing:
        raise ValueError(f"Missing required credentials: {', '.join(missing)}")
    return auth


def verify_webhook_signature(secret: str | None, body: bytes, headers: dict[str, str]) -> bool:
    """Check the delivery HMAC, preferring the SHA-256 header over legacy SHA-1."""

    if not secret:
        return False
    signature_256 = headers.get(SIGNATURE_256_HEADER, "")
    if signature_256:
        return _compare_signature(secret, body, signature_256, "sha256", hashlib.sha256)
    signature_sha1 = headers.get(SIGNATURE_SHA1_HEADER, "")
    if signature_sha1:
        return _compare_signature(secret, body, signature_sha1, "sha1", hashlib.sha1)
    return False


def sign_webhook_body(secret: str, body: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def _compare_signature(secret: str, body: bytes, header: str, prefix: str, digestmod) -> bool:
    if not header.startswith(f"{prefix}="):
        return False
    expected = f"{prefix}=" + hmac.new(secret.encode("utf-8"), body, digestmod).hexdigest()
    return hmac.compare_digest(expected, header)


def _clean(token: str | None) -> str | None:
    if token is None:
        return None
    value = token.strip()
    return value or None


def _redact_token(token: str | None) -> str:
    if token is None:
        return "unset"
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}...{token[-4:]}"
