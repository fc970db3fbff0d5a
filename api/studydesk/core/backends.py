from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from studydesk.core.config import Settings, settings as default_settings
from studydesk.core.errors import BackendUnconfigured, InvalidRequest

logger = logging.getLogger("backends")

GITHUB = "github"
OPENAI = "openai"
MODEL_TYPES = (GITHUB, OPENAI)

_DEPLOYMENT_SEGMENT = "/openai/deployments/"


@dataclass(frozen=True)
class ResolvedBackend:
    model_type: str
    endpoint: str
    api_key: str
    model_id: str
    api_version: str = ""
    max_input_chars: int = 15000

    def __repr__(self) -> str:
        # keep keys out of logs and tracebacks
        return (
            f"ResolvedBackend(model_type={self.model_type!r}, endpoint={self.endpoint!r}, "
            f"model_id={self.model_id!r})"
        )


def split_deployment(endpoint: str, default_deployment: str) -> Tuple[str, str]:
    """
    Returns (base_url, deployment_name).

    An endpoint may be configured either as the bare resource URL or as a full
    deployment URL (.../openai/deployments/<name>/chat/completions?...). In the
    second case the deployment name is taken from the URL and the base is
    everything before the deployment segment.
    """
    endpoint = (endpoint or "").strip()
    if _DEPLOYMENT_SEGMENT in endpoint:
        base, rest = endpoint.split(_DEPLOYMENT_SEGMENT, 1)
        name = rest.split("/", 1)[0].split("?", 1)[0].strip()
        return base.rstrip("/"), name or default_deployment
    return endpoint.rstrip("/"), default_deployment


def chat_completions_url(backend: ResolvedBackend) -> str:
    return (
        f"{backend.endpoint}{_DEPLOYMENT_SEGMENT}{backend.model_id}"
        f"/chat/completions?api-version={backend.api_version}"
    )


def resolve_backend(model_type: Optional[str], config: Optional[Settings] = None) -> ResolvedBackend:
    """
    Turn a model type ("github" | "openai") into everything a model call needs.

    Raises BackendUnconfigured when the required credentials are missing; this
    happens before any network activity.
    """
    cfg = config or default_settings
    mt = (model_type or cfg.default_model_type or GITHUB).lower().strip()

    if mt == GITHUB:
        endpoint = cfg.github_api_endpoint.strip()
        key = cfg.github_api_key.strip()
        if not endpoint or not key:
            raise BackendUnconfigured(
                "github backend needs GITHUB_API_ENDPOINT and GITHUB_API_KEY"
            )
        base, deployment = split_deployment(endpoint, cfg.github_default_deployment)
        return ResolvedBackend(
            model_type=GITHUB,
            endpoint=base,
            api_key=key,
            model_id=deployment,
            api_version=cfg.github_api_version,
            max_input_chars=cfg.github_max_input_chars,
        )

    if mt == OPENAI:
        key = cfg.openai_api_key.strip()
        if not key:
            raise BackendUnconfigured("openai backend needs OPENAI_API_KEY")
        return ResolvedBackend(
            model_type=OPENAI,
            endpoint=cfg.openai_base_url.strip(),
            api_key=key,
            model_id=cfg.openai_model,
            max_input_chars=cfg.openai_max_input_chars,
        )

    raise InvalidRequest(f"Unknown model type: {model_type!r}. Allowed: {', '.join(MODEL_TYPES)}")
