# placement_core/llm_clients.py
from __future__ import annotations
import os, json, pathlib
from dataclasses import dataclass
from openai import AzureOpenAI, OpenAI

from .config import get_backend
from .errors import ItemSourceError

AZURE_CONFIG_PATH = ".azure_config.json"
_AZURE_ENV = {
    "endpoint": "AZURE_OPENAI_ENDPOINT",
    "api_key": "AZURE_OPENAI_API_KEY",
    "api_version": "AZURE_OPENAI_API_VERSION",
    "deployment": "AZURE_OPENAI_DEPLOYMENT",
}


@dataclass(frozen=True)
class AzureSettings:
    endpoint: str
    api_key: str
    deployment: str
    api_version: str


def _azure_file(path: str = AZURE_CONFIG_PATH) -> dict[str, str]:
    p = pathlib.Path(path)
    if not p.exists(): return {}
    try:
        j = json.loads(p.read_text(encoding="utf-8"))
    except ValueError:
        return {}
    return {k: str(j.get(k, "")) for k in _AZURE_ENV} if isinstance(j, dict) else {}


def azure_settings() -> AzureSettings:
    """Env vars win; blanks are filled from the local json file."""

    vals = {k: os.getenv(env, "") for k, env in _AZURE_ENV.items()}
    if not all(vals.values()):
        for k, v in _azure_file().items():
            vals[k] = vals[k] or v
    missing = [k for k, v in vals.items() if not v]
    if missing:
        raise ItemSourceError(f"Azure OpenAI not configured. Missing: {', '.join(missing)}")
    return AzureSettings(**vals)


def azure_client(s: AzureSettings) -> AzureOpenAI:
    return AzureOpenAI(azure_endpoint=s.endpoint, api_key=s.api_key, api_version=s.api_version)


def ollama_client(cfg: dict) -> tuple[OpenAI, str]:
    host = (cfg.get("OLLAMA_HOST") or "").rstrip("/")
    model = cfg.get("OLLAMA_MODEL") or ""
    if not host or not model:
        raise ItemSourceError("Ollama not configured. Set OLLAMA_HOST and OLLAMA_MODEL.")
    # Ollama serves the OpenAI wire protocol under /v1 and ignores the key
    return OpenAI(base_url=f"{host}/v1", api_key="ollama"), model


def chat_client(cfg: dict) -> tuple[OpenAI, str]:
    """Chat-completions client and model name for the configured backend."""

    backend = get_backend(cfg)
    if backend == "azure":
        s = azure_settings()
        return azure_client(s), s.deployment
    if backend == "ollama":
        return ollama_client(cfg)
    raise ItemSourceError("ITEM_SOURCE=llm needs LLM_BACKEND set to 'azure' or 'ollama'")
