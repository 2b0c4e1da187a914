"""
Model client for the study orchestrator.

Providers, first configured wins:
  1. Oracle Generative AI Inference, signed with the OCI SDK (~/.oci/config)
  2. Anthropic Messages API
  3. A canned stub reply, so the service still starts without credentials

Callers only see ``run(model, {messages, max_tokens, temperature})`` returning
``{"response": text}``. Any provider failure is raised as ModelError.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Protocol

import oci

from study_helper.config import Settings, settings as default_settings
from study_helper.exceptions import ModelError

logger = logging.getLogger(__name__)

OCI_CHAT_PATH = "/actions/chat"  # the SDK adds the /20231130 version prefix
OCI_DEFAULT_REGION = "us-chicago-1"

STUB_REPLY = (
    "[AI not configured] The study helper has no model provider. Set "
    "OCI_CONFIG_FILE, OCI_CONFIG_PROFILE, ORACLE_GENAI_COMPARTMENT_ID and "
    "ORACLE_GENAI_MODEL, or ANTHROPIC_API_KEY, then restart and check /api/health/ai."
)


class ModelClient(Protocol):
    async def run(self, model: str, inputs: dict) -> dict: ...


def split_system(messages: list[dict]) -> tuple[str, list[dict]]:
    """Separate system-role messages (joined) from the conversation turns."""
    system_parts = [m.get("content", "") for m in messages if m.get("role") == "system"]
    turns = [m for m in messages if m.get("role") != "system"]
    return "\n\n".join(p for p in system_parts if p), turns


# ── OCI chat payloads ───────────────────────────────────────────────────────

def _is_cohere(model_id: str, api_format: str) -> bool:
    forced = api_format.strip().upper()
    if forced in ("COHERE", "GENERIC"):
        return forced == "COHERE"
    return model_id.lower().startswith("cohere.")


def _cohere_request(system: str, turns: list[dict]) -> dict:
    *earlier, last = turns or [{"role": "user", "content": ""}]
    request: dict = {"apiFormat": "COHERE", "message": last.get("content", "")}
    if system:
        request["preambleOverride"] = system
    if earlier:
        request["chatHistory"] = [
            {"role": "USER" if t.get("role") == "user" else "CHATBOT", "message": t.get("content", "")}
            for t in earlier
        ]
    return request


def _text_part(text: str) -> list[dict]:
    return [{"type": "TEXT", "text": text}]


def _generic_request(system: str, turns: list[dict]) -> dict:
    messages = [{"role": "SYSTEM", "content": _text_part(system)}] if system else []
    messages.extend(
        {"role": "USER" if t.get("role") == "user" else "ASSISTANT", "content": _text_part(t.get("content", ""))}
        for t in turns
    )
    return {"apiFormat": "GENERIC", "messages": messages}


def build_chat_body(
    model_id: str,
    system: str,
    messages: list[dict],
    max_tokens: int,
    temperature: float,
    api_format: str = "AUTO",
    compartment_id: str = "",
) -> dict:
    """Body for the OCI chat action.

    Cohere models take the last user turn as ``message`` with earlier turns in
    ``chatHistory``; every other model gets a GENERIC ``messages`` list.
    """
    if _is_cohere(model_id, api_format):
        chat_request = _cohere_request(system, messages)
    else:
        chat_request = _generic_request(system, messages)
    chat_request.update(maxTokens=max_tokens, temperature=temperature, isStream=False)

    body: dict = {
        "servingMode": {"servingType": "ON_DEMAND", "modelId": model_id},
        "chatRequest": chat_request,
    }
    if compartment_id:
        body["compartmentId"] = compartment_id
    return body


def extract_text(response_json: dict) -> str:
    chat_response = response_json.get("chatResponse") or {}
    if chat_response.get("apiFormat") == "COHERE":
        return chat_response.get("text", "")

    for choice in chat_response.get("choices") or []:
        content = (choice.get("message") or {}).get("content")
        if isinstance(content, list):
            return "".join(part.get("text", "") for part in content if isinstance(part, dict))
        return "" if content is None else str(content)
    return ""


# ── Client ──────────────────────────────────────────────────────────────────

class GenAIClient:
    """Default ModelClient used by create_app()."""

    def __init__(self, s: Settings = default_settings):
        self.settings = s

    def oracle_configured(self) -> bool:
        s = self.settings
        return all((s.OCI_CONFIG_FILE, s.OCI_CONFIG_PROFILE, s.ORACLE_GENAI_MODEL, s.ORACLE_GENAI_COMPARTMENT_ID))

    def anthropic_configured(self) -> bool:
        return bool(self.settings.ANTHROPIC_API_KEY)

    def provider_name(self) -> str:
        if self.oracle_configured():
            return f"Oracle GenAI OCI-Signed ({self.settings.ORACLE_GENAI_MODEL})"
        if self.anthropic_configured():
            return f"Anthropic ({self.settings.ANTHROPIC_MODEL})"
        return "none"

    async def health_check(self) -> dict:
        """Send a tiny prompt through the active provider and report the outcome."""
        provider = self.provider_name()
        if provider == "none":
            return {"provider": provider, "status": "unconfigured", "message": STUB_REPLY}

        probe = {
            "messages": [
                {"role": "system", "content": "You are a connectivity probe."},
                {"role": "user", "content": "Reply with exactly: OK"},
            ],
            "max_tokens": 10,
            "temperature": 0.0,
        }
        try:
            result = await self.run(self.settings.ORACLE_GENAI_MODEL, probe)
        except ModelError as e:
            return {"provider": provider, "status": "error", "error": str(e)}
        return {"provider": provider, "status": "ok", "testReply": str(result["response"]).strip()}

    async def run(self, model: str, inputs: dict) -> dict:
        """Run one chat completion.

        When Oracle is configured its failures are raised, never retried on
        Anthropic.
        """
        system, turns = split_system(inputs.get("messages", []))
        max_tokens = int(inputs.get("max_tokens", 512))
        temperature = float(inputs.get("temperature", 0.7))

        if self.oracle_configured():
            call = self._oracle_chat(model, system, turns, max_tokens, temperature)
        elif self.anthropic_configured():
            call = self._anthropic_chat(system, turns, max_tokens, temperature)
        else:
            logger.warning("No model provider configured, returning stub reply")
            return {"response": STUB_REPLY}

        try:
            text = await call
        except Exception as e:
            logger.exception("Model call failed (%s)", self.provider_name())
            raise ModelError(f"Model call failed: {e}") from e
        return {"response": text}

    # ── Oracle GenAI ────────────────────────────────────────────────────────

    def _signed_chat(self, body: dict) -> dict:
        """Blocking signed POST to the chat action; returns the decoded JSON."""
        cfg = oci.config.from_file(
            file_location=str(Path(self.settings.OCI_CONFIG_FILE).expanduser()),
            profile_name=self.settings.OCI_CONFIG_PROFILE,
        )
        endpoint = (
            self.settings.ORACLE_GENAI_BASE_URL.rstrip("/")
            or f"https://inference.generativeai.{cfg.get('region', OCI_DEFAULT_REGION)}.oci.oraclecloud.com"
        )
        inference = oci.generative_ai_inference.GenerativeAiInferenceClient(
            config=cfg,
            service_endpoint=endpoint,
            timeout=(10.0, 300.0),
        )
        response = inference.base_client.call_api(
            resource_path=OCI_CHAT_PATH,
            method="POST",
            header_params={"content-type": "application/json"},
            body=body,
            response_type="str",
        )
        return json.loads(response.data if isinstance(response.data, str) else str(response.data))

    async def _oracle_chat(self, model: str, system: str, turns: list[dict], max_tokens: int, temperature: float) -> str:
        body = build_chat_body(
            model or self.settings.ORACLE_GENAI_MODEL,
            system,
            turns,
            max_tokens,
            temperature,
            api_format=self.settings.ORACLE_GENAI_API_FORMAT,
            compartment_id=self.settings.ORACLE_GENAI_COMPARTMENT_ID,
        )
        return extract_text(await asyncio.to_thread(self._signed_chat, body))

    # ── Anthropic ───────────────────────────────────────────────────────────

    async def _anthropic_chat(self, system: str, turns: list[dict], max_tokens: int, temperature: float) -> str:
        import anthropic

        client = anthropic.Anthropic(api_key=self.settings.ANTHROPIC_API_KEY)
        kwargs: dict[str, Any] = {
            "model": self.settings.ANTHROPIC_MODEL,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [
                {"role": "user" if t.get("role") == "user" else "assistant", "content": t.get("content", "")}
                for t in turns
            ],
        }
        if system:
            kwargs["system"] = system
        response = await asyncio.to_thread(client.messages.create, **kwargs)
        return "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
