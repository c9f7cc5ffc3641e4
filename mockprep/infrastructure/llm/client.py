"""
Vertex AI REST client for LLM interactions.
"""
import json
import logging
from typing import Optional, Dict, Any, List

import requests
import google.auth
import google.auth.transport.requests
from google.auth import exceptions as auth_exceptions
from google.oauth2 import service_account

from ...config import VERTEX_LOCATION, MODEL_NAME, LLM_TIMEOUT, MAX_OUTPUT_TOKENS
from ...errors import LLMError

logger = logging.getLogger("llm_client")

_SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if the model added one."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return cleaned.strip()


class VertexRestClient:
    """REST-based client for Vertex AI Gemini models."""

    def __init__(self,
                 project: str,
                 location: str = VERTEX_LOCATION,
                 model: str = MODEL_NAME,
                 credentials_json: Optional[str] = None,
                 timeout: int = LLM_TIMEOUT):
        self.project = project
        self.location = location
        self.model = model
        self.credentials_json = credentials_json
        self.base_url = f"https://{self.location}-aiplatform.googleapis.com/v1"
        self.model_resource = f"projects/{self.project}/locations/{self.location}/publishers/google/models/{self.model}"
        self.timeout = timeout
        self._credentials = None

    def _refresh_token(self):
        """Refresh the OAuth token for API calls."""
        try:
            if self._credentials is None:
                if self.credentials_json:
                    self._credentials = service_account.Credentials.from_service_account_file(
                        self.credentials_json, scopes=_SCOPES,
                    )
                else:
                    self._credentials, _ = google.auth.default(scopes=_SCOPES)

            auth_req = google.auth.transport.requests.Request()
            self._credentials.refresh(auth_req)
        except (auth_exceptions.GoogleAuthError, OSError) as e:
            logger.error(f"Could not obtain Vertex credentials: {e}")
            raise LLMError(f"Vertex authentication failed: {e}") from e

    def _ensure_token(self) -> str:
        """Ensure we have a valid token, refreshing if needed."""
        if self._credentials is None or not self._credentials.valid:
            self._refresh_token()
        return self._credentials.token

    def generate_content(
        self,
        prompt_text: str,
        temperature: float = 0.0,
        max_output_tokens: int = MAX_OUTPUT_TOKENS,
        response_mime_type: Optional[str] = None,
        stop_sequences: Optional[List[str]] = None,
    ) -> str:
        """Generate content using the Vertex AI REST API."""
        token = self._ensure_token()
        url = f"{self.base_url}/{self.model_resource}:generateContent"

        body: Dict[str, Any] = {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": prompt_text}],
                }
            ],
            "generationConfig": {
                "temperature": float(temperature),
                "maxOutputTokens": int(max_output_tokens),
            },
        }

        if response_mime_type:
            body["generationConfig"]["responseMimeType"] = response_mime_type
        if stop_sequences:
            body["generationConfig"]["stopSequences"] = list(stop_sequences)

        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

        try:
            resp = requests.post(url, headers=headers, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise LLMError(f"Vertex request failed: {e}") from e

        if resp.status_code >= 400:
            raise LLMError(f"Vertex REST error {resp.status_code}: {resp.text}")

        return self._parse_response_text(resp.json())

    def _parse_response_text(self, resp_json: Dict[str, Any]) -> str:
        """
        Extract the text of the first candidate.
        Vertex schema: candidates[0].content.parts[*].text
        """
        cands = resp_json.get("candidates") or []
        if cands:
            content = cands[0].get("content") or {}
            parts = content.get("parts") or []
            texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
            if texts:
                return "".join(texts)

        reason = cands[0].get("finishReason") if cands else resp_json.get("promptFeedback")
        raise LLMError(f"Vertex response had no text (reason: {reason})")

    def generate_json(self, prompt: str, temperature: float = 0.0) -> Any:
        """
        Generate a JSON response from the LLM.
        The result may be an object or an array; shape checks belong to the caller.

        Raises:
            LLMError: If the request fails or the text is not valid JSON
        """
        prompt_json = prompt.strip() + "\n\nRespond ONLY with minified JSON."
        logger.debug("Sending JSON prompt to LLM...")

        text = self.generate_content(
            prompt_json,
            temperature=temperature,
            max_output_tokens=MAX_OUTPUT_TOKENS,
            response_mime_type="application/json",
        )
        logger.debug("Raw LLM output: %s", repr(text))

        try:
            return json.loads(strip_code_fences(text))
        except json.JSONDecodeError as e:
            logger.warning("json.loads failed: %s", e)
            raise LLMError(f"LLM did not return valid JSON: {text}") from e
