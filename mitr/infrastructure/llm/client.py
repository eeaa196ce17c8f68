"""
Vertex AI REST client for LLM interactions.
"""
import asyncio
import base64
import json
import logging
import time
from typing import Optional, Dict, Any, List, Tuple

import requests
import google.auth
import google.auth.transport.requests
from google.oauth2 import service_account

from ...config import (
    VERTEX_LOCATION, MODEL_NAME, IMAGE_MODEL_NAME, LLM_TIMEOUT, MAX_RETRIES,
    MAX_OUTPUT_TOKENS, TEMPERATURE, RETRY_BACKOFF_SECONDS, AUTH_SCOPES,
)
from ...errors import ModelCallError

logger = logging.getLogger("llm_client")

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def split_image_data(image_data: str) -> Tuple[str, str]:
    """
    Split an encoded image into (mime_type, base64 payload).

    Accepts a ``data:image/...;base64,`` URI or bare base64 (assumed JPEG).
    """
    if image_data.startswith("data:"):
        header, _, payload = image_data.partition(",")
        mime_type = header[5:].split(";")[0] or "image/jpeg"
        return mime_type, payload
    return "image/jpeg", image_data


class VertexRestClient:
    """REST-based client for Vertex AI Gemini models."""

    def __init__(self,
                 project: str,
                 location: str = VERTEX_LOCATION,
                 model: str = MODEL_NAME,
                 credentials_json: Optional[str] = None,
                 timeout: int = LLM_TIMEOUT,
                 max_retries: int = MAX_RETRIES,
                 temperature: float = TEMPERATURE,
                 max_output_tokens: int = MAX_OUTPUT_TOKENS,
                 stream: bool = False,
                 image_model: str = IMAGE_MODEL_NAME,
                 session: Optional[requests.Session] = None):
        self.project = project
        self.location = location
        self.model = model
        self.image_model = image_model
        self.credentials_json = credentials_json
        self.base_url = f"https://{self.location}-aiplatform.googleapis.com/v1"
        self.model_resource = self._resource_for(self.model)
        self._token = None
        self._token_expiry = 0.0
        self.timeout = timeout
        self.max_retries = max_retries
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.stream = stream
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config) -> "VertexRestClient":
        """Build a client from a :class:`mitr.config.Config`."""
        return cls(
            project=config.google_cloud_project,
            location=config.vertex_location,
            model=config.model_name,
            credentials_json=config.google_application_credentials,
            timeout=config.llm_timeout,
            max_retries=config.max_retries,
            temperature=config.temperature,
            max_output_tokens=config.max_output_tokens,
            stream=config.stream,
            image_model=config.image_model_name,
        )

    def _resource_for(self, model: str) -> str:
        return f"projects/{self.project}/locations/{self.location}/publishers/google/models/{model}"

    def _refresh_token(self):
        """Refresh the OAuth token for API calls."""
        if self.credentials_json:
            creds = service_account.Credentials.from_service_account_file(
                self.credentials_json,
                scopes=AUTH_SCOPES,
            )
        else:
            creds, _ = google.auth.default(scopes=AUTH_SCOPES)

        auth_req = google.auth.transport.requests.Request()
        creds.refresh(auth_req)
        self._token = creds.token
        # Tokens live about an hour; refresh a little early
        self._token_expiry = time.time() + 50 * 60

    def _ensure_token(self):
        """Ensure we have a valid token, refreshing if needed."""
        if not self._token or time.time() >= self._token_expiry:
            self._refresh_token()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

    def _build_body(self,
                    prompt_text: str,
                    temperature: Optional[float],
                    max_output_tokens: Optional[int],
                    images: Optional[List[str]] = None,
                    json_mode: bool = False,
                    top_k: Optional[int] = None,
                    top_p: Optional[float] = None,
                    stop_sequences: Optional[List[str]] = None,
                    response_modalities: Optional[List[str]] = None) -> Dict[str, Any]:
        parts: List[Dict[str, Any]] = []
        for image in images or []:
            mime_type, payload = split_image_data(image)
            parts.append({"inlineData": {"mimeType": mime_type, "data": payload}})
        parts.append({"text": prompt_text})

        generation_config: Dict[str, Any] = {
            "temperature": float(self.temperature if temperature is None else temperature),
            "maxOutputTokens": int(max_output_tokens or self.max_output_tokens),
        }
        if json_mode:
            generation_config["responseMimeType"] = "application/json"
        if top_k is not None:
            generation_config["topK"] = int(top_k)
        if top_p is not None:
            generation_config["topP"] = float(top_p)
        if stop_sequences:
            generation_config["stopSequences"] = list(stop_sequences)
        if response_modalities:
            generation_config["responseModalities"] = list(response_modalities)

        return {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": generation_config,
        }

    def _post(self, url: str, body: Dict[str, Any], stream: bool = False) -> requests.Response:
        """POST with bounded retries on network errors, 429 and 5xx."""
        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            self._ensure_token()
            try:
                resp = self.session.post(url, headers=self._headers(), json=body,
                                         timeout=self.timeout, stream=stream)
            except requests.RequestException as e:
                last_error = e
                logger.warning("Vertex request failed (attempt %d/%d): %s", attempt + 1, attempts, e)
            else:
                if resp.status_code < 400:
                    return resp
                if resp.status_code == 401:
                    # Stale token; force a refresh on the next attempt
                    self._token = None
                if resp.status_code not in RETRYABLE_STATUS and resp.status_code != 401:
                    raise ModelCallError(f"Vertex REST error {resp.status_code}: {resp.text}")
                last_error = ModelCallError(f"Vertex REST error {resp.status_code}: {resp.text}")
                logger.warning("Vertex returned %d (attempt %d/%d)", resp.status_code, attempt + 1, attempts)

            if attempt + 1 < attempts:
                time.sleep(RETRY_BACKOFF_SECONDS * (2 ** attempt))

        if isinstance(last_error, ModelCallError):
            raise last_error
        raise ModelCallError(f"Vertex request failed after {attempts} attempts: {last_error}") from last_error

    def generate_content(
        self,
        prompt_text: str,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
        top_k: Optional[int] = None,
        top_p: Optional[float] = None,
        stop_sequences: Optional[List[str]] = None,
        images: Optional[List[str]] = None,
        json_mode: bool = False,
        stream: Optional[bool] = None,
    ) -> str:
        """Generate content using the Vertex AI REST API."""
        body = self._build_body(prompt_text, temperature, max_output_tokens, images=images,
                                json_mode=json_mode, top_k=top_k, top_p=top_p,
                                stop_sequences=stop_sequences)

        use_stream = self.stream if stream is None else stream
        if use_stream:
            url = f"{self.base_url}/{self.model_resource}:streamGenerateContent?alt=sse"
            resp = self._post(url, body, stream=True)
            return self._read_stream(resp)

        url = f"{self.base_url}/{self.model_resource}:generateContent"
        resp = self._post(url, body)
        return self._parse_response_text(resp.json())

    def _read_stream(self, resp: requests.Response) -> str:
        """Concatenate the text of every SSE ``data:`` chunk."""
        chunks: List[str] = []
        try:
            for line in resp.iter_lines(decode_unicode=True):
                if not line or not line.startswith("data:"):
                    continue
                payload = line[5:].strip()
                if not payload or payload == "[DONE]":
                    continue
                try:
                    chunk = json.loads(payload)
                except json.JSONDecodeError:
                    logger.warning("Skipping unparseable stream chunk: %r", payload[:200])
                    continue
                text = self._extract_text(chunk)
                if text:
                    chunks.append(text)
        finally:
            resp.close()
        return "".join(chunks)

    @staticmethod
    def _extract_text(resp_json: Dict[str, Any]) -> Optional[str]:
        cands = resp_json.get("candidates") or []
        if cands:
            content = cands[0].get("content") or {}
            texts = [p["text"] for p in content.get("parts") or []
                     if isinstance(p, dict) and isinstance(p.get("text"), str)]
            if texts:
                return "".join(texts)
            if isinstance(content.get("text"), str):
                return content["text"]
        if isinstance(resp_json.get("text"), str):
            return resp_json["text"]
        return None

    def _parse_response_text(self, resp_json: Dict[str, Any]) -> str:
        """
        Parse response JSON to extract text content.
        Tries Vertex schema first, then falls back to alternatives.
        """
        text = self._extract_text(resp_json)
        if text is not None:
            return text

        finish = None
        cands = resp_json.get("candidates") or []
        if cands:
            finish = cands[0].get("finishReason")
        block = (resp_json.get("promptFeedback") or {}).get("blockReason")
        raise ModelCallError(
            f"Vertex response had no text (finishReason={finish}, blockReason={block})"
        )

    @staticmethod
    def parse_json_text(text: str) -> Dict[str, Any]:
        """
        Parse a JSON object out of model text.

        Handles bare JSON, markdown fences and JSON embedded in prose.
        """
        cleaned = text.strip()
        if cleaned.startswith("```"):
            cleaned = cleaned.strip("`")
            if cleaned.lower().startswith("json"):
                cleaned = cleaned[4:]
            cleaned = cleaned.strip()

        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.warning("json.loads failed: %s", e)
            # Try extracting JSON from text
            start = cleaned.find("{")
            end = cleaned.rfind("}")
            if start == -1 or end <= start:
                raise ModelCallError(f"LLM did not return valid JSON: {text[:500]}") from e
            try:
                parsed = json.loads(cleaned[start:end + 1])
            except json.JSONDecodeError as e2:
                logger.warning("Substring parse also failed: %s", e2)
                raise ModelCallError(f"LLM did not return valid JSON: {text[:500]}") from e2
            logger.debug("Parsed JSON from substring successfully")

        if not isinstance(parsed, dict):
            raise ModelCallError(f"LLM returned JSON {type(parsed).__name__}, expected an object")
        return parsed

    def generate_json(self,
                      prompt: str,
                      images: Optional[List[str]] = None,
                      temperature: Optional[float] = None,
                      name: str = "json") -> Dict[str, Any]:
        """
        Generate JSON response from LLM tolerating fenced or embedded JSON.
        Automatically appends instruction to respond with JSON only.

        Args:
            prompt: Prompt text
            images: Optional encoded images sent as inline parts
            temperature: Override of the configured temperature
            name: Prompt name, used for logging only
        """
        prompt_json = prompt.strip() + "\n\nRespond ONLY with minified JSON."
        logger.debug("Sending JSON prompt '%s' to LLM...", name)

        try:
            text = self.generate_content(prompt_json, temperature=temperature,
                                         images=images, json_mode=True)
        except ModelCallError as e:
            logger.error("LLM request '%s' failed: %s", name, e)
            raise

        logger.debug("Raw LLM output for '%s': %s", name, repr(text))
        return self.parse_json_text(text)

    def generate_image(self, prompt: str) -> str:
        """Generate an image and return it as a ``data:`` URI."""
        body = self._build_body(prompt, None, None, response_modalities=["TEXT", "IMAGE"])
        url = f"{self.base_url}/{self._resource_for(self.image_model)}:generateContent"
        resp_json = self._post(url, body).json()

        for cand in resp_json.get("candidates") or []:
            for part in (cand.get("content") or {}).get("parts") or []:
                inline = part.get("inlineData") if isinstance(part, dict) else None
                if inline and inline.get("data"):
                    mime_type = inline.get("mimeType", "image/png")
                    # Validate the payload before handing it out
                    base64.b64decode(inline["data"], validate=True)
                    return f"data:{mime_type};base64,{inline['data']}"

        raise ModelCallError("Image generation returned no media")

    async def agenerate_json(self,
                             prompt: str,
                             images: Optional[List[str]] = None,
                             temperature: Optional[float] = None,
                             name: str = "json") -> Dict[str, Any]:
        """Async wrapper around :meth:`generate_json` (runs in a worker thread)."""
        return await asyncio.to_thread(self.generate_json, prompt, images, temperature, name)

    async def agenerate_text(self,
                             prompt: str,
                             temperature: Optional[float] = None,
                             name: str = "text") -> str:
        """Async wrapper around :meth:`generate_content`."""
        logger.debug("Sending text prompt '%s' to LLM...", name)
        return await asyncio.to_thread(self.generate_content, prompt, temperature)

    async def agenerate_image(self, prompt: str, name: str = "image") -> str:
        logger.debug("Sending image prompt '%s' to LLM...", name)
        return await asyncio.to_thread(self.generate_image, prompt)
