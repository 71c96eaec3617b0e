from __future__ import annotations
import json
import logging
import httpx
from typing import Any, AsyncIterator, Callable, Dict, Optional, Sequence
from .settings import settings

logger = logging.getLogger(__name__)


class GatewayError(RuntimeError):
	"""Base error for LLM gateway failures; carries a user-facing message."""

	category = "gateway_error"
	status_code = 500

	def __init__(self, message: str, *, detail: Optional[str] = None) -> None:
		super().__init__(message)
		self.message = message
		self.detail = detail


class GatewayRateLimitError(GatewayError):
	category = "rate_limited"
	status_code = 429


class GatewayQuotaError(GatewayError):
	category = "quota_exhausted"
	status_code = 402


class GatewayResponseError(GatewayError):
	category = "gateway_error"
	status_code = 500


class GatewayConnectionError(GatewayError):
	category = "connection_error"
	status_code = 502


def _error_for_status(status: int, body: str) -> GatewayError:
	if status == 429:
		return GatewayRateLimitError("Rate limit exceeded. Please try again in a moment.", detail=body)
	if status == 402:
		return GatewayQuotaError("AI credits exhausted. Please add credits to continue.", detail=body)
	return GatewayResponseError("AI service error", detail=f"{status}: {body}")


class GatewayClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.gateway_api_key
		if not self.api_key:
			raise ValueError("LLM gateway API key is not configured")
		self.model = model or settings.gateway_model
		self.base_url = (base_url or settings.gateway_base_url).rstrip("/")
		self._headers = {
			"Authorization": f"Bearer {self.api_key}",
			"Content-Type": "application/json",
		}
		self._client = httpx.AsyncClient(timeout=settings.gateway_timeout, transport=transport)

	@property
	def completions_url(self) -> str:
		return f"{self.base_url}/chat/completions"

	def _payload(self, system_prompt: str, messages: Sequence[Dict[str, str]], **extra: Any) -> Dict[str, Any]:
		return {
			"model": self.model,
			"messages": [{"role": "system", "content": system_prompt}, *messages],
			**extra,
		}

	async def open_stream(self, system_prompt: str, messages: Sequence[Dict[str, str]]) -> httpx.Response:
		"""Start a streaming completion and return the open response.

		Raises a ``GatewayError`` subclass for non-2xx answers; the caller owns
		closing the returned response.
		"""
		payload = self._payload(system_prompt, messages, stream=True)
		request = self._client.build_request("POST", self.completions_url, headers=self._headers, json=payload)
		logger.info("Opening gateway stream with %d messages", len(messages))
		try:
			response = await self._client.send(request, stream=True)
		except httpx.RequestError as net_err:
			raise GatewayConnectionError("Failed to reach the AI gateway", detail=str(net_err)) from net_err
		if response.status_code >= 400:
			body = (await response.aread()).decode("utf-8", errors="replace")
			await response.aclose()
			logger.error("AI gateway error: %s %s", response.status_code, body[:500])
			raise _error_for_status(response.status_code, body)
		return response

	async def stream_chat(self, system_prompt: str, messages: Sequence[Dict[str, str]]) -> AsyncIterator[bytes]:
		response = await self.open_stream(system_prompt, messages)
		try:
			async for chunk in response.aiter_bytes():
				yield chunk
		except httpx.HTTPError as net_err:
			raise GatewayConnectionError("Connection to the AI gateway was lost", detail=str(net_err)) from net_err
		finally:
			await response.aclose()

	async def call_tool(
		self,
		system_prompt: str,
		user_prompt: str,
		tool: Dict[str, Any],
	) -> Dict[str, Any]:
		"""Force a single function call and return its parsed arguments."""
		name = tool["function"]["name"]
		payload = self._payload(
			system_prompt,
			[{"role": "user", "content": user_prompt}],
			tools=[tool],
			tool_choice={"type": "function", "function": {"name": name}},
		)
		try:
			r = await self._client.post(self.completions_url, headers=self._headers, json=payload)
		except httpx.RequestError as net_err:
			raise GatewayConnectionError("Failed to reach the AI gateway", detail=str(net_err)) from net_err
		if r.status_code >= 400:
			logger.error("AI gateway error: %s %s", r.status_code, r.text[:500])
			raise _error_for_status(r.status_code, r.text)
		try:
			data = r.json()
			call = data["choices"][0]["message"]["tool_calls"][0]
			if call["function"]["name"] != name:
				raise ValueError(f"unexpected tool {call['function']['name']}")
			return json.loads(call["function"]["arguments"])
		except Exception as exc:
			logger.error("Unexpected AI gateway response: %s", r.text[:500])
			raise GatewayResponseError("Failed to generate structured output", detail=str(exc)) from exc

	async def aclose(self) -> None:
		await self._client.aclose()


def get_gateway_factory() -> Callable[[], GatewayClient]:
	"""Dependency hook; clients are created lazily, only when a call is needed."""
	return GatewayClient
