from typing import Any
import contextvars
import inspect
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout

from .config import settings
from .logging import logger

# OpenAI SDK (optional)
try:  # pragma: no cover - network disabled in tests
    from openai import OpenAI  # type: ignore
except ImportError:  # pragma: no cover - optional dependency
    OpenAI = None  # type: ignore


# Shared LLM instance and executor
_LLM_INSTANCE: Any | None = None
_llm_executor: ThreadPoolExecutor | None = None


def _executor() -> ThreadPoolExecutor:
    global _llm_executor
    if _llm_executor is None:
        _llm_executor = ThreadPoolExecutor(max_workers=4)
    return _llm_executor


class _LLMBase:
    def complete(self, prompt: str, *, json_mode: bool = False) -> str:  # pragma: no cover - interface only
        raise NotImplementedError


class _OpenAILLM(_LLMBase):  # pragma: no cover - network not used in tests
    def __init__(self, *, api_key: str, model: str, temperature: float = 0.4) -> None:
        if OpenAI is None:
            raise RuntimeError("openai package not installed")
        self._client = OpenAI(api_key=api_key)
        self._model = model
        self._temperature = float(max(0.0, min(1.0, temperature)))

    @staticmethod
    def _extract_text(resp: Any) -> str:
        txt = getattr(resp, "output_text", None)
        if isinstance(txt, str) and txt.strip():
            return txt.strip()
        d = resp if isinstance(resp, dict) else resp.model_dump()  # type: ignore[attr-defined]
        # output[0].content[0].text
        output = d.get("output") or []
        if output and isinstance(output, list):
            contents = (output[0] or {}).get("content") or []
            if contents and isinstance(contents, list):
                t = contents[0].get("text")
                if isinstance(t, str):
                    return t.strip()
        return ""

    def complete(self, prompt: str, *, json_mode: bool = False) -> str:
        logger.info("llm_complete_call", provider="openai", model=self._model, prompt_chars=len(prompt), json_mode=json_mode)
        try:
            param_names = set(inspect.signature(self._client.responses.create).parameters.keys())
        except (TypeError, ValueError):
            param_names = set()

        kwargs: dict[str, Any] = {
            "model": self._model,
            "input": prompt,
            "temperature": self._temperature,
            "max_output_tokens": int(settings.llm_max_tokens),
        }
        if "timeout" in param_names:
            kwargs["timeout"] = settings.llm_timeout_ms / 1000.0
        if json_mode and "text" in param_names:
            kwargs["text"] = {"format": {"type": "json_object"}}
        try:
            resp = self._client.responses.create(**kwargs)
        except Exception as exc:
            low = (str(exc) or "").lower()
            # reasoning models reject temperature; retry once without it
            if "temperature" in low and ("unsupported" in low or "not supported" in low):
                logger.info("llm_complete_retry_without_temperature", provider="openai", model=self._model, reason=str(exc)[:200])
                kwargs.pop("temperature", None)
                resp = self._client.responses.create(**kwargs)
            else:
                raise
        content = self._extract_text(resp)
        logger.info("llm_complete_result", provider="openai", model=self._model, content_chars=len(content))
        return content


class _LocalEchoLLM(_LLMBase):
    def complete(self, prompt: str, *, json_mode: bool = False) -> str:
        # Network-free fallback with a fixed empty answer
        logger.info("llm_complete_call", provider="local", model="echo", prompt_chars=len(prompt))
        return ""


def _classify_failure(last_exc: Exception | None) -> str:
    reason_code = "UNKNOWN"
    base_msg = "LLM failure"
    text = (str(last_exc) or "") if last_exc else ""
    etype = type(last_exc).__name__ if last_exc else "None"
    low = text.lower()
    if isinstance(last_exc, FuturesTimeout) or "timeout" in low:
        base_msg = "LLM timeout"
        reason_code = "TIMEOUT"
    elif "rate limit" in low or "too many requests" in low or "429" in low or "ratelimit" in etype.lower():
        reason_code = "RATE_LIMIT"
    elif "auth" in low or "invalid api key" in low or "unauthorized" in low or "401" in low:
        reason_code = "AUTH"
    return f"{base_msg} (reason_code={reason_code}, error_type={etype}, detail={text[:256]})"


def _llm_with_policy(llm: _LLMBase) -> _LLMBase:
    # Thin wrapper adding timeout / retry / backoff on the shared executor

    class _Wrapped(_LLMBase):
        def complete(self, prompt: str, *, json_mode: bool = False) -> str:
            last_exc: Exception | None = None
            attempts = max(1, settings.llm_max_retries)
            for attempt in range(1, attempts + 1):
                _ctx = contextvars.copy_context()
                future = _executor().submit(_ctx.run, llm.complete, prompt, json_mode=json_mode)
                try:
                    result = future.result(timeout=settings.llm_timeout_ms / 1000.0)
                    if result == "":
                        logger.info("llm_complete_empty", attempt=attempt, retries=attempts)
                    return result
                except Exception as exc:
                    last_exc = exc
                    future.cancel()
                    logger.info(
                        "llm_complete_error",
                        attempt=attempt,
                        retries=attempts,
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
                    if attempt >= attempts:
                        break
                    time.sleep(0.1 * attempt)
            logger.warning(
                "llm_complete_failed_all_retries",
                error=str(last_exc) if last_exc else None,
                error_type=(type(last_exc).__name__ if last_exc else None),
            )
            if settings.strict_mode:
                raise RuntimeError(_classify_failure(last_exc))
            # Empty answer lets the caller decide how to fail
            return ""

    return _Wrapped()


def get_llm_provider() -> Any:
    """Return the shared LLM client for the configured provider.

    - openai: OpenAI Responses API client
    - local: network-free fallback that always answers ``""``
    Outside strict mode a missing key or unknown provider degrades to the
    local fallback instead of failing.
    """
    global _LLM_INSTANCE
    if _LLM_INSTANCE is not None:
        return _LLM_INSTANCE
    provider = (settings.llm_provider or "").lower()

    if provider in {"", "local"}:
        if settings.strict_mode:
            raise RuntimeError("LLM_PROVIDER must be 'openai' in strict mode")
        logger.info("llm_provider_select", provider="local")
        _LLM_INSTANCE = _llm_with_policy(_LocalEchoLLM())
        return _LLM_INSTANCE
    if provider == "openai":
        if not settings.openai_api_key or OpenAI is None:
            if settings.strict_mode:
                raise RuntimeError("OPENAI_API_KEY and the openai package are required for LLM_PROVIDER=openai (strict mode)")
            logger.info("llm_provider_select", provider="local", reason="missing_openai_api_key")
            _LLM_INSTANCE = _llm_with_policy(_LocalEchoLLM())
            return _LLM_INSTANCE
        logger.info("llm_provider_select", provider="openai", model=settings.llm_model)
        _LLM_INSTANCE = _llm_with_policy(
            _OpenAILLM(api_key=settings.openai_api_key, model=settings.llm_model, temperature=settings.llm_temperature)
        )
        return _LLM_INSTANCE
    if settings.strict_mode:
        raise RuntimeError(f"Unknown LLM provider: {provider}")
    logger.info("llm_provider_select", provider="local", reason="unknown_provider", requested=provider)
    _LLM_INSTANCE = _llm_with_policy(_LocalEchoLLM())
    return _LLM_INSTANCE


def reset_llm_provider() -> None:
    global _LLM_INSTANCE
    _LLM_INSTANCE = None


def shutdown_providers() -> None:
    """Stop the shared executor and drop cached clients on shutdown."""
    global _llm_executor
    if _llm_executor is not None:
        _llm_executor.shutdown(wait=False, cancel_futures=True)
        _llm_executor = None
    reset_llm_provider()
