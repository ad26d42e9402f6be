# src/ktc_taskboard/llm/advisor.py

from __future__ import annotations

import json
import logging
import re
import time
from typing import Any

import httpx
import openai
from openai import OpenAI

from ..tasks.task_models import Quadrant, QuadrantAdvice
from .offline import OfflineQuadrantAdvisor

logger = logging.getLogger(__name__)

# model -> retry_at (monotonic)
_BAD_MODELS: dict[str, float] = {}
BAD_MODEL_COOLDOWN_SECONDS = 3600.0

SYSTEM_PROMPT = (
    "Bạn là trợ lý phân loại công việc theo Ma trận Eisenhower. "
    'Chỉ trả lời bằng một đối tượng JSON: {"quadrant": "Q1|Q2|Q3|Q4", "reasoning": "..."}.'
)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def build_prompt(title: str, description: str) -> str:
    return (
        "Hãy phân tích công việc sau vào Ma trận Eisenhower (Q1, Q2, Q3, Q4).\n"
        f"Tên: {title}\n"
        f"Mô tả: {description}\n"
        "Q1: Khẩn cấp & Quan trọng.\n"
        "Q2: Không khẩn cấp & Quan trọng.\n"
        "Q3: Khẩn cấp & Không quan trọng.\n"
        "Q4: Không khẩn cấp & Không quan trọng."
    )


def parse_advice(text: str | None) -> QuadrantAdvice | None:
    """Model answer -> advice; None when it is not the expected JSON."""
    if not text:
        return None
    m = _JSON_OBJECT.search(text)
    if not m:
        return None
    try:
        data = json.loads(m.group(0))
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        quadrant = Quadrant(str(data.get("quadrant", "")).strip().upper())
    except ValueError:
        return None
    return QuadrantAdvice(quadrant=quadrant, reasoning=str(data.get("reasoning") or ""))


def _is_auth_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError))


def _is_rate_limit_error(exc: Exception) -> bool:
    return isinstance(exc, openai.RateLimitError)


def _is_connection_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.APIConnectionError, httpx.TimeoutException))


def _is_not_found_error(exc: Exception) -> bool:
    return isinstance(exc, openai.NotFoundError)


def friendly_llm_error_message(err: Exception) -> str:
    msg = str(err).strip() or "Lỗi LLM."
    if "LLM API key is not set" in msg:
        return "Chưa cấu hình LLM (thiếu API key). Đặt KTC_LLM_API_KEY trong .env."
    if "LLM model list is empty" in msg:
        return "Chưa cấu hình LLM (không có model). Đặt KTC_LLM_MODELS trong .env."
    if "LLM authentication failed" in msg:
        return "Xác thực LLM thất bại. Kiểm tra lại API key (KTC_LLM_API_KEY)."
    if "LLM is rate-limited" in msg:
        return "LLM đang bị giới hạn tần suất. Vui lòng thử lại sau."
    return msg


class OpenAIQuadrantAdvisor:
    """
    Quadrant advice from an OpenAI-compatible chat endpoint.

    Behavior:
    - Tries models in the configured order.
    - 404 (model not available) -> cooldown for an hour, try next.
    - Rate limit / network issues -> try next.
    - Auth issues -> fail fast (no retries across models).
    - An answer that is not the expected JSON -> offline heuristic result.
    """

    def __init__(self, settings: Any, *, client: OpenAI | None = None) -> None:
        api_key = getattr(settings, "llm_api_key", None)
        models = [m.strip() for m in (getattr(settings, "llm_models", None) or []) if m.strip()]

        if client is None and (not api_key or not str(api_key).strip()):
            raise RuntimeError("LLM API key is not set. Set KTC_LLM_API_KEY in your .env.")
        if not models:
            raise RuntimeError("LLM model list is empty. Set KTC_LLM_MODELS in your .env.")

        self._models = models
        self._headers: dict[str, str] = dict(getattr(settings, "extra_headers", {}) or {})
        self._fallback = OfflineQuadrantAdvisor()
        # No automatic retries: fall back across models quickly instead.
        self._client = client or OpenAI(
            base_url=str(getattr(settings, "llm_base_url", "")),
            api_key=str(api_key),
            timeout=httpx.Timeout(30.0, connect=5.0),
            max_retries=0,
        )

    def _ask(self, model: str, title: str, description: str) -> str | None:
        resp = self._client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(title, description)},
            ],
            response_format={"type": "json_object"},
            extra_headers=self._headers or None,
        )
        if not resp.choices:
            return None
        return resp.choices[0].message.content

    def analyze(self, title: str, description: str) -> QuadrantAdvice:
        last_error: Exception | None = None
        now = time.monotonic()

        for model in self._models:
            retry_at = _BAD_MODELS.get(model)
            if retry_at is not None and retry_at > now:
                continue

            logger.info("LLM: trying model=%s", model)
            try:
                text = self._ask(model, title, description)
            except Exception as e:
                last_error = e
                if _is_auth_error(e):
                    raise RuntimeError(
                        "LLM authentication failed. Check your API key (KTC_LLM_API_KEY)."
                    ) from e
                if _is_not_found_error(e):
                    _BAD_MODELS[model] = time.monotonic() + BAD_MODEL_COOLDOWN_SECONDS
                    logger.info("LLM: model not available (404): %s", model)
                elif _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                elif _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                else:
                    logger.info(
                        "LLM: error on model=%s (%s), trying next", model, e.__class__.__name__
                    )
                continue

            advice = parse_advice(text)
            if advice is None:
                logger.warning("LLM: unusable answer from model=%s; using heuristic", model)
                return self._fallback.analyze(title, description)
            logger.debug("LLM: advice from model=%s quadrant=%s", model, advice.quadrant)
            return advice

        if last_error is not None and _is_rate_limit_error(last_error):
            raise RuntimeError("LLM is rate-limited. Try again later.") from last_error
        raise RuntimeError("All LLM models failed.") from last_error
