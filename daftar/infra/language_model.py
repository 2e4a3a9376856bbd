"""کلاینت مدل زبانی سازگار با OpenAI Chat Completions (ابری یا محلی).

نسخهٔ ابری پاسخ JSON اجباری دارد؛ سرور محلی فقط متن برمی‌گرداند و ممکن است
JSON را داخل بلوک کد ```json بپیچد، پس پاسخ پیش از تفسیر پاک‌سازی می‌شود.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping

from openai import OpenAI, OpenAIError

from daftar.core.common.errors import ExtractionError
from daftar.core.config_loader import LanguageModelSettings, ModelEndpoint

__all__ = ["LanguageModelClient", "parse_model_json", "EXTRACTION_FAILED_MESSAGE"]

logger = logging.getLogger(__name__)

EXTRACTION_FAILED_MESSAGE = "خطا در استخراج اطلاعات"
MISSING_KEY_MESSAGE = "کلید دسترسی مدل زبانی تنظیم نشده است"

_RE_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def parse_model_json(content: str | None) -> Mapping[str, Any]:
    """تفسیر پاسخ مدل به dict؛ هر خروجی دیگری :class:`ExtractionError` است.

    >>> parse_model_json('```json\\n{"student_name": "علی"}\\n```')["student_name"]
    'علی'
    """

    text = (content or "").strip()
    fenced = _RE_CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)
    if not text.startswith("{"):
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ExtractionError(EXTRACTION_FAILED_MESSAGE, detail="model output has no JSON object")
        text = text[start : end + 1]
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ExtractionError(EXTRACTION_FAILED_MESSAGE, detail=f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ExtractionError(EXTRACTION_FAILED_MESSAGE, detail="model output is not an object")
    return data


class LanguageModelClient:
    """پوشش نازک روی ``OpenAI`` برای یک مقصد مشخص.

    ``client`` برای تست‌ها قابل تزریق است و باید رابط
    ``client.chat.completions.create(...)`` را داشته باشد.
    """

    def __init__(self, endpoint: ModelEndpoint, *, timeout: float = 30.0, client: Any = None) -> None:
        self.endpoint = endpoint
        if client is None:
            if not endpoint.api_key:
                raise ExtractionError(MISSING_KEY_MESSAGE, detail=f"source={endpoint.source}")
            client = OpenAI(api_key=endpoint.api_key, base_url=endpoint.base_url, timeout=timeout)
        self._client = client

    @classmethod
    def from_settings(
        cls, settings: LanguageModelSettings, source: str | None, *, client: Any = None
    ) -> "LanguageModelClient":
        return cls(settings.endpoint(source), timeout=settings.timeout_seconds, client=client)

    def complete_json(self, system_prompt: str, user_text: str) -> Mapping[str, Any]:
        response_format = {"type": "json_object"} if self.endpoint.json_response else {"type": "text"}
        try:
            completion = self._client.chat.completions.create(
                model=self.endpoint.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_text},
                ],
                temperature=self.endpoint.temperature,
                response_format=response_format,
            )
        except OpenAIError as exc:
            logger.warning("language model call failed (%s): %s", self.endpoint.source, exc)
            raise ExtractionError(EXTRACTION_FAILED_MESSAGE, detail=str(exc)) from exc
        try:
            content = completion.choices[0].message.content
        except (AttributeError, IndexError) as exc:
            raise ExtractionError(EXTRACTION_FAILED_MESSAGE, detail="empty completion") from exc
        return parse_model_json(content)
