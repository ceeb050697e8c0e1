"""
Receipt extraction via OpenAI.

The model is asked for a JSON object; what comes back is still untrusted
text, so callers run it through parse_analysis() which decides between
three outcomes: success, a domain error reported by the model
("Not a receipt", ...), or text that is not a usable JSON object.
"""

import base64
import json
import logging
from dataclasses import dataclass
from typing import Optional, Union

from openai import OpenAI
from pydantic import ValidationError

from unibon.agents.prompts import (
    IMAGE_ANALYSIS_INSTRUCTION,
    RECEIPT_ANALYSIS_PROMPT,
    TEXT_ANALYSIS_TEMPLATE,
)
from unibon.agents.schemas import ReceiptAnalysisResult
from unibon.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


class MissingAPIKeyError(Exception):
    """No API key was supplied and no global fallback is configured."""


@dataclass
class ExtractionSuccess:
    result: ReceiptAnalysisResult


@dataclass
class ExtractionDomainError:
    message: str


@dataclass
class ExtractionParseFailure:
    raw: str
    reason: str


ExtractionOutcome = Union[ExtractionSuccess, ExtractionDomainError, ExtractionParseFailure]


def parse_base64_image(image: str) -> tuple[str, str]:
    """
    Split a data URI into (mime_type, base64 payload).

    Bare base64 strings are assumed to be JPEG.
    """
    if ";base64," in image:
        header, payload = image.split(";base64,", 1)
        return header.replace("data:", ""), payload
    return DEFAULT_MIME_TYPE, image


def build_data_uri(content: bytes, file_path: str) -> str:
    """Wrap downloaded image bytes as a data URI, PNG by extension else JPEG."""
    mime_type = "image/png" if file_path.lower().endswith(".png") else DEFAULT_MIME_TYPE
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def _resolve_api_key(api_key: Optional[str]) -> str:
    key = api_key or get_settings().openai_api_key
    if not key:
        raise MissingAPIKeyError("No OpenAI API key configured")
    return key


def _complete(api_key: Optional[str], user_content) -> str:
    settings = get_settings()
    client = OpenAI(api_key=_resolve_api_key(api_key))

    response = client.chat.completions.create(
        model=settings.extraction_model,
        messages=[
            {"role": "system", "content": RECEIPT_ANALYSIS_PROMPT},
            {"role": "user", "content": user_content},
        ],
        response_format={"type": "json_object"},
        temperature=0,
    )

    return response.choices[0].message.content or ""


def analyze_receipt_image(image: str, api_key: Optional[str] = None) -> str:
    """
    Send a receipt image to the vision model.

    Args:
        image: data URI or bare base64 string
        api_key: caller's key; falls back to OPENAI_API_KEY

    Returns:
        Raw model output (expected to be JSON, not guaranteed)
    """
    mime_type, image_base64 = parse_base64_image(image)
    logger.info(f"Analyzing receipt image ({mime_type}, {len(image_base64)} base64 chars)")

    return _complete(api_key, [
        {"type": "text", "text": IMAGE_ANALYSIS_INSTRUCTION},
        {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{image_base64}"}},
    ])


def analyze_receipt_text(text: str, api_key: Optional[str] = None) -> str:
    """Send a free-form expense description to the model."""
    logger.info(f"Analyzing receipt text ({len(text)} chars)")
    return _complete(api_key, TEXT_ANALYSIS_TEMPLATE.format(text=text))


def parse_analysis(raw: str) -> ExtractionOutcome:
    """Decide what the model's raw output means."""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        return ExtractionParseFailure(raw=raw, reason=str(e))

    if not isinstance(data, dict):
        return ExtractionParseFailure(raw=raw, reason="Expected a JSON object")

    error = data.get("error")
    if error:
        return ExtractionDomainError(message=str(error))

    try:
        return ExtractionSuccess(result=ReceiptAnalysisResult.model_validate(data))
    except ValidationError as e:
        return ExtractionParseFailure(raw=raw, reason=str(e))
