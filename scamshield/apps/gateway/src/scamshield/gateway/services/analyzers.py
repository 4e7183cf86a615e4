"""Modality Analyzer -- 单条媒体的子智能体分析

每条 base64 媒体先在本地校验（空值、格式错误直接失败，不发起远程调用），
再发起一次要求调用 submit_analysis_result 的 completion 请求，结果格式化为三段式文本。
远程调用统一经过 RetryPolicy。
"""

import base64
import binascii
import json
from typing import Any

import structlog
from pydantic import ValidationError
from scamshield.core.models import Modality
from scamshield.provider import CompletionEndpoint, ProviderError, RetryPolicy

from .exceptions import AnalysisError, InvalidMediaError
from .prompts import (
    AUDIO_SYSTEM_PROMPT,
    AUDIO_USER_PROMPT,
    IMAGE_SYSTEM_PROMPT,
    IMAGE_USER_PROMPT,
    VIDEO_SYSTEM_PROMPT,
    VIDEO_USER_PROMPT,
)
from .report_format import AnalysisResult, format_analysis_result

log = structlog.get_logger()

ANALYSIS_TOOL_NAME = "submit_analysis_result"

# 常见图片格式的魔数
_IMAGE_SIGNATURES: list[tuple[bytes, str]] = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
]


def sniff_image_mime(raw: bytes) -> str:
    """根据魔数判断图片 MIME，无法识别时返回 image/jpeg"""
    if raw[:4] == b"RIFF" and raw[8:12] == b"WEBP":
        return "image/webp"
    for signature, mime in _IMAGE_SIGNATURES:
        if raw.startswith(signature):
            return mime
    return "image/jpeg"


def decode_media(payload_b64: str, kind: str) -> tuple[str, bytes | None]:
    """校验并解码 base64 媒体

    Returns:
        (去空白后的输入, 解码后的字节)；输入为 data URL 时字节为 None

    Raises:
        InvalidMediaError: 空输入、非 base64 的 data URL、base64 格式错误
    """
    trimmed = payload_b64.strip()
    if trimmed.startswith("data:"):
        if ";base64," in trimmed:
            return trimmed, None
        raise InvalidMediaError(f"invalid {kind} data url")
    if not trimmed:
        raise InvalidMediaError(f"empty {kind} base64")
    try:
        raw = base64.b64decode(trimmed, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidMediaError(f"invalid {kind} base64: {e}") from e
    return trimmed, raw


def analysis_tool_definition(impression_description: str) -> dict[str, Any]:
    """submit_analysis_result 工具定义"""
    return {
        "type": "function",
        "function": {
            "name": ANALYSIS_TOOL_NAME,
            "description": "提交分析结果，包含整体感受、关键内容提取和可疑点清单",
            "parameters": {
                "type": "object",
                "properties": {
                    "visual_impression": {
                        "type": "string",
                        "description": impression_description,
                    },
                    "key_content": {
                        "type": "string",
                        "description": "关键内容提取（客观信息）：提取文字信息和核心场景描述",
                    },
                    "suspicious_points": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "可疑点清单（仅列出，不判断）",
                    },
                },
                "required": ["visual_impression", "key_content", "suspicious_points"],
            },
        },
    }


class ModalityAnalyzer:
    """子智能体基类：一条媒体 -> 一次远程调用 -> 三段式文本"""

    modality: Modality = Modality.IMAGE
    agent_name: str = "modality_agent"
    system_prompt: str = ""
    user_prompt: str = ""
    impression_description: str = "整体视觉感受（主观特征）：描述整体风格、高风险视觉特征"
    max_tokens: int = 1024
    temperature: float = 0.5

    def __init__(
        self,
        endpoint: CompletionEndpoint,
        model: str,
        retry_policy: RetryPolicy,
    ) -> None:
        self._endpoint = endpoint
        self._model = model
        self._retry = retry_policy
        self._tools = [analysis_tool_definition(self.impression_description)]

    def build_media_part(self, payload_b64: str) -> dict[str, Any]:
        raise NotImplementedError

    def format_result(self, result: AnalysisResult) -> str:
        return format_analysis_result(result)

    async def analyze(self, payload_b64: str, index: int) -> str:
        """分析第 index 条媒体（从 0 开始）

        Raises:
            AnalysisError: 本地校验失败、远程调用重试耗尽、响应无法解析或为空
        """
        position = index + 1
        try:
            media_part = self.build_media_part(payload_b64)
        except InvalidMediaError as e:
            raise AnalysisError(self.modality, position, str(e)) from e

        messages = [
            {"role": "system", "content": self.system_prompt},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": self.user_prompt},
                    media_part,
                ],
            },
        ]
        action = f"create chat completion for {self.modality} {position}"
        try:
            result = await self._retry.run(
                self.agent_name,
                action,
                lambda: self._endpoint.complete(
                    messages=messages,
                    model=self._model,
                    tools=self._tools,
                    tool_choice="required",
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                ),
            )
        except ProviderError as e:
            raise AnalysisError(self.modality, position, f"API error: {e}") from e

        if result.tool_calls:
            try:
                parsed = AnalysisResult.model_validate(
                    json.loads(result.tool_calls[0].arguments or "{}")
                )
            except (ValueError, ValidationError) as e:
                raise AnalysisError(
                    self.modality, position, f"parse tool call error: {e}"
                ) from e
            log.debug("modality_analyzed", modality=self.modality, index=position)
            return self.format_result(parsed)

        if result.content.strip():
            return result.content
        raise AnalysisError(self.modality, position, "no content returned")


class ImageAnalyzer(ModalityAnalyzer):
    modality = Modality.IMAGE
    agent_name = "image_agent"
    system_prompt = IMAGE_SYSTEM_PROMPT
    user_prompt = IMAGE_USER_PROMPT

    def build_media_part(self, payload_b64: str) -> dict[str, Any]:
        trimmed, raw = decode_media(payload_b64, "image")
        url = trimmed if raw is None else f"data:{sniff_image_mime(raw)};base64,{trimmed}"
        return {"type": "image_url", "image_url": {"url": url}}


class VideoAnalyzer(ModalityAnalyzer):
    modality = Modality.VIDEO
    agent_name = "video_agent"
    system_prompt = VIDEO_SYSTEM_PROMPT
    user_prompt = VIDEO_USER_PROMPT
    impression_description = "整体视频感受（主观特征）：视频来源判定、画面风格、高风险特征"

    def build_media_part(self, payload_b64: str) -> dict[str, Any]:
        trimmed, raw = decode_media(payload_b64, "video")
        url = trimmed if raw is None else f"data:video/mp4;base64,{trimmed}"
        return {"type": "video_url", "video_url": {"url": url}}


class AudioAnalyzer(ModalityAnalyzer):
    modality = Modality.AUDIO
    agent_name = "audio_agent"
    system_prompt = AUDIO_SYSTEM_PROMPT
    user_prompt = AUDIO_USER_PROMPT
    impression_description = "音频摘要与场景描述：声音来源判定（真人/AI）、主要话题、语气特征"

    def build_media_part(self, payload_b64: str) -> dict[str, Any]:
        trimmed, raw = decode_media(payload_b64, "audio")
        data = trimmed if raw is None else f"data:;base64,{trimmed}"
        return {"type": "input_audio", "input_audio": {"data": data, "format": "mp3"}}

    def format_result(self, result: AnalysisResult) -> str:
        return format_analysis_result(result, audio=True)
