"""
LLM客户端 - Anthropic Messages API（工具调用）
"""
import logging
import os
from typing import Any, Dict, List, Optional

from anthropic import AsyncAnthropic

from .types import ContentBlock, Message, ModelTurn, TextBlock, ToolInvocation

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_MAX_TOKENS = 4096


class LLMClient:
    """LLM客户端封装"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: Optional[AsyncAnthropic] = None
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        self.client = client or AsyncAnthropic(
            api_key=self.api_key,
            base_url=base_url
        )

    async def generate(
        self,
        messages: List[Message],
        tools: Optional[List[Dict[str, Any]]] = None,
        system_prompt: Optional[str] = None
    ) -> ModelTurn:
        """请求下一轮模型响应"""
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [msg.to_dict() for msg in messages],
        }
        if system_prompt:
            kwargs["system"] = system_prompt
        if tools:
            kwargs["tools"] = tools

        response = await self.client.messages.create(**kwargs)
        logger.debug(
            f"Model turn: stop_reason={response.stop_reason}, blocks={len(response.content)}"
        )
        return ModelTurn(
            content=self._parse_content(response.content),
            stop_reason=response.stop_reason
        )

    @staticmethod
    def _parse_content(blocks) -> List[ContentBlock]:
        """转换响应内容块，保持原有顺序"""
        content: List[ContentBlock] = []
        for block in blocks:
            if block.type == "text":
                content.append(TextBlock(text=block.text))
            elif block.type == "tool_use":
                content.append(ToolInvocation(
                    id=block.id,
                    name=block.name,
                    input=dict(block.input or {})
                ))
            else:
                logger.debug(f"Skipping unsupported content block: {block.type}")
        return content
