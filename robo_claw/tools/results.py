"""
工具结果映射 - 把仿真端返回的原始结果转换为多模态内容块
"""
import json
from typing import Any, Dict, List

from ..core.types import ImageBlock, ResultBlock, TextBlock, ToolResult


# (字段名, 图片后的说明文字)
IMAGE_FIELDS = (
    ("head_camera_image", "[Head camera view above]"),
    ("orbit_camera_image", "[Orbit camera view above]"),
)

IMAGE_MEDIA_TYPE = "image/png"

EMPTY_RESULT_TEXT = "Command executed successfully."


def build_result_blocks(raw: Dict[str, Any]) -> List[ResultBlock]:
    """
    构建结果内容块

    - 带 error 字段时只返回一条错误文本
    - 每张图片后紧跟一条说明文字
    - 其余字段合并为一条 JSON 文本
    - 结果为空时返回默认的成功文本
    """
    if raw.get("error"):
        return [TextBlock(text=f"Error: {raw['error']}")]

    blocks: List[ResultBlock] = []
    for field_name, caption in IMAGE_FIELDS:
        data = raw.get(field_name)
        if data:
            blocks.append(ImageBlock(data=data, media_type=IMAGE_MEDIA_TYPE))
            blocks.append(TextBlock(text=caption))

    image_keys = {field_name for field_name, _ in IMAGE_FIELDS}
    remaining = {key: value for key, value in raw.items() if key not in image_keys}
    if remaining:
        blocks.append(TextBlock(text=json.dumps(remaining, indent=2, ensure_ascii=False, default=str)))

    if not blocks:
        blocks.append(TextBlock(text=EMPTY_RESULT_TEXT))
    return blocks


def build_tool_result(tool_use_id: str, raw: Dict[str, Any]) -> ToolResult:
    """构建带调用ID的工具结果"""
    return ToolResult(tool_use_id=tool_use_id, content=build_result_blocks(raw))
