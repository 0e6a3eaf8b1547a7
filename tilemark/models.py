# tilemark/models.py
"""
数据模型：水印参数、已定向图片、批处理条目、压缩包条目。
所有记录都是不可变的，状态变化通过生成新记录完成。
"""
from __future__ import annotations

import dataclasses
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from PIL import Image

from tilemark.orientation import Orientation, corrected_dimensions, to_orientation

DEFAULT_TEXT = "仅供办理XX业务使用,他用无效"


@dataclass(frozen=True)
class WatermarkSpec:
    """一次渲染使用的水印参数（未缩放的逻辑像素值）"""

    text: str = DEFAULT_TEXT
    tiled: bool = True
    spacing: float = 70
    line_height: float = 90
    font_size: float = 60
    opacity: float = 60          # 0..100
    angle: float = 30            # 度，作用于水印层而不是底图
    color: str = "#000000"
    stroke_width: float = 1
    stroke_color: str = "rgba(255, 255, 255, 0.5)"

    def replace(self, **changes) -> "WatermarkSpec":
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "WatermarkSpec":
        names = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})


@dataclass(frozen=True)
class OrientedImage:
    """解码后的图片及其方向码、校正后的尺寸。每个源文件只生成一次。"""

    source: Image.Image
    orientation: Orientation
    width: int
    height: int

    @classmethod
    def from_source(cls, image: Image.Image, code: int = 1) -> "OrientedImage":
        orientation = to_orientation(code)
        width, height = corrected_dimensions(image.width, image.height, orientation)
        return cls(source=image, orientation=orientation, width=width, height=height)


class ItemStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.COMPLETED, ItemStatus.ERROR)


@dataclass(frozen=True)
class BatchItem:
    name: str
    data: bytes = field(repr=False)
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    oriented: Optional[OrientedImage] = field(default=None, repr=False)
    surface: Optional[Image.Image] = field(default=None, repr=False)
    preview: Any = field(default=None, repr=False)
    status: ItemStatus = ItemStatus.PENDING
    error: Optional[str] = None

    def transition(self, status: ItemStatus, **changes) -> "BatchItem":
        if self.status.is_terminal:
            raise ValueError(f"item {self.id} is already {self.status.value}")
        return dataclasses.replace(self, status=status, **changes)


@dataclass(frozen=True)
class ExportArchiveEntry:
    filename: str
    data: bytes = field(repr=False)
