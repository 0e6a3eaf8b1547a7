# tilemark/template_manager.py
import json
import logging
from pathlib import Path

from tilemark.config import get_settings
from tilemark.models import WatermarkSpec
from tilemark.watermark import parse_color

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "默认模板"

_NUMBER_FIELDS = ("spacing", "line_height", "font_size", "opacity", "angle", "stroke_width")


def validate_spec(spec):
    """检查模板中的参数能否用于渲染，不合法时抛出 ValueError"""
    if not isinstance(spec.text, str):
        raise ValueError(f"text must be a string: {spec.text!r}")
    if not isinstance(spec.tiled, bool):
        raise ValueError(f"tiled must be a boolean: {spec.tiled!r}")
    for name in _NUMBER_FIELDS:
        value = getattr(spec, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{name} must be a number: {value!r}")
    if spec.font_size <= 0 or spec.line_height <= 0:
        raise ValueError("font_size and line_height must be positive")
    parse_color(spec.color)
    parse_color(spec.stroke_color)
    return spec


class TemplateManager:
    """水印参数模板，保存在 JSON 文件中"""

    def __init__(self, path=None):
        self.path = Path(path) if path else get_settings().templates_file
        self.templates = {}
        self.last_used = None
        self.load_templates()

    def load_templates(self):
        """加载模板文件，不存在或损坏时初始化默认模板"""
        if self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                self.templates = data.get("templates", {})
                self.last_used = data.get("last_used")
                return self.templates
            except (OSError, ValueError) as e:
                logger.warning("无法读取模板文件 %s: %s", self.path, e)
        self.templates = {DEFAULT_TEMPLATE: WatermarkSpec().to_dict()}
        self.last_used = DEFAULT_TEMPLATE
        self.save_templates()
        return self.templates

    def save_templates(self):
        """保存模板文件"""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(
                {"templates": self.templates, "last_used": self.last_used},
                f, indent=4, ensure_ascii=False
            )

    def save_template(self, name, spec):
        """保存当前参数为模板"""
        self.templates[name] = spec.to_dict()
        self.last_used = name
        self.save_templates()

    def load_template(self, name):
        """
        加载指定模板，返回 WatermarkSpec；模板不存在时返回 None。
        模板内容不合法时记录警告并返回默认参数。
        """
        if name not in self.templates:
            return None
        self.last_used = name
        self.save_templates()
        try:
            return validate_spec(WatermarkSpec.from_dict(self.templates[name]))
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("模板 %s 无效，使用默认参数: %s", name, e)
            return WatermarkSpec()

    def delete_template(self, name):
        """删除模板"""
        if name in self.templates:
            del self.templates[name]
            # 删的是当前模板时回退到默认模板
            if self.last_used == name:
                self.last_used = DEFAULT_TEMPLATE if DEFAULT_TEMPLATE in self.templates else None
            self.save_templates()
