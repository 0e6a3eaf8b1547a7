# tilemark/scheduler.py
"""
实时预览的防抖调度

参数变化后等待一段静默时间（默认 150ms）再渲染，期间的新请求覆盖旧请求，
被覆盖的请求直接丢弃而不会排队。已经开始的渲染不会被中断。
"""
import logging

from PySide6.QtCore import QObject, QTimer, Signal

from tilemark.errors import WatermarkError
from tilemark.watermark import render

logger = logging.getLogger(__name__)


class RenderScheduler(QObject):
    """
    信号:
        rendered: 渲染完成，参数为新的 RGBA 图片
        failed: 渲染失败，参数为错误信息
    """
    rendered = Signal(object)
    failed = Signal(str)

    def __init__(self, delay_ms=150, render_fn=render, parent=None):
        super().__init__(parent)
        self._render = render_fn
        self._request = None
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(delay_ms)
        self._timer.timeout.connect(self._run)

    @property
    def pending(self):
        return self._request is not None

    def request(self, oriented, spec):
        """登记最新的渲染请求并重新开始计时"""
        if self._request is not None:
            logger.debug("superseded pending preview render")
        self._request = (oriented, spec)
        self._timer.start()

    def cancel(self):
        self._timer.stop()
        self._request = None

    def flush(self):
        """立即执行尚未开始的请求"""
        self._timer.stop()
        self._run()

    def _run(self):
        request, self._request = self._request, None
        if request is None:
            return
        oriented, spec = request
        try:
            surface = self._render(oriented, spec)
        except WatermarkError as e:
            logger.error("preview render failed: %s", e)
            self.failed.emit(str(e))
            return
        self.rendered.emit(surface)
