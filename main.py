# -*- coding: utf-8 -*-
"""
图片水印工具主程序
功能:为图片添加平铺或居中的文字水印,支持实时预览、EXIF方向校正、模板管理、批量打包导出
"""

# 标准库导入
import sys
from functools import partial
from pathlib import Path

# 第三方库导入
from PIL.ImageQt import ImageQt
from PySide6.QtWidgets import (
    QApplication, QWidget, QPushButton, QLabel, QListWidget, QListWidgetItem,
    QHBoxLayout, QVBoxLayout, QFileDialog, QSlider, QLineEdit, QComboBox,
    QMessageBox, QSpinBox, QDoubleSpinBox, QColorDialog, QCheckBox,
    QInputDialog, QGroupBox, QPlainTextEdit, QFormLayout, QSizePolicy,
)
from PySide6.QtGui import QPixmap, QImage, Qt, QColor
from PySide6.QtCore import QSize, Signal, QThread

# 本地模块导入
from tilemark.batch_worker import (
    build_archive, clear_items, load_item, new_item, process_batch,
    release_item, remove_item, replace_item, reset_item,
)
from tilemark.config import get_settings
from tilemark.errors import EmptyArchive, WatermarkError
from tilemark.exporter import export_single, resize_surface
from tilemark.image_io import is_image_file
from tilemark.logger_settings import setup_logging
from tilemark.models import ItemStatus, WatermarkSpec
from tilemark.scheduler import RenderScheduler
from tilemark.template_manager import TemplateManager
from tilemark.watermark import parse_color, render

# 全局常量
APP_NAME = "TileMark - 图片水印工具"
THUMB_SIZE = 180
STATUS_LABELS = {
    ItemStatus.PENDING: "待处理",
    ItemStatus.PROCESSING: "处理中",
    ItemStatus.COMPLETED: "已完成",
    ItemStatus.ERROR: "失败",
}


def pil_to_qpixmap(img):
    """将PIL图像转换为Qt的QPixmap对象"""
    if img.mode != "RGBA":
        img = img.convert("RGBA")
    qim = ImageQt(img)
    return QPixmap.fromImage(QImage(qim))


def css_color(value):
    """把水印颜色转换为 QColor，用于颜色按钮显示"""
    r, g, b, a = parse_color(value)
    return QColor(r, g, b, a)


class ExportWorker(QThread):
    """
    批量导出线程,避免阻塞UI线程

    信号:
        progress: (已完成数量, 总数量, 消息)
        finished_signal: 处理结束,参数为 BatchResult
    """
    progress = Signal(int, int, str)
    finished_signal = Signal(object)

    def __init__(self, items, spec, settings, fmt, quality, template):
        super().__init__()
        self.items = items
        self.spec = spec
        self.settings = settings
        self.fmt = fmt
        self.quality = quality
        self.template = template

    def run(self):
        result = process_batch(
            self.items,
            self.spec,
            fmt=self.fmt,
            quality=self.quality,
            template=self.template,
            font_path=self.settings.font_path,
            progress_callback=self.on_progress,
        )
        self.finished_signal.emit(result)

    def on_progress(self, done, total, success, message):
        prefix = "已处理" if success else "错误"
        self.progress.emit(done, total, f"{prefix}: {message}")


class MainWindow(QWidget):
    """
    主窗口

    左侧为图片列表,中间为实时预览,右侧为水印参数与导出控制
    """
    def __init__(self):
        super().__init__()
        self.setWindowTitle(APP_NAME)
        self.resize(1400, 800)
        self.setAcceptDrops(True)

        self.settings = get_settings()
        self.template_manager = TemplateManager()
        self.items = ()            # BatchItem 元组
        self.current_id = None     # 当前预览的条目 id
        self.worker = None
        self.fill_color = "#000000"
        self.stroke_color = "rgba(255, 255, 255, 0.5)"

        self.scheduler = RenderScheduler(
            self.settings.preview_debounce_ms,
            render_fn=partial(render, font_path=self.settings.font_path),
            parent=self,
        )
        self.scheduler.rendered.connect(self.show_rendered)
        self.scheduler.failed.connect(self.show_status)

        self.setup_ui()

        # 加载上一次使用的模板
        spec = self.template_manager.load_template(self.template_manager.last_used)
        self.apply_spec(spec or WatermarkSpec())

    # ---------- 界面 ----------
    def setup_ui(self):
        layout = QHBoxLayout(self)
        layout.addWidget(self.create_left_panel(), 1)
        layout.addWidget(self.create_center_panel(), 3)
        layout.addWidget(self.create_right_panel(), 1)

    def create_left_panel(self):
        panel = QWidget()
        v = QVBoxLayout(panel)
        self.list_widget = QListWidget()
        self.list_widget.setIconSize(QSize(THUMB_SIZE // 2, THUMB_SIZE // 2))
        self.list_widget.currentItemChanged.connect(self.on_thumb_changed)
        v.addWidget(self.list_widget)

        row = QHBoxLayout()
        for text, slot in (("导入", self.on_import), ("移除", self.on_remove), ("清空", self.on_clear)):
            btn = QPushButton(text)
            btn.clicked.connect(slot)
            row.addWidget(btn)
        v.addLayout(row)
        return panel

    def create_center_panel(self):
        panel = QWidget()
        v = QVBoxLayout(panel)
        self.preview_label = QLabel("拖入或导入图片开始编辑")
        self.preview_label.setAlignment(Qt.AlignCenter)
        self.preview_label.setSizePolicy(QSizePolicy.Ignored, QSizePolicy.Ignored)
        v.addWidget(self.preview_label, 1)
        self.status_label = QLabel("")
        v.addWidget(self.status_label)
        return panel

    def create_right_panel(self):
        panel = QWidget()
        v = QVBoxLayout(panel)
        v.addWidget(self.create_template_group())
        v.addWidget(self.create_text_group())
        v.addWidget(self.create_layout_group())
        v.addWidget(self.create_appearance_group())
        v.addWidget(self.create_export_group())
        v.addStretch(1)
        return panel

    def create_template_group(self):
        group = QGroupBox("模板")
        h = QHBoxLayout(group)
        self.template_combo = QComboBox()
        self.refresh_template_combo()
        h.addWidget(self.template_combo, 1)
        for text, slot in (("保存", self.save_current_as_template),
                           ("加载", self.load_selected_template),
                           ("删除", self.delete_selected_template)):
            btn = QPushButton(text)
            btn.clicked.connect(slot)
            h.addWidget(btn)
        return group

    def create_text_group(self):
        group = QGroupBox("水印文字")
        v = QVBoxLayout(group)
        self.text_input = QPlainTextEdit()
        self.text_input.setPlaceholderText("支持多行,以及 {YYYY-MM-DD} {HH:mm} 等日期占位符")
        self.text_input.setFixedHeight(80)
        self.text_input.textChanged.connect(self.on_param_changed)
        v.addWidget(self.text_input)
        return group

    def _spin(self, minimum, maximum, suffix=" px"):
        spin = QSpinBox()
        spin.setRange(minimum, maximum)
        spin.setSuffix(suffix)
        spin.valueChanged.connect(self.on_param_changed)
        return spin

    def create_layout_group(self):
        group = QGroupBox("布局")
        form = QFormLayout(group)
        self.tiled_cb = QCheckBox("铺满")
        self.tiled_cb.toggled.connect(self.on_param_changed)
        form.addRow(self.tiled_cb)
        self.spacing_spin = self._spin(0, 500)
        form.addRow("间距", self.spacing_spin)
        self.line_height_spin = self._spin(10, 400)
        form.addRow("行高", self.line_height_spin)
        self.fontsize_spin = self._spin(8, 300)
        form.addRow("字号", self.fontsize_spin)
        return group

    def create_appearance_group(self):
        group = QGroupBox("外观")
        form = QFormLayout(group)
        self.opacity_slider = QSlider(Qt.Horizontal)
        self.opacity_slider.setRange(0, 100)
        self.opacity_slider.valueChanged.connect(self.on_param_changed)
        form.addRow("透明度", self.opacity_slider)
        self.angle_spin = QDoubleSpinBox()
        self.angle_spin.setRange(0, 359)
        self.angle_spin.setWrapping(True)
        self.angle_spin.setSuffix(" °")
        self.angle_spin.valueChanged.connect(self.on_param_changed)
        form.addRow("角度", self.angle_spin)
        self.color_btn = QPushButton()
        self.color_btn.clicked.connect(self.choose_color)
        form.addRow("颜色", self.color_btn)
        self.stroke_spin = self._spin(0, 20)
        form.addRow("描边", self.stroke_spin)
        self.stroke_color_btn = QPushButton()
        self.stroke_color_btn.clicked.connect(self.choose_stroke_color)
        form.addRow("描边颜色", self.stroke_color_btn)
        return group

    def create_export_group(self):
        group = QGroupBox("导出")
        form = QFormLayout(group)
        self.exif_cb = QCheckBox("根据EXIF信息自动旋转图片")
        self.exif_cb.setChecked(self.settings.apply_exif_rotation)
        self.exif_cb.toggled.connect(self.on_exif_toggled)
        form.addRow(self.exif_cb)
        self.format_combo = QComboBox()
        self.format_combo.addItems(["png", "jpeg"])
        self.format_combo.setCurrentText(
            "jpeg" if self.settings.output_format in ("jpg", "jpeg") else "png")
        form.addRow("格式", self.format_combo)
        self.quality_spin = QSpinBox()
        self.quality_spin.setRange(1, 100)
        self.quality_spin.setValue(self.settings.jpeg_quality)
        form.addRow("JPEG质量", self.quality_spin)
        self.name_template_input = QLineEdit(self.settings.filename_template)
        form.addRow("文件名", self.name_template_input)
        self.export_btn = QPushButton("导出当前图片")
        self.export_btn.clicked.connect(self.on_export)
        form.addRow(self.export_btn)
        self.batch_btn = QPushButton("批量保存 (zip)")
        self.batch_btn.clicked.connect(self.on_batch_export)
        form.addRow(self.batch_btn)
        return group

    # ---------- 参数 ----------
    def collect_spec(self):
        """收集当前界面上的水印参数"""
        return WatermarkSpec(
            text=self.text_input.toPlainText(),
            tiled=self.tiled_cb.isChecked(),
            spacing=self.spacing_spin.value(),
            line_height=self.line_height_spin.value(),
            font_size=self.fontsize_spin.value(),
            opacity=self.opacity_slider.value(),
            angle=self.angle_spin.value(),
            color=self.fill_color,
            stroke_width=self.stroke_spin.value(),
            stroke_color=self.stroke_color,
        )

    def apply_spec(self, spec):
        """将参数应用到界面控件"""
        widgets = (self.text_input, self.tiled_cb, self.spacing_spin, self.line_height_spin,
                   self.fontsize_spin, self.opacity_slider, self.angle_spin, self.stroke_spin)
        for w in widgets:
            w.blockSignals(True)
        self.text_input.setPlainText(spec.text)
        self.tiled_cb.setChecked(spec.tiled)
        self.spacing_spin.setValue(int(spec.spacing))
        self.line_height_spin.setValue(int(spec.line_height))
        self.fontsize_spin.setValue(int(spec.font_size))
        self.opacity_slider.setValue(int(spec.opacity))
        self.angle_spin.setValue(float(spec.angle))
        self.stroke_spin.setValue(int(spec.stroke_width))
        for w in widgets:
            w.blockSignals(False)
        self.set_fill_color(spec.color)
        self.set_stroke_color(spec.stroke_color)
        self.on_param_changed()

    def _paint_color_button(self, btn, value):
        color = css_color(value)
        btn.setText(value)
        btn.setStyleSheet(
            f"background-color: {color.name()}; "
            f"color: {'white' if color.lightness() < 128 else 'black'};"
        )

    def set_fill_color(self, value):
        self.fill_color = value
        self._paint_color_button(self.color_btn, value)

    def set_stroke_color(self, value):
        self.stroke_color = value
        self._paint_color_button(self.stroke_color_btn, value)

    def _pick_color(self, current, title):
        color = QColorDialog.getColor(css_color(current), self, title,
                                      QColorDialog.ShowAlphaChannel)
        if not color.isValid():
            return None
        if color.alpha() == 255:
            return color.name().upper()
        return f"rgba({color.red()}, {color.green()}, {color.blue()}, {color.alphaF():.2f})"

    def choose_color(self):
        value = self._pick_color(self.fill_color, "选择文字颜色")
        if value:
            self.set_fill_color(value)
            self.on_param_changed()

    def choose_stroke_color(self):
        value = self._pick_color(self.stroke_color, "选择描边颜色")
        if value:
            self.set_stroke_color(value)
            self.on_param_changed()

    def on_param_changed(self, *args):
        """参数变化后请求重新渲染预览(防抖)"""
        item = self.current_item()
        if item is None or item.oriented is None:
            return
        self.scheduler.request(item.oriented, self.collect_spec())

    # ---------- 模板 ----------
    def refresh_template_combo(self):
        self.template_combo.clear()
        self.template_combo.addItems(list(self.template_manager.templates.keys()))
        if self.template_manager.last_used:
            self.template_combo.setCurrentText(self.template_manager.last_used)

    def save_current_as_template(self):
        name, ok = QInputDialog.getText(self, "保存模板", "模板名称:")
        if ok and name:
            self.template_manager.save_template(name, self.collect_spec())
            self.refresh_template_combo()

    def load_selected_template(self):
        spec = self.template_manager.load_template(self.template_combo.currentText())
        if spec:
            self.apply_spec(spec)

    def delete_selected_template(self):
        name = self.template_combo.currentText()
        if name:
            self.template_manager.delete_template(name)
            self.refresh_template_combo()

    # ---------- 图片列表 ----------
    def dragEnterEvent(self, event):
        if event.mimeData().hasUrls():
            event.acceptProposedAction()

    def dropEvent(self, event):
        self.add_paths([u.toLocalFile() for u in event.mimeData().urls()])

    def on_import(self):
        files, _ = QFileDialog.getOpenFileNames(
            self, "选择图片", "", "Images (*.png *.jpg *.jpeg *.bmp *.tif *.tiff *.webp)")
        self.add_paths(files)

    def add_paths(self, paths):
        """添加图片到列表"""
        for p in paths:
            p = Path(p)
            files = [f for f in p.rglob("*") if is_image_file(f)] if p.is_dir() else [p]
            for f in files:
                if f.is_file() and is_image_file(f):
                    self.add_item(f)

    def add_item(self, path):
        try:
            data = path.read_bytes()
        except OSError as e:
            self.show_status(f"无法读取 {path.name}: {e}")
            return
        item = load_item(new_item(path.name, data), self.exif_cb.isChecked(), THUMB_SIZE)
        self.items = self.items + (item,)
        row = QListWidgetItem(self.item_label(item))
        row.setData(Qt.UserRole, item.id)
        if item.preview is not None:
            row.setIcon(pil_to_qpixmap(item.preview))
        self.list_widget.addItem(row)
        if self.current_id is None:
            self.list_widget.setCurrentItem(row)

    @staticmethod
    def item_label(item):
        label = f"{item.name}  [{STATUS_LABELS[item.status]}]"
        return f"{label} {item.error}" if item.error else label

    def current_item(self):
        return next((i for i in self.items if i.id == self.current_id), None)

    def on_thumb_changed(self, current, previous):
        self.current_id = current.data(Qt.UserRole) if current else None
        item = self.current_item()
        if item is None or item.oriented is None:
            self.scheduler.cancel()
            self.preview_label.clear()
            return
        # 切换图片时立即渲染,不等待防抖
        self.scheduler.request(item.oriented, self.collect_spec())
        self.scheduler.flush()

    def on_remove(self):
        row = self.list_widget.currentRow()
        if row < 0:
            return
        item_id = self.list_widget.item(row).data(Qt.UserRole)
        self.items = remove_item(self.items, item_id)
        self.list_widget.takeItem(row)

    def on_clear(self):
        self.scheduler.cancel()
        self.items = clear_items(self.items)
        self.current_id = None
        self.list_widget.clear()
        self.preview_label.clear()

    def on_exif_toggled(self, checked):
        """切换EXIF校正后重新读取已导入的图片"""
        reloaded = []
        for item in self.items:
            release_item(item)
            reloaded.append(load_item(reset_item(item), checked, THUMB_SIZE))
        self.items = tuple(reloaded)
        self.refresh_item_labels()
        self.on_param_changed()

    def refresh_item_labels(self):
        for row in range(self.list_widget.count()):
            widget_item = self.list_widget.item(row)
            item = next((i for i in self.items if i.id == widget_item.data(Qt.UserRole)), None)
            if item is not None:
                widget_item.setText(self.item_label(item))
                if item.preview is not None:
                    widget_item.setIcon(pil_to_qpixmap(item.preview))

    # ---------- 预览 ----------
    def show_rendered(self, surface):
        preview = resize_surface(surface, self.settings.preview_max_size)
        pix = pil_to_qpixmap(preview)
        self.preview_label.setPixmap(
            pix.scaled(self.preview_label.size(), Qt.KeepAspectRatio, Qt.SmoothTransformation))
        self.show_status(f"{surface.width} × {surface.height}")

    def show_status(self, message):
        self.status_label.setText(message)

    # ---------- 导出 ----------
    def on_export(self):
        """导出当前图片"""
        item = self.current_item()
        if item is None or item.oriented is None:
            QMessageBox.warning(self, "提示", "请先选择一张图片")
            return
        fmt = self.format_combo.currentText()
        try:
            data, filename = export_single(
                item.oriented, self.collect_spec(), item.name,
                fmt=fmt, quality=self.quality_spin.value(),
                template=self.name_template_input.text(),
                font_path=self.settings.font_path,
            )
        except WatermarkError as e:
            QMessageBox.critical(self, "导出失败", str(e))
            return
        path, _ = QFileDialog.getSaveFileName(self, "保存图片", filename)
        if path:
            Path(path).write_bytes(data)
            self.show_status(f"已保存: {path}")

    def on_batch_export(self):
        """批量处理并打包为 zip"""
        if not self.items:
            QMessageBox.warning(self, "提示", "请先添加图片")
            return
        # 之前已完成的条目需要显式重置后才能再次处理
        self.items = tuple(
            reset_item(i) if i.status is ItemStatus.COMPLETED else i for i in self.items
        )
        self.export_btn.setEnabled(False)
        self.batch_btn.setEnabled(False)
        self.worker = ExportWorker(
            self.items, self.collect_spec(), self.settings,
            self.format_combo.currentText(), self.quality_spin.value(),
            self.name_template_input.text(),
        )
        self.worker.progress.connect(self.on_export_progress)
        self.worker.finished_signal.connect(self.on_batch_finished)
        self.worker.start()

    def on_export_progress(self, done, total, message):
        self.show_status(f"[{done}/{total}] {message}")

    def on_batch_finished(self, result):
        for item in result.items:
            self.items = replace_item(self.items, item)
        self.refresh_item_labels()
        self.export_btn.setEnabled(True)
        self.batch_btn.setEnabled(True)
        try:
            data = build_archive(result)
        except EmptyArchive:
            QMessageBox.warning(self, "提示", "没有可导出的图片")
            return
        path, _ = QFileDialog.getSaveFileName(
            self, "保存压缩包", self.settings.archive_name, "Zip (*.zip)")
        if path:
            Path(path).write_bytes(data)
            QMessageBox.information(
                self, "导出完成",
                f"成功导出 {len(result.completed)} 张图片,失败 {len(result.failed)} 张")


def main():
    setup_logging(get_settings().log_level)
    app = QApplication(sys.argv)
    w = MainWindow()
    w.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
