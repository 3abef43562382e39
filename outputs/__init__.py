"""
Outputs Module
输出层 - 条目报告的渲染与导出
"""

from .renderers import (
    PlainReportRenderer,
    StructuredReportRenderer,
    render_record,
    resolve_style,
)
from .exporter import export_result

__all__ = [
    # Renderers
    "PlainReportRenderer",
    "StructuredReportRenderer",
    "render_record",
    "resolve_style",
    # Export
    "export_result",
]
