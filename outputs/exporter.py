"""
Output Exporter
把生成结果导出为文件（报告文本 / JSON）
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Union


def _json_dump(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2, default=str) + "\n"


def export_result(out_dir: Union[str, Path], result: Dict[str, Any]) -> Dict[str, Path]:
    """
    导出一次生成结果到目录。

    写入文件：
    - <site>-<sid>.txt  报告文本 (仅成功时)
    - <site>-<sid>.json 完整结果
    """
    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)

    stem = f"{result.get('site') or 'unknown'}-{result.get('sid') or 'unknown'}"
    written: Dict[str, Path] = {}

    if result.get("success") and result.get("format"):
        report_path = out_path / f"{stem}.txt"
        report_path.write_text(str(result["format"]) + "\n", encoding="utf-8")
        written["report"] = report_path

    json_path = out_path / f"{stem}.json"
    json_path.write_text(_json_dump(result), encoding="utf-8")
    written["json"] = json_path
    return written
