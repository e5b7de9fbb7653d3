"""报告生成工具。"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

HEADER = ["group_key", "file_name", "status", "output_path", "message"]


@dataclass(slots=True)
class GroupOutcome:
    """报告中的一行：一个分组的最终处理结果。"""

    group_key: str
    status: str
    file_name: Optional[str] = None
    output_path: Optional[Path] = None
    message: Optional[str] = None


def write_csv_report(outcomes: Iterable[GroupOutcome], output_dir: Path, filename: str) -> Path:
    """将分组处理结果写入 CSV 报告。"""

    report_path = output_dir / filename
    with report_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(HEADER)
        for record in outcomes:
            writer.writerow(
                [
                    record.group_key,
                    record.file_name or "",
                    record.status,
                    str(record.output_path) if record.output_path else "",
                    record.message or "",
                ]
            )
    return report_path
