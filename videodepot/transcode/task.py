"""
转码任务数据模型

定义转码任务的数据结构和状态管理。
"""

import time
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Dict, Any


class TaskStatus(Enum):
    """任务状态枚举"""
    STARTING = "starting"    # 启动中
    RUNNING = "running"      # 运行中
    COMPLETED = "completed"  # 已完成
    ERROR = "error"          # 错误


class Operation(Enum):
    """转码操作类型"""
    CONVERT = "convert"      # 更换编码格式
    COMPRESS = "compress"    # 压缩
    SUBTITLES = "subtitles"  # 提取字幕


@dataclass
class TranscodeTask:
    """转码任务数据模型

    输入输出都是存储目录中的文件名，路径在创建任务时解析。
    """

    task_id: str
    operation: Operation
    input_filename: str
    output_filename: str

    input_path: str = ""
    output_path: str = ""

    # 操作参数，如 video_codec / crf / stream_index
    params: Dict[str, Any] = field(default_factory=dict)

    status: TaskStatus = TaskStatus.STARTING
    error: Optional[str] = None

    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    completed_at: Optional[float] = None

    def __post_init__(self):
        if isinstance(self.status, str):
            self.status = TaskStatus(self.status)
        if isinstance(self.operation, str):
            self.operation = Operation(self.operation)

    def mark_running(self):
        """标记为运行中"""
        self.status = TaskStatus.RUNNING
        self.updated_at = time.time()
        if self.started_at is None:
            self.started_at = time.time()

    def mark_completed(self):
        """标记为已完成"""
        self.status = TaskStatus.COMPLETED
        self.updated_at = time.time()
        self.completed_at = time.time()

    def mark_error(self, error: str):
        """标记为错误

        Args:
            error: 错误信息
        """
        self.status = TaskStatus.ERROR
        self.error = error
        self.updated_at = time.time()
        self.completed_at = time.time()

    def is_active(self) -> bool:
        return self.status in (TaskStatus.STARTING, TaskStatus.RUNNING)

    def is_finished(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.ERROR)

    def get_elapsed_time(self) -> float:
        """获取任务已运行时间（秒）"""
        if self.started_at is None:
            return 0
        end_time = self.completed_at or time.time()
        return end_time - self.started_at

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（用于 API 响应），不包含文件绝对路径"""
        result = {
            "id": self.task_id,
            "operation": self.operation.value,
            "input_filename": self.input_filename,
            "output_filename": self.output_filename,
            "params": self.params,
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "elapsed": self.get_elapsed_time(),
        }

        if self.started_at:
            result["started_at"] = self.started_at
        if self.completed_at:
            result["completed_at"] = self.completed_at
        if self.error:
            result["error"] = self.error

        return result
