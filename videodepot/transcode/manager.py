"""
转码任务管理器

负责转码任务的生命周期管理：
- 校验输入输出文件并创建任务
- 同步执行 FFmpeg
- 记录任务状态，供查询接口使用
"""

import uuid
import threading
import logging
from typing import Dict, Optional, List, Any

from ..errors import InvalidRequest, VideoDepotError
from ..storage import MediaStorage
from .config import TranscodeConfig
from .task import TranscodeTask, TaskStatus, Operation
from .ffprobe import FFprobeRunner
from .ffmpeg import FFmpegRunner

logger = logging.getLogger(__name__)

# 保留的已结束任务数量
MAX_FINISHED_TASKS = 100


class TranscodeManager:
    """转码任务管理器"""

    def __init__(
        self,
        config: TranscodeConfig,
        storage: MediaStorage,
        ffmpeg_runner: Optional[FFmpegRunner] = None,
        ffprobe_runner: Optional[FFprobeRunner] = None
    ):
        """初始化转码管理器

        Args:
            config: 转码配置
            storage: 视频存储目录
            ffmpeg_runner: FFmpeg 运行器，默认根据配置创建
            ffprobe_runner: FFprobe 运行器，默认根据配置创建
        """
        self.config = config
        self.storage = storage
        self.tasks: Dict[str, TranscodeTask] = {}
        self.lock = threading.RLock()
        self.ffmpeg_runner = ffmpeg_runner or FFmpegRunner(config)
        self.ffprobe_runner = ffprobe_runner or FFprobeRunner(config.ffprobe_path)

    def get_task(self, task_id: str) -> Optional[TranscodeTask]:
        with self.lock:
            return self.tasks.get(task_id)

    def get_all_tasks(self) -> List[Dict[str, Any]]:
        with self.lock:
            return [task.to_dict() for task in self.tasks.values()]

    def _get_active_count(self) -> int:
        with self.lock:
            return sum(1 for task in self.tasks.values() if task.is_active())

    def get_status_summary(self) -> Dict[str, int]:
        """获取各状态任务数量"""
        summary = {status.value: 0 for status in TaskStatus}
        with self.lock:
            for task in self.tasks.values():
                summary[task.status.value] += 1
        summary["total"] = sum(summary.values())
        return summary

    def create_task(
        self,
        operation: Operation,
        input_filename: str,
        output_filename: str,
        params: Optional[Dict[str, Any]] = None
    ) -> TranscodeTask:
        """创建转码任务

        Args:
            operation: 转码操作
            input_filename: 输入文件名（必须已存在）
            output_filename: 输出文件名（已存在时覆盖）
            params: 操作参数

        Returns:
            TranscodeTask 对象

        Raises:
            InvalidRequest: 参数缺失、输入输出相同或字幕流不存在
            FilenameInvalid: 文件名不合法
            NotFound: 输入文件不存在
            VideoDepotError: 达到并发上限（503）
        """
        if not input_filename or not output_filename:
            raise InvalidRequest("Input and output filenames are required")
        if input_filename == output_filename:
            raise InvalidRequest("Input and output filenames must differ")

        stored = self.storage.stat(input_filename)
        output_path = self.storage.path_for(output_filename)
        params = dict(params or {})

        if operation == Operation.SUBTITLES:
            self._check_subtitle_stream(stored.path, int(params.get("stream_index", 0)))

        task = TranscodeTask(
            task_id=uuid.uuid4().hex,
            operation=operation,
            input_filename=input_filename,
            output_filename=output_filename,
            input_path=stored.path,
            output_path=output_path,
            params=params,
        )

        with self.lock:
            if self._get_active_count() >= self.config.max_concurrent_tasks:
                raise VideoDepotError("Maximum concurrent tasks reached", status_code=503)
            self.tasks[task.task_id] = task
            self._prune_finished()

        return task

    def _check_subtitle_stream(self, path: str, stream_index: int):
        if stream_index < 0:
            raise InvalidRequest("streamIndex must be non-negative")
        success, count, error = self.ffprobe_runner.count_subtitle_streams(
            path, timeout=self.config.probe_timeout
        )
        if not success:
            # 探测失败时交给 ffmpeg 报错
            logger.warning(f"Failed to probe subtitle streams: {error}")
            return
        if stream_index >= count:
            raise InvalidRequest(f"No subtitle stream #{stream_index} in input (found {count})")

    def run_task(self, task: TranscodeTask) -> bool:
        """执行转码任务（阻塞直到 FFmpeg 结束）

        Args:
            task: 转码任务

        Returns:
            是否成功，失败原因记录在 task.error
        """
        task.mark_running()
        try:
            command = self.ffmpeg_runner.build_command(task)
            logger.info(f"Starting FFmpeg for task {task.task_id}: {self.ffmpeg_runner.get_command_line_string(command)}")
            success, error = self.ffmpeg_runner.run(command, timeout=self.config.task_timeout)
        except Exception as e:
            task.mark_error(str(e))
            raise

        if success:
            task.mark_completed()
            logger.info(f"Task {task.task_id} completed in {task.get_elapsed_time():.1f}s")
        else:
            task.mark_error(error or "ffmpeg failed")
            logger.error(f"Task {task.task_id} failed: {task.error}")
        return success

    def _prune_finished(self):
        finished = [t for t in self.tasks.values() if t.is_finished()]
        if len(finished) <= MAX_FINISHED_TASKS:
            return
        finished.sort(key=lambda t: t.completed_at or 0)
        for task in finished[:len(finished) - MAX_FINISHED_TASKS]:
            self.tasks.pop(task.task_id, None)
