"""
转码 API 端点

所有操作都针对存储目录中已存在的文件，请求在 FFmpeg 结束后才返回。
"""

from flask import jsonify, request
import logging

from ..errors import InvalidRequest, NotFound, UpstreamFailure
from .task import Operation

logger = logging.getLogger(__name__)


def _get_int(data: dict, key: str, default=None, minimum=None, maximum=None):
    value = data.get(key)
    if value is None or value == "":
        return default
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise InvalidRequest(f"{key} must be an integer")
    if minimum is not None and value < minimum:
        raise InvalidRequest(f"{key} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise InvalidRequest(f"{key} must be <= {maximum}")
    return value


def register_routes(app, manager):
    """注册转码 API 路由

    Args:
        app: Flask 应用实例
        manager: TranscodeManager 实例
    """

    def run_operation(operation: Operation, params: dict):
        data = request.get_json(silent=True) or {}
        input_filename = data.get("inputFilename")
        output_filename = data.get("outputFilename")
        if not input_filename or not output_filename:
            raise InvalidRequest("Input and output filenames are required")

        task = manager.create_task(operation, input_filename, output_filename, params)
        if not manager.run_task(task):
            raise UpstreamFailure(f"Error processing video: {task.error}")
        return f"Video processed successfully: {output_filename}", 200

    @app.route('/process/convert', methods=['POST'])
    def process_convert():
        """更换视频/音频编码格式

        请求体：
        {
            "inputFilename": "a.mkv",
            "outputFilename": "a.mp4",
            "videoCodec": "libx264",  // 可选
            "audioCodec": "aac"       // 可选
        }
        """
        data = request.get_json(silent=True) or {}
        params = {}
        if data.get("videoCodec"):
            params["video_codec"] = str(data["videoCodec"])
        if data.get("audioCodec"):
            params["audio_codec"] = str(data["audioCodec"])
        return run_operation(Operation.CONVERT, params)

    @app.route('/process/compress', methods=['POST'])
    def process_compress():
        """压缩视频（libx264 + CRF）"""
        data = request.get_json(silent=True) or {}
        params = {}
        crf = _get_int(data, "crf", minimum=0, maximum=51)
        if crf is not None:
            params["crf"] = crf
        if data.get("preset"):
            params["preset"] = str(data["preset"])
        return run_operation(Operation.COMPRESS, params)

    @app.route('/process/subtitles', methods=['POST'])
    def process_subtitles():
        """提取字幕流，输出格式由输出文件扩展名决定"""
        data = request.get_json(silent=True) or {}
        params = {"stream_index": _get_int(data, "streamIndex", default=0, minimum=0)}
        return run_operation(Operation.SUBTITLES, params)

    @app.route('/process/tasks', methods=['GET'])
    def process_tasks():
        return jsonify({
            "success": True,
            "tasks": manager.get_all_tasks(),
            "summary": manager.get_status_summary()
        })

    @app.route('/process/tasks/<task_id>', methods=['GET'])
    def process_task_status(task_id):
        task = manager.get_task(task_id)
        if not task:
            raise NotFound("Task not found")
        return jsonify({"success": True, "task": task.to_dict()})
