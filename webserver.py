#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import os
import logging
import traceback
from logging.handlers import TimedRotatingFileHandler

from flask import Flask, Response, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from videodepot.api import register_routes
from videodepot.config import ServerConfig, load_config
from videodepot.errors import VideoDepotError, RangeNotSatisfiable
from videodepot.media_server import MediaServer
from videodepot.storage import MediaStorage
from videodepot.swarm_ingest import SwarmIngestor
from videodepot.transcode import TranscodeConfig, TranscodeManager
from videodepot.transcode.api import register_routes as register_transcode_routes
from videodepot.url_ingest import UrlIngestor

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

# 配置较少日志输出的模块
for module in ['urllib3', 'requests', 'werkzeug']:
    logging.getLogger(module).setLevel(logging.WARNING)


# 创建视频相关日志过滤器
class VideoRequestFilter(logging.Filter):
    """过滤掉视频播放相关的详细日志"""
    def filter(self, record):
        # 逐块读取文件的日志只在出错时显示
        if getattr(record, 'funcName', None) in ('iter_file_range', '_partial'):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(server_config: ServerConfig):
    """添加按日期滚动的文件日志处理器"""
    root_logger = logging.getLogger()
    # 子 logger 的记录不经过根 logger 的过滤器，需要加在 handler 上
    for handler in root_logger.handlers:
        handler.addFilter(VideoRequestFilter())

    os.makedirs(server_config.log_dir, exist_ok=True)
    file_handler = TimedRotatingFileHandler(
        os.path.join(server_config.log_dir, 'webserver.log'),
        when='midnight',
        interval=1,
        backupCount=server_config.log_backup_count
    )
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
    file_handler.setLevel(logging.INFO)
    file_handler.addFilter(VideoRequestFilter())
    root_logger.addHandler(file_handler)


def create_app(app_config=None, swarm_client_factory=None, transcode_manager=None):
    """创建 Flask 应用

    Args:
        app_config: 配置字典，默认从配置文件加载
        swarm_client_factory: BT 客户端工厂（测试时注入）
        transcode_manager: 转码管理器（测试时注入）

    Returns:
        Flask 应用实例
    """
    if app_config is None:
        app_config = load_config()
    server_config = ServerConfig.from_app_config(app_config)

    # Ensure the videos directory exists
    storage = MediaStorage(server_config.video_dir)
    storage.ensure_root()
    logging.info(f"Using video directory: {storage.root}")

    app = Flask(__name__)
    CORS(app)  # Enable CORS
    app.config["SERVER_CONFIG"] = server_config

    media_server = MediaServer(storage, chunk_size=server_config.chunk_size)
    url_ingestor = UrlIngestor(
        storage,
        timeout=server_config.download_timeout,
        chunk_size=server_config.download_chunk_size
    )
    swarm_ingestor = SwarmIngestor(
        storage,
        client_factory=swarm_client_factory,
        timeout=server_config.swarm_timeout,
        listen_interfaces=server_config.swarm_listen_interfaces
    )
    if transcode_manager is None:
        transcode_manager = TranscodeManager(TranscodeConfig.from_app_config(app_config), storage)

    register_routes(app, media_server, url_ingestor, swarm_ingestor)
    register_transcode_routes(app, transcode_manager)

    # Error handlers
    @app.errorhandler(VideoDepotError)
    def handle_videodepot_error(e):
        """业务错误统一返回文本原因"""
        if e.status_code >= 500:
            logging.error(f"{request_path()}: {e.message}")
        else:
            logging.info(f"{request_path()}: {e.status_code} {e.message}")
        response = Response(e.message, status=e.status_code, mimetype='text/plain')
        if isinstance(e, RangeNotSatisfiable):
            response.headers["Content-Range"] = f"bytes */{e.total_size}"
        return response

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Handle uncaught exceptions"""
        if isinstance(e, HTTPException):
            return e
        logging.error(f"Uncaught exception: {str(e)}")
        logging.error(traceback.format_exc())
        return Response("Internal server error", status=500, mimetype='text/plain')

    return app


def request_path():
    return f"{request.method} {request.path}"


# Start the server
if __name__ == '__main__':
    config = load_config()
    server_config = ServerConfig.from_app_config(config)
    setup_logging(server_config)
    app = create_app(config)
    logging.info(f"Server is running on http://{server_config.host}:{server_config.port}")
    app.run(host=server_config.host, port=server_config.port, debug=False, threaded=True)
