"""
视频服务与下载 API 端点
"""

from flask import request, Response
import logging

from .errors import InvalidRequest

logger = logging.getLogger(__name__)


def register_routes(app, media_server, url_ingestor, swarm_ingestor):
    """注册视频播放和下载路由

    Args:
        app: Flask 应用实例
        media_server: MediaServer 实例
        url_ingestor: UrlIngestor 实例
        swarm_ingestor: SwarmIngestor 实例
    """

    @app.route('/videos/<filename>', methods=['GET'])
    def serve_video(filename):
        """播放视频，支持 Range 请求

        Returns:
            200 完整内容，或 206 部分内容
        """
        result = media_server.serve(filename, request.headers.get("Range"))
        return Response(result.body, status=result.status, headers=result.headers)

    @app.route('/download/url', methods=['POST'])
    def download_from_url():
        """从直链下载视频

        请求体：
        {
            "url": "https://example.com/video.mp4",
            "filename": "video.mp4"
        }
        """
        data = request.get_json(silent=True) or {}
        url = data.get("url")
        filename = data.get("filename")
        if not url or not filename:
            raise InvalidRequest("URL and filename are required")

        outcome = url_ingestor.ingest(url, filename)
        outcome.raise_for_failure()
        return "Video downloaded successfully", 200

    @app.route('/download/torrent', methods=['POST'])
    def download_from_torrent():
        """通过磁力链接下载视频，下载完成后才返回

        请求体：
        {
            "magnetLink": "magnet:?xt=urn:btih:..."
        }
        """
        data = request.get_json(silent=True) or {}
        magnet_link = data.get("magnetLink")
        if not magnet_link:
            raise InvalidRequest("Magnet link is required")

        outcome = swarm_ingestor.ingest(magnet_link)
        outcome.raise_for_failure()
        return f"Downloaded: {outcome.name}", 200
