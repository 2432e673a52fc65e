# zortag_scan/web/server.py
"""
Web UI đơn giản khi chạy headless (Pi không có màn hình).
Truy cập: http://<IP_Pi>:5000

- GET  /             - Trang preview + kết quả + nút Start/Stop
- GET  /api/status   - Trạng thái (JSON)
- POST /api/start    - Bắt đầu xử lý frame
- POST /api/stop     - Dừng xử lý frame
- POST /api/torch    - Bật/tắt đèn flash
- GET  /video_feed   - MJPEG stream của camera
"""
import time
import socket
import logging

import cv2
from flask import Flask, Response, jsonify, render_template_string

logger = logging.getLogger(__name__)

HTML_TEMPLATE = '''
<!DOCTYPE html>
<html>
<head>
    <title>ZortagScan</title>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <style>
        * { font-family: 'Segoe UI', Arial, sans-serif; margin: 0; padding: 0; box-sizing: border-box; }
        body { background: #111; color: #fff; min-height: 100vh; }
        .preview { position: relative; width: 100%; max-width: 900px; margin: 0 auto; }
        .preview img { width: 100%; display: block; }
        .prediction { margin: 16px; padding: 16px; border-radius: 10px; background: rgba(0,0,0,0.7);
                      font-size: 1.8em; font-weight: bold; text-align: center; }
        .buttons { display: flex; gap: 12px; justify-content: center; padding: 16px; }
        .btn { padding: 14px 28px; border: none; border-radius: 10px; color: #fff; font-size: 1.1em;
               font-weight: bold; cursor: pointer; }
        .btn-start { background: #2e7d32; }
        .btn-stop { background: #c62828; }
        .btn-torch { background: #555; }
        .stats { text-align: center; color: #999; font-size: 0.8em; padding-bottom: 16px; }
    </style>
</head>
<body>
    <div class="preview">
        <img src="/video_feed" alt="camera">
        <div class="prediction" id="prediction">{{ label }}</div>
        <div class="buttons">
            <button class="btn btn-start" onclick="post('/api/start')">Start</button>
            <button class="btn btn-stop" onclick="post('/api/stop')">Stop</button>
            <button class="btn btn-torch" onclick="post('/api/torch')">Flash</button>
        </div>
        <div class="stats" id="stats"></div>
    </div>
    <script>
        function post(url) { fetch(url, {method: 'POST'}).then(refresh); }
        function refresh() {
            fetch('/api/status').then(r => r.json()).then(s => {
                document.getElementById('prediction').textContent = s.text;
                document.getElementById('stats').textContent =
                    (s.running ? 'Running' : 'Stopped') + ' | frames ' + s.frames_delivered +
                    ' | dropped ' + s.frames_dropped;
            });
        }
        setInterval(refresh, 500);
    </script>
</body>
</html>
'''


def _mjpeg_stream(camera, fps: float = 15.0, max_frames=None):
    """Generator MJPEG từ frame mới nhất của camera."""
    interval = 1.0 / fps
    sent = 0
    last_timestamp = None
    while max_frames is None or sent < max_frames:
        frame = camera.latest_frame()
        if frame is None or frame.image is None or frame.timestamp == last_timestamp:
            time.sleep(interval)
            continue

        last_timestamp = frame.timestamp
        image = frame.image
        if isinstance(image, (bytes, bytearray)):
            jpeg = bytes(image)
        else:
            ok, buf = cv2.imencode('.jpg', image)
            if not ok:
                continue
            jpeg = buf.tobytes()

        yield b'--frame\r\nContent-Type: image/jpeg\r\n\r\n' + jpeg + b'\r\n'
        sent += 1
        time.sleep(interval)


def create_app(controller) -> Flask:
    """
    Tạo Flask app gắn với ScanController.
    """
    app = Flask(__name__)

    @app.route('/')
    def index():
        """Trang chủ - preview + kết quả"""
        return render_template_string(HTML_TEMPLATE, label=controller.display_text)

    @app.route('/api/status')
    def api_status():
        return jsonify(controller.status())

    @app.route('/api/start', methods=['POST'])
    def api_start():
        controller.start()
        return jsonify(controller.status())

    @app.route('/api/stop', methods=['POST'])
    def api_stop():
        controller.stop()
        return jsonify(controller.status())

    @app.route('/api/torch', methods=['POST'])
    def api_torch():
        controller.camera.toggle_torch()
        return jsonify(controller.status())

    @app.route('/video_feed')
    def video_feed():
        return Response(
            _mjpeg_stream(controller.camera),
            mimetype='multipart/x-mixed-replace; boundary=frame'
        )

    return app


def get_local_ip():
    """Lấy địa chỉ IP local của máy"""
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except OSError:
        return "localhost"


def run_server(app: Flask, host='0.0.0.0', port=5000):
    """Chạy web server"""
    local_ip = get_local_ip()
    logger.info(f"🌐 Web UI: http://{local_ip}:{port} (local: http://localhost:{port})")
    app.run(host=host, port=port, debug=False, threaded=True, use_reloader=False)
