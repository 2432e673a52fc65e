# zortag_scan/main.py
"""
ZortagScan - Main Entry Point.

Camera -> model real/fake -> hiển thị label.
Logic đã được tách ra các module riêng biệt:
- core/: Infrastructure (settings, camera, dispatcher, tflite)
- processing/: Frame convert, display, controller
- inference/: Model + Inference Adapter
- web/: Web UI cho chế độ headless

File này chỉ đảm nhiệm việc kết nối các module lại với nhau.

Usage:
    python -m zortag_scan.main                       # Chạy với defaults
    python -m zortag_scan.main --model best.tflite   # Model khác
    python -m zortag_scan.main --headless --port 8080
    python -m zortag_scan.main --no-torch --autostart
"""
import os
import sys
import logging
import argparse
import threading

# === SETUP DISPLAY TRƯỚC KHI IMPORT CV2 ===
if os.environ.get("DISPLAY", "") == "":
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import cv2

from .core import settings, UiDispatcher, create_camera
from .core.errors import ModelLoadError
from .core.model_factory import create_classifier
from .processing import DisplayHandler, ScanController

logger = logging.getLogger(__name__)

WINDOW_NAME = "ZortagScan"


def setup_logging(verbose: bool = False):
    """Logging: file + console trên Pi, console trên PC."""
    handlers = [logging.StreamHandler()]
    if settings.IS_PI:
        handlers.insert(0, logging.FileHandler('zortag_scan.log', encoding='utf-8'))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='ZortagScan - Real/Fake tag classifier',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m zortag_scan.main                        # Run with defaults
  python -m zortag_scan.main --model best.tflite    # Custom model
  python -m zortag_scan.main --headless --port 8080
        """
    )

    # Model
    parser.add_argument(
        '--model', '-m',
        type=str,
        metavar='PATH',
        help=f'TFLite model (default: {settings.MODEL_PATH})'
    )

    # Camera
    parser.add_argument(
        '--camera', '-c',
        type=int,
        metavar='ID',
        help='Chỉ dùng camera ID này (bỏ qua dò camera)'
    )
    parser.add_argument(
        '--resolution', '-r',
        type=str,
        metavar='WxH',
        help=f'Camera resolution (default: {settings.CAMERA_WIDTH}x{settings.CAMERA_HEIGHT})'
    )
    parser.add_argument(
        '--no-torch',
        action='store_true',
        help='Không bật đèn flash'
    )

    # Display mode
    parser.add_argument(
        '--headless',
        action='store_true',
        help='Run in headless mode (no GUI)'
    )
    parser.add_argument(
        '--gui',
        action='store_true',
        help='Force GUI mode (even on Pi)'
    )
    parser.add_argument(
        '--autostart',
        action='store_true',
        help='Bắt đầu xử lý frame ngay (không cần bấm Start)'
    )

    # Web server
    parser.add_argument(
        '--no-web',
        action='store_true',
        help='Disable web UI'
    )
    parser.add_argument(
        '--port', '-p',
        type=int,
        metavar='PORT',
        help=f'Web UI port (default: {settings.WEB_PORT})'
    )

    # Debug
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose logging'
    )

    return parser.parse_args(argv)


def apply_arguments(args, cfg=None):
    """Apply command line arguments to settings."""
    cfg = cfg or settings
    changes = []

    if args.model:
        cfg.MODEL_PATH = args.model
        changes.append(f"Model: {args.model}")

    if args.camera is not None:
        cfg.CAMERAS = [{"device_id": args.camera, "position": "back", "lens": "wide"}]
        changes.append(f"Camera: {args.camera}")

    if args.resolution:
        try:
            w, h = map(int, args.resolution.lower().split('x'))
            cfg.CAMERA_WIDTH = w
            cfg.CAMERA_HEIGHT = h
            changes.append(f"Resolution: {w}x{h}")
        except ValueError:
            logger.warning(f"⚠️ Invalid resolution format: {args.resolution} (use WxH, e.g., 1280x720)")

    if args.no_torch:
        cfg.ENABLE_TORCH = False
        changes.append("Flash: disabled")

    if args.headless:
        cfg.HEADLESS_MODE = True
        cfg.OVERLAY_ENABLED = False
        changes.append("Mode: headless")
    if args.gui:
        cfg.FORCE_GUI_MODE = True
        cfg.HEADLESS_MODE = False
        cfg.OVERLAY_ENABLED = True
        changes.append("Mode: GUI (forced)")

    if args.autostart:
        cfg.AUTOSTART = True
        changes.append("Autostart: ON")

    if args.no_web:
        cfg.ENABLE_WEB_SERVER = False
        changes.append("Web: disabled")
    if args.port:
        cfg.WEB_PORT = args.port
        changes.append(f"Port: {args.port}")

    return changes


def start_web_server(controller):
    """Chạy web UI trong thread riêng."""
    from .web import create_app, run_server

    try:
        run_server(create_app(controller), host='0.0.0.0', port=settings.WEB_PORT)
    except OSError as e:
        logger.error(f"Web server error: {e}")


def handle_keyboard(key: int, controller: ScanController) -> bool:
    """
    Xử lý phím nhấn.

    Returns:
        True nếu nên thoát chương trình
    """
    if key == ord('q'):
        return True
    elif key == ord('s'):
        controller.start()
    elif key == ord('x'):
        controller.stop()
    elif key == ord('f'):
        controller.camera.toggle_torch()
    return False


def render_frame(display: DisplayHandler, controller: ScanController):
    """Vẽ preview + overlay, trả về frame (None nếu chưa có frame)."""
    frame = controller.camera.latest_frame()
    if frame is None or frame.image is None or not hasattr(frame.image, 'shape'):
        return None

    canvas = frame.image.copy()
    if canvas.ndim == 2:
        canvas = cv2.cvtColor(canvas, cv2.COLOR_GRAY2BGR)

    stats = controller.camera.get_stats()
    result = controller.last_result
    if result is not None:
        stats['elapsed_ms'] = result.elapsed_ms

    display.draw_prediction(canvas, controller.prediction_text)
    display.draw_controls(canvas, controller.is_running)
    display.draw_stats(canvas, stats)
    return canvas


def run_ui_loop(dispatcher: UiDispatcher, controller: ScanController, display: DisplayHandler):
    """Vòng lặp UI thread: chạy callback frame + vẽ preview."""
    while True:
        if settings.HEADLESS_MODE:
            dispatcher.run_pending(timeout=0.05)
            continue

        dispatcher.run_pending()
        canvas = render_frame(display, controller)
        if canvas is None:
            key = cv2.waitKey(30) & 0xFF
        else:
            key = display.show(WINDOW_NAME, canvas)
        if handle_keyboard(key, controller):
            break


def main(argv=None) -> int:
    """Main entry point."""

    # === 0. PARSE ARGUMENTS ===
    args = parse_arguments(argv)
    setup_logging(args.verbose)
    arg_changes = apply_arguments(args)

    if arg_changes:
        logger.info("🔧 Command-line overrides: " + ", ".join(arg_changes))

    # === 1. MODEL (lỗi load model là lỗi nghiêm trọng) ===
    try:
        classifier = create_classifier()
    except ModelLoadError as e:
        logger.critical(f"❌ Failed to load model: {e}")
        return 1

    # === 2. CAMERA ===
    dispatcher = UiDispatcher()
    camera = create_camera(dispatcher)
    if camera.configure():
        camera.start()
    else:
        logger.error("❌ Không có camera, sẽ không có frame nào được xử lý")

    # === 3. COMPONENTS ===
    controller = ScanController(camera, classifier)
    display = DisplayHandler(overlay_enabled=settings.OVERLAY_ENABLED)

    logger.info(f"CONFIG: MODEL={settings.MODEL_PATH}, "
                f"CAMERA={settings.CAMERA_WIDTH}x{settings.CAMERA_HEIGHT}, "
                f"HEADLESS={settings.HEADLESS_MODE}, "
                f"WEB={settings.ENABLE_WEB_SERVER}:{settings.WEB_PORT}")

    # === 4. WEB UI (background) ===
    if settings.ENABLE_WEB_SERVER:
        web_thread = threading.Thread(
            target=start_web_server,
            args=(controller,),
            daemon=True
        )
        web_thread.start()
    elif settings.HEADLESS_MODE and not settings.AUTOSTART:
        logger.warning("⚠️ Headless + no web: dùng --autostart để xử lý frame")

    if settings.AUTOSTART:
        controller.start()

    if not settings.HEADLESS_MODE:
        logger.info("⌨️  s=start | x=stop | f=flash | q=thoát")
    else:
        logger.info("⌨️  Ctrl+C để thoát")

    # === 5. MAIN LOOP (UI thread) ===
    try:
        run_ui_loop(dispatcher, controller, display)
    except KeyboardInterrupt:
        logger.info("🛑 Đã dừng (Ctrl+C)")
    finally:
        controller.stop()
        camera.stop()
        if not settings.HEADLESS_MODE:
            display.destroy_windows()
        logger.info("👋 Bye!")

    return 0


if __name__ == "__main__":
    sys.exit(main())
