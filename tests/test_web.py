import json

import numpy as np
import pytest

from conftest import FakeModel
from zortag_scan.inference.classifier import InferenceAdapter
from zortag_scan.processing.controller import ScanController
from zortag_scan.processing.frame_convert import Frame
from zortag_scan.web.server import _mjpeg_stream, create_app


@pytest.fixture
def controller(camera, classifier):
    camera.configure()
    return ScanController(camera, classifier)


@pytest.fixture
def client(controller):
    app = create_app(controller)
    app.config['TESTING'] = True
    return app.test_client()


def test_index_shows_waiting_label(client):
    response = client.get('/')
    assert response.status_code == 200
    assert b"Waiting for Prediction..." in response.data


def test_start_stop_api(client, controller, camera):
    data = client.post('/api/start').get_json()
    assert data['running'] is True
    assert camera.is_delivering

    data = client.post('/api/stop').get_json()
    assert data['running'] is False
    assert not camera.is_delivering


def test_status_api_reports_label(client, controller, bitmap):
    controller.start()
    controller.on_frame(bitmap)

    data = client.get('/api/status').get_json()

    assert data['label'] == "Fake"


def test_torch_api_toggles(client, camera, backend):
    client.post('/api/torch')
    assert camera.torch_on
    assert backend.torch_calls == [True]


def test_mjpeg_stream_yields_jpeg(camera):
    camera.configure()
    camera.offer_frame(Frame(image=np.zeros((16, 16, 3), dtype=np.uint8)))

    chunk = next(_mjpeg_stream(camera, fps=100.0, max_frames=1))

    assert chunk.startswith(b'--frame\r\nContent-Type: image/jpeg')
    assert b'\xff\xd8' in chunk


def _reject_constant(name):
    raise ValueError(name)


def test_status_api_is_strict_json_when_softmax_overflows(camera, bitmap):
    camera.configure()
    controller = ScanController(camera, InferenceAdapter(FakeModel(confidence=(1000.0, 1.0))))
    client = create_app(controller).test_client()
    controller.start()
    controller.on_frame(bitmap)

    response = client.get('/api/status')
    data = json.loads(response.get_data(as_text=True), parse_constant=_reject_constant)

    assert data['label'] == "Real"
    assert data['scores'] == [None, 0.0]


def test_page_shows_label_with_icon(client, controller, bitmap):
    controller.start()
    controller.on_frame(bitmap)

    assert "🔹 Fake" in client.get('/').get_data(as_text=True)
    assert client.get('/api/status').get_json()['text'] == "🔹 Fake"
