import threading

from zortag_scan.core.dispatch import UiDispatcher


def test_post_then_run_pending_executes_task():
    dispatcher = UiDispatcher()
    calls = []

    assert dispatcher.post(lambda: calls.append(1))
    assert dispatcher.has_pending()
    assert dispatcher.run_pending()

    assert calls == [1]
    assert not dispatcher.has_pending()
    assert dispatcher.executed == 1


def test_post_is_dropped_while_previous_task_pending():
    dispatcher = UiDispatcher()
    calls = []

    assert dispatcher.post(lambda: calls.append("first"))
    assert not dispatcher.post(lambda: calls.append("second"))
    dispatcher.run_pending()

    assert calls == ["first"]
    assert dispatcher.dropped == 1


def test_post_is_dropped_while_task_is_running():
    dispatcher = UiDispatcher()
    results = []

    def task():
        results.append(dispatcher.post(lambda: None))

    dispatcher.post(task)
    dispatcher.run_pending()

    assert results == [False]
    assert dispatcher.post(lambda: None)


def test_run_pending_without_task():
    dispatcher = UiDispatcher()
    assert not dispatcher.run_pending(timeout=0.01)


def test_failing_task_frees_slot():
    dispatcher = UiDispatcher()

    def boom():
        raise ValueError("bad frame")

    dispatcher.post(boom)
    assert dispatcher.run_pending()
    assert dispatcher.post(lambda: None)


def test_run_pending_waits_for_post_from_other_thread():
    dispatcher = UiDispatcher()
    calls = []
    timer = threading.Timer(0.05, lambda: dispatcher.post(lambda: calls.append(1)))
    timer.start()

    assert dispatcher.run_pending(timeout=2.0)
    timer.join()
    assert calls == [1]
