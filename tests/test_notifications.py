from sitstand.event_logger import EventLogger
from sitstand.notifications import NotificationDispatcher, NotificationEngine


class ExplodingEngine:
    def deliver(self, title, message, subtitle=None) -> bool:
        raise RuntimeError("notification center unavailable")


def test_dry_run_prints_instead_of_posting(capsys) -> None:
    engine = NotificationEngine(dry_run=True)

    assert engine.deliver("Time to Stand Up!", "A quick stretch will do you good.", "You've been sitting")

    out = capsys.readouterr().out
    assert "Time to Stand Up!" in out
    assert engine.last_notification["title"] == "Time to Stand Up!"


def test_dispatcher_reports_result_and_logs(tmp_path, engine) -> None:
    logger = EventLogger(str(tmp_path / "events.jsonl"))
    dispatcher = NotificationDispatcher(engine=engine, event_logger=logger, run_async=False)
    results = []

    dispatcher.dispatch("Posture Check", "Sit up", source="nudge", on_result=results.append)
    engine.result = False
    dispatcher.dispatch("Posture Check", "Sit up", source="nudge", on_result=results.append)

    assert results == [True, False]
    events = logger.get_recent_events(10)
    assert [e["event_type"] for e in events] == ["notified", "delivery_failed"]
    assert events[0]["source"] == "nudge"


def test_engine_errors_become_failed_delivery() -> None:
    dispatcher = NotificationDispatcher(engine=ExplodingEngine(), run_async=False)
    results = []

    dispatcher.dispatch("Title", "Body", on_result=results.append)

    assert results == [False]


def test_async_dispatch_eventually_reports(engine) -> None:
    import threading

    done = threading.Event()
    dispatcher = NotificationDispatcher(engine=engine, run_async=True)

    dispatcher.dispatch("Title", "Body", on_result=lambda delivered: done.set())

    assert done.wait(2.0)
    assert engine.sent[0]["title"] == "Title"


def test_event_log_purge(tmp_path) -> None:
    logger = EventLogger(str(tmp_path / "events.jsonl"))
    logger.log_suppressed("backoff", "posture alert", "meeting")
    assert logger.get_recent_events()[0]["metadata"] == {"suppression_type": "meeting"}

    logger.purge_logs()
    assert logger.get_recent_events() == []
