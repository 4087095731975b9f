import logging

from docshare.core.best_effort import best_effort


async def test_success_returns_true():
    calls = []

    async def op():
        calls.append(1)

    assert await best_effort("phase", op) is True
    assert calls == [1]


async def test_failure_is_logged_and_swallowed(caplog):
    async def op():
        raise RuntimeError("boom")

    with caplog.at_level(logging.WARNING, logger="docshare.core.best_effort"):
        ok = await best_effort("conversion-dispatch", op, team_id="t1", document_id="d1")

    assert ok is False
    record = caplog.records[-1]
    assert record.phase == "conversion-dispatch"
    assert record.team_id == "t1"
    assert record.document_id == "d1"
    assert "boom" in record.getMessage()
