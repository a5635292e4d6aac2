import json

from zillopoly.commands import fulfill as fulfill_command
from zillopoly.schemas.app_schemas import FulfillmentReport, SlotOutcome


class FakeOrchestrator:
    def __init__(self, fail=False):
        self.fail = fail
        self.events = []
        self.closed = False

    async def fulfill(self, event):
        self.events.append(event)
        ids = range(event.startGameId, event.endGameId + 1)
        status = "failed" if self.fail else "success"
        return FulfillmentReport(
            startGameId=event.startGameId,
            endGameId=event.endGameId,
            totalGames=len(ids),
            results=[SlotOutcome(gameId=i, status=status) for i in ids],
        )

    async def aclose(self):
        self.closed = True


def test_fulfill_defaults_to_pending_span(monkeypatch, ledger, capsys):
    ledger.request_batch("0xplayer1", 4)
    ledger.initialize_slot(ledger.oracle_address, 1, "0x" + "0" * 63 + "1", 1000)
    fake = FakeOrchestrator()
    monkeypatch.setattr(fulfill_command, "build_orchestrator", lambda *a, **kw: fake)

    exit_code = fulfill_command.main([])

    assert exit_code == 0
    assert [(e.startGameId, e.endGameId) for e in fake.events] == [(2, 4)]
    assert json.loads(capsys.readouterr().out)["totalGames"] == 3
    assert fake.closed


def test_fulfill_explicit_range_and_failure_exit_code(monkeypatch, database):
    fake = FakeOrchestrator(fail=True)
    monkeypatch.setattr(fulfill_command, "build_orchestrator", lambda *a, **kw: fake)

    exit_code = fulfill_command.main(["--start", "7", "--end", "8"])

    assert exit_code == 1
    assert [(e.startGameId, e.endGameId) for e in fake.events] == [(7, 8)]
    assert fake.closed


def test_fulfill_with_nothing_pending(monkeypatch, database, capsys):
    monkeypatch.setattr(fulfill_command, "build_orchestrator", lambda *a, **kw: FakeOrchestrator())

    assert fulfill_command.main([]) == 0
    assert json.loads(capsys.readouterr().out) == {"status": "nothing pending"}
