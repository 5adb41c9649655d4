from nearby import cli
from nearby.store.memory import InMemoryUserStore


def _store():
    return InMemoryUserStore(
        [
            {"_id": "me", "username": "me", "location": "23.81,90.41"},
            {"_id": "friend", "username": "friend", "location": "90.42,23.81"},
            {"_id": "broken", "username": "broken", "location": "abc,12"},
        ]
    )


def test_cli_migrate_locations_prints_counters(monkeypatch, capsys):
    monkeypatch.setattr(cli, "build_store", lambda _settings: _store())

    assert cli.main(["migrate-locations"]) == 0
    assert capsys.readouterr().out.strip() == "fixed=2 removed=1 ok=0 failed=0"


def test_cli_nearby_after_index_maintenance(monkeypatch, capsys):
    store = _store()
    monkeypatch.setattr(cli, "build_store", lambda _settings: store)
    cli.main(["migrate-locations"])
    capsys.readouterr()

    assert cli.main(["nearby", "--user-id", "me", "--radius-km", "5"]) == 0
    out = capsys.readouterr().out
    assert "friend" in out
    assert "Results: 1" in out


def test_cli_reports_missing_origin(monkeypatch, capsys):
    monkeypatch.setattr(cli, "build_store", lambda _settings: _store())

    assert cli.main(["nearby", "--user-id", "broken", "--radius-km", "5"]) == 2
    assert "error:" in capsys.readouterr().out
