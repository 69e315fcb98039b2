"""
Tests for the command-line server entry point.
"""
import uvicorn

from gridcrud.__main__ import main
from gridcrud.config import Config


def test_main_serves_the_application(monkeypatch):
    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **options: calls.append((app, options)))
    monkeypatch.setattr(Config, "PORT", 8123)

    main()

    assert calls == [("gridcrud.main:app", {"host": Config.HOST, "port": 8123, "reload": Config.RELOAD})]
