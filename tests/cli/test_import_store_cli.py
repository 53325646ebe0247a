from __future__ import annotations

import json
from pathlib import Path

from storeimport.cli.import_store import main as import_store_main


def _no_service(monkeypatch) -> None:
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)


def test_cli_prints_report_and_writes_output(tmp_path: Path, monkeypatch, capsys: object) -> None:
    _no_service(monkeypatch)
    store = tmp_path / "store"
    store.mkdir()
    (store / "index.html").write_text(
        "<html><body><main><h1>Bem-vindo</h1><p>Nossa loja de cerâmica artesanal.</p></main></body></html>",
        encoding="utf-8",
    )
    output = tmp_path / "report.json"

    exit_code = import_store_main(["--path", str(store), "--job-id", "job-cli", "--output", str(output)])
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert payload["job_id"] == "job-cli"
    assert payload["platform"] == "unknown"
    assert payload["summary"]["total"] == 1
    assert payload["items"][0]["page"]["slug"] == "home"
    assert json.loads(output.read_text(encoding="utf-8")) == payload


def test_cli_reports_unreadable_bundle_with_exit_code_two(tmp_path: Path, monkeypatch, capsys: object) -> None:
    _no_service(monkeypatch)
    missing = tmp_path / "missing.zip"

    exit_code = import_store_main(["--path", str(missing)])
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 2
    assert payload["path"] == str(missing)
    assert payload["error"]


def test_cli_returns_one_when_an_item_failed(tmp_path: Path, monkeypatch, capsys: object) -> None:
    _no_service(monkeypatch)
    templates = tmp_path / "theme" / "templates"
    templates.mkdir(parents=True)
    (templates / "broken.json").write_text("{not json", encoding="utf-8")
    (templates / "index.json").write_text(
        json.dumps(
            {
                "sections": {"hero": {"type": "image-banner", "settings": {"heading": "Coleção de verão"}}},
                "order": ["hero"],
            }
        ),
        encoding="utf-8",
    )

    exit_code = import_store_main(["--path", str(tmp_path / "theme"), "--platform", "shopify"])
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 1
    assert payload["platform"] == "shopify"
    assert payload["summary"]["failed"] == 1
    assert payload["summary"]["imported"] + payload["summary"]["partially_imported"] == 1
