from __future__ import annotations

import importlib.util
import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from opsdeck.core.config import get_settings
from opsdeck.storage import LocalJsonStore

from conftest import sample_document


def _load_cli():
    spec = importlib.util.spec_from_file_location("opsdeck_backup_cli", ROOT / "scripts" / "backup.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def cli(monkeypatch, tmp_path):
    data = tmp_path / "data.json"
    LocalJsonStore(data).write(sample_document())
    monkeypatch.setenv("DATA_BACKEND", "local")
    monkeypatch.setenv("DATA_PATH", str(data))
    get_settings.cache_clear()
    module = _load_cli()
    monkeypatch.setattr(module, "setup_logging", lambda level: None)
    yield module, data
    get_settings.cache_clear()


def test_export_writes_backup_file(cli, tmp_path, capsys):
    module, _ = cli
    target = tmp_path / "out.json"

    module.main(["export", "-o", str(target)])

    assert json.loads(target.read_text(encoding="utf-8"))["domainOrder"] == ["zone-b", "zone-a"]
    assert "document exported" in capsys.readouterr().out


def test_import_requires_confirmation(cli, tmp_path):
    module, data = cli
    backup = tmp_path / "backup.json"
    backup.write_text('{"domainOrder": ["restored"]}', encoding="utf-8")

    with pytest.raises(SystemExit):
        module.main(["import", str(backup)])
    assert LocalJsonStore(data).read().document.domain_order == ["zone-b", "zone-a"]

    module.main(["import", str(backup), "--yes"])
    assert LocalJsonStore(data).read().document.domain_order == ["restored"]
