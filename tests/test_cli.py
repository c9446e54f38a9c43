"""
Tests for the CLI, run against the bundled demo data (``--mock``).

Every invocation loads a fresh copy of the demo data: 2026-10-20 10:00
holds users 1001 and 1002, 10:20 holds user 1003.
"""

import pytest
from typer.testing import CliRunner

from migreg import __version__
from migreg.cli.app import app

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("timezone: Europe/Moscow\nadmins: [42]\n", encoding="utf-8")
    return str(path)


def invoke(config_file, *args):
    return runner.invoke(app, [*args, "--mock", "--config", config_file])


def test_free_slots(config_file):
    result = invoke(config_file, "free-slots", "2026-10-20")

    assert result.exit_code == 0
    assert "10:00" in result.stdout
    assert "16:40" in result.stdout


def test_free_slots_on_weekend(config_file):
    result = invoke(config_file, "free-slots", "2026-10-24")

    assert result.exit_code == 0
    assert "свободных слотов нет" in result.stdout


def test_reserve(config_file):
    result = invoke(config_file, "reserve", "1003", "2026-10-20 10:00", "--service", "visa")

    assert result.exit_code == 0
    assert "Запись подтверждена" in result.stdout


def test_reserve_twice(config_file):
    result = invoke(config_file, "reserve", "1003", "2026-10-20 10:20")

    assert result.exit_code == 1
    assert "Вы уже записаны" in result.stdout


def test_reserve_outside_working_hours(config_file):
    result = invoke(config_file, "reserve", "1001", "2026-10-20 09:00")

    assert result.exit_code == 1
    assert "Слот не найден" in result.stdout


def test_reserve_unknown_service(config_file):
    result = invoke(config_file, "reserve", "1001", "2026-10-20 11:00", "--service", "passport")

    assert result.exit_code == 1


def test_cancel(config_file):
    result = invoke(config_file, "cancel", "1002", "2026-10-20 10:00")

    assert result.exit_code == 0
    assert "Запись отменена" in result.stdout


def test_cancel_unknown_user(config_file):
    result = invoke(config_file, "cancel", "999", "2026-10-20 10:00")

    assert result.exit_code == 1
    assert "не зарегистрирован" in result.stdout


def test_slots_show_occupancy(config_file):
    result = invoke(config_file, "slots", "2026-10-20")

    assert result.exit_code == 0
    assert "1/3" in result.stdout
    assert "2/3" in result.stdout


def test_export(config_file, tmp_path):
    target = tmp_path / "out.csv"

    result = invoke(config_file, "export", "2026-10-20", "--output", str(target), "--admin", "42")

    assert result.exit_code == 0
    data = target.read_bytes()
    assert data.startswith(b"\xef\xbb\xbf")
    assert len(data.decode("utf-8-sig").strip().splitlines()) == 4


def test_export_by_non_admin(config_file, tmp_path):
    target = tmp_path / "out.csv"

    result = invoke(config_file, "export", "2026-10-20", "--output", str(target), "--admin", "7")

    assert result.exit_code == 1
    assert not target.exists()


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout
