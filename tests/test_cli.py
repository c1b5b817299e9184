import pytest

from savenest.client.cli import _select_for_delete, build_parser
from savenest.client.engine import STATUS_DELETED, ReconciliationEngine


def test_parser_accepts_bulk_delete_ids():
    args = build_parser().parse_args(["delete", "a", "b"])
    assert args.command == "delete"
    assert args.ids == ["a", "b"]


def test_parser_limits_sort_keys():
    args = build_parser().parse_args(["list", "--sort", "domain", "--search", "git"])
    assert args.sort == "domain"
    assert args.search == "git"

    with pytest.raises(SystemExit):
        build_parser().parse_args(["list", "--sort", "size"])


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


@pytest.mark.asyncio
async def test_delete_reports_unknown_ids(fake_store, capsys):
    known = fake_store.seed("Keep", "https://keep.example")
    engine = ReconciliationEngine(fake_store, "user-1")
    await engine.refresh()

    unknown = _select_for_delete(engine, ["a", "b"])

    assert unknown == ["a", "b"]
    assert engine.selection == set()
    assert "Unknown bookmark ids: a, b" in capsys.readouterr().err

    unknown = _select_for_delete(engine, [known.id, "c"])
    result = await engine.bulk_delete()

    assert unknown == ["c"]
    assert result.status == STATUS_DELETED
    assert engine.bookmarks == []
