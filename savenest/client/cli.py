from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path

from savenest.client.engine import ReconciliationEngine
from savenest.client.errors import RemoteStoreError
from savenest.client.notifications import KIND_ERROR
from savenest.client.settings import ClientSettings
from savenest.client.store import RemoteStoreClient
from savenest.client.views import SORT_KEYS
from savenest.services.common import domain_from_url


def _print_toast(toast) -> None:
    if toast is None:
        return
    stream = sys.stderr if toast.kind == KIND_ERROR else sys.stdout
    print(f"[{toast.kind}] {toast.message}", file=stream, flush=True)


def _print_view(engine: ReconciliationEngine) -> None:
    rows = engine.view()
    if not rows:
        print("No bookmarks.")
        return
    for bookmark in rows:
        created = bookmark.created_at.strftime("%Y-%m-%d %H:%M")
        print(
            f"{bookmark.id}  {created}  {bookmark.title}  "
            f"<{bookmark.url}>  ({domain_from_url(bookmark.url)})"
        )


def _select_for_delete(engine: ReconciliationEngine, ids) -> list[str]:
    unknown = []
    for bookmark_id in ids:
        if bookmark_id in engine.selection:
            continue
        if not engine.toggle_selection(bookmark_id):
            unknown.append(bookmark_id)
    if unknown:
        print(f"Unknown bookmark ids: {', '.join(unknown)}", file=sys.stderr)
    return unknown


async def _login(settings: ClientSettings, args) -> int:
    password = args.password or getpass.getpass("Password: ")
    async with RemoteStoreClient(settings.base_url, timeout=settings.request_timeout) as store:
        user = await store.sign_in(args.username, password)
        print(f"Signed in as {user.username}.")
        print(f"export SAVENEST_TOKEN={store.token}")
    return 0


async def _logout(settings: ClientSettings, args) -> int:
    async with RemoteStoreClient(
        settings.base_url, token=settings.token, timeout=settings.request_timeout
    ) as store:
        await store.sign_out()
    print("Signed out.")
    return 0


async def _run_intent(settings: ClientSettings, args) -> int:
    async with RemoteStoreClient(
        settings.base_url, token=settings.token, timeout=settings.request_timeout
    ) as store:
        user = await store.current_authenticated_user()
        if user is None:
            print("Not signed in. Run `savenest login` first.", file=sys.stderr)
            return 2

        engine = ReconciliationEngine.from_settings(store, user.id, settings)
        engine.notifier.add_listener(_print_toast)
        result = await engine.refresh()
        if not result.ok:
            return 1

        if args.command == "list":
            engine.set_search(args.search or "")
            engine.set_sort(args.sort)
            _print_view(engine)
            return 0
        if args.command == "add":
            result = await engine.add(args.title or "", args.url)
        elif args.command == "edit":
            current = engine.get(args.id)
            title = args.title or (current.title if current else "")
            url = args.url or (current.url if current else "")
            result = await engine.edit(args.id, title, url)
        elif args.command == "delete":
            if len(args.ids) == 1:
                result = await engine.delete(args.ids[0])
            else:
                _select_for_delete(engine, args.ids)
                if not engine.selection:
                    return 1
                result = await engine.bulk_delete()
        elif args.command == "export":
            document = engine.export_document()
            target = Path(args.output or document.filename)
            target.write_text(document.body, encoding="utf-8")
            print(f"Wrote {len(engine.bookmarks)} bookmarks to {target}")
        return 0 if result.ok else 1


async def _watch(settings: ClientSettings, args) -> int:
    async with RemoteStoreClient(
        settings.base_url, token=settings.token, timeout=settings.request_timeout
    ) as store:
        user = await store.current_authenticated_user()
        if user is None:
            print("Not signed in. Run `savenest login` first.", file=sys.stderr)
            return 2

        engine = ReconciliationEngine.from_settings(store, user.id, settings)
        engine.notifier.add_listener(_print_toast)

        def _on_change():
            print(f"--- {len(engine.bookmarks)} bookmarks ---", flush=True)
            _print_view(engine)

        engine.add_listener(_on_change)
        async with engine:
            while True:
                await asyncio.sleep(3600)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="savenest")
    p.add_argument("--url", help="Store base URL (default: $SAVENEST_URL)")
    p.add_argument("--token", help="API token (default: $SAVENEST_TOKEN)")
    p.add_argument("-v", "--verbose", action="store_true")
    sub = p.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Issue an API token")
    login.add_argument("username")
    login.add_argument("--password")

    sub.add_parser("logout", help="Revoke the current API token")

    list_cmd = sub.add_parser("list", help="Show bookmarks")
    list_cmd.add_argument("--search", default="")
    list_cmd.add_argument("--sort", choices=SORT_KEYS, default="date")

    add = sub.add_parser("add", help="Add a bookmark")
    add.add_argument("url")
    add.add_argument("--title", default="")

    edit = sub.add_parser("edit", help="Edit a bookmark")
    edit.add_argument("id")
    edit.add_argument("--title")
    edit.add_argument("--url")

    delete = sub.add_parser("delete", help="Delete one or more bookmarks")
    delete.add_argument("ids", nargs="+")

    export = sub.add_parser("export", help="Export bookmarks as JSON")
    export.add_argument("-o", "--output")

    sub.add_parser("watch", help="Follow changes from other sessions")
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = ClientSettings.from_env(base_url=args.url, token=args.token)

    handlers = {"login": _login, "logout": _logout, "watch": _watch}
    handler = handlers.get(args.command, _run_intent)
    try:
        return asyncio.run(handler(settings, args))
    except RemoteStoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
