"""CLI interface for WhisperVault."""

import asyncio
import logging
import os
from collections.abc import Awaitable
from pathlib import Path
from typing import Any, Callable, Optional

import click

from .api import WhisperClient
from .config import config
from .exceptions import WhisperAPIError
from .models import EncryptionAlgorithm, Item, ItemKind
from .notices import NoticeLog
from .output import OutputFormatter
from .selection import InvalidTransitionError, VaultAction
from .session import ActionResult, ItemSession
from .utils import format_timestamp
from .views import Presentation, recent_view

logger = logging.getLogger(__name__)

# Environment variable holding a vault key (in-memory only, never saved)
VAULT_KEY_ENV_VAR = "WHISPERVAULT_KEY"


def get_vault_key_from_env() -> Optional[str]:
    """Get the vault key from the environment if set."""
    return os.environ.get(VAULT_KEY_ENV_VAR) or None


def _require_token(ctx: Any) -> None:
    out: OutputFormatter = ctx.obj["out"]
    if not config.is_configured() and not ctx.obj.get("token"):
        out.error("Token not configured.")
        out.info("Run 'whispervault login' or 'whispervault init' first")
        ctx.exit(1)


def _make_client(ctx: Any, require_token: bool = True) -> WhisperClient:
    return WhisperClient(
        token=ctx.obj.get("token"),
        api_url=ctx.obj.get("api_url"),
        require_token=require_token,
    )


def _run_session(
    ctx: Any,
    action: Callable[[ItemSession], Awaitable[ActionResult]],
    presentation: Presentation = Presentation.ALL,
) -> ActionResult:
    """Load the collection, then run ``action`` against a fresh session."""
    out: OutputFormatter = ctx.obj["out"]

    async def runner() -> ActionResult:
        client = _make_client(ctx)
        try:
            session = ItemSession(
                client,
                notifier=NoticeLog(forward=out.notice),
                presentation=presentation,
            )
            loaded = await session.load()
            if not loaded.ok:
                return loaded
            return await action(session)
        finally:
            await client.aclose()

    return asyncio.run(runner())


def _finish(ctx: Any, result: ActionResult) -> None:
    """Report an action result and set the exit status."""
    out: OutputFormatter = ctx.obj["out"]
    if out.json_output:
        payload: dict[str, Any] = {
            "ok": result.ok,
            "message": result.notice.message if result.notice else None,
        }
        if result.value is not None:
            payload["result"] = (
                result.value.to_dict() if isinstance(result.value, Item) else result.value
            )
        out.output_json(payload)
    if not result.ok:
        ctx.exit(1)


def _item_rows(items: tuple[Item, ...], out: OutputFormatter) -> list[dict[str, Any]]:
    rows = []
    for item in items:
        size = item.extra.get("size")
        rows.append(
            {
                "id": item.id,
                "name": item.name,
                "kind": item.kind.value,
                "favorite": "*" if item.is_favorite else "",
                "encrypted": "locked" if item.is_encrypted else "",
                "accessed": format_timestamp(item.last_accessed),
                "size": (
                    out.format_size(int(size))
                    if item.is_file and isinstance(size, (int, float))
                    else "-"
                ),
            }
        )
    return rows


@click.group()
@click.option(
    "--token", "-t", envvar="WHISPERVAULT_TOKEN", help="WhisperVault bearer token"
)
@click.option("--api-url", envvar="WHISPERVAULT_API_URL", help="API base URL")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pywhispervault")
@click.pass_context
def main(
    ctx: Any,
    token: Optional[str],
    api_url: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """WhisperVault - browse, star and lock your files and folders."""
    ctx.ensure_object(dict)
    ctx.obj["token"] = token
    ctx.obj["api_url"] = api_url
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pywhispervault").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--token",
    "-t",
    prompt="Enter your WhisperVault token",
    hide_input=True,
    help="WhisperVault bearer token",
)
@click.pass_context
def init(ctx: Any, token: str) -> None:
    """Store a token in ~/.config/pywhispervault/config.

    The token is checked against the server before it is saved.
    """
    out: OutputFormatter = ctx.obj["out"]

    async def validate() -> None:
        client = WhisperClient(token=token, api_url=ctx.obj.get("api_url"))
        try:
            await client.list_folders()
        finally:
            await client.aclose()

    try:
        out.info("Validating token...")
        try:
            asyncio.run(validate())
            out.success("Token is valid")
        except WhisperAPIError as e:
            out.error(f"Could not validate token: {e}")
            if not click.confirm("Save token anyway?", default=False):
                out.warning("Configuration cancelled.")
                ctx.exit(1)
                return

        config.save_token(token)
        if ctx.obj.get("api_url"):
            config.save_api_url(ctx.obj["api_url"])
        out.success("Configuration saved successfully")
        out.info(f"Config file: {config.get_config_path()}")
    except OSError as e:
        out.error(f"Failed to save configuration: {e}")
        ctx.exit(1)


@main.command()
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, help="Account password")
@click.pass_context
def login(ctx: Any, email: str, password: str) -> None:
    """Log in with EMAIL and save the returned token."""
    out: OutputFormatter = ctx.obj["out"]

    async def do_login() -> Any:
        client = _make_client(ctx, require_token=False)
        try:
            return await client.login(email, password)
        finally:
            await client.aclose()

    try:
        result = asyncio.run(do_login())
    except WhisperAPIError as e:
        out.error(f"Login failed: {e}")
        ctx.exit(1)
        return

    token = result.get("token") if isinstance(result, dict) else None
    if not token:
        out.error("Login failed: the server did not return a token")
        ctx.exit(1)
        return

    config.save_token(token)
    if ctx.obj.get("api_url"):
        config.save_api_url(ctx.obj["api_url"])

    user = result.get("user") or {}
    name = user.get("name") or email
    out.success(f"Welcome back, {name}!")


@main.command()
@click.option("--favorites", "-f", "presentation", flag_value="favorites")
@click.option("--recent", "-r", "presentation", flag_value="recent")
@click.option("--vault", "-V", "presentation", flag_value="vault")
@click.option("--search", "-s", default="", help="Filter by name (case-insensitive)")
@click.option(
    "--limit", "-n", type=int, default=None, help="Show at most N items (with --recent)"
)
@click.pass_context
def ls(
    ctx: Any,
    presentation: Optional[str],
    search: str,
    limit: Optional[int],
) -> None:
    """List files and folders.

    Examples:
        whispervault ls                    # Everything, folders first
        whispervault ls --favorites        # Starred items
        whispervault ls --recent -n 10     # 10 most recently accessed
        whispervault ls --vault -s tax     # Encrypted items matching "tax"
    """
    _require_token(ctx)
    out: OutputFormatter = ctx.obj["out"]
    mode = Presentation(presentation or "all")

    async def show(session: ItemSession) -> ActionResult:
        if mode is Presentation.RECENT:
            items = recent_view(session.collection, search, limit=limit)
        else:
            items = session.view(search)
        return ActionResult(ok=True, value=items)

    try:
        result = _run_session(ctx, show, presentation=mode)
    except WhisperAPIError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if not result.ok:
        ctx.exit(1)
        return

    items = result.value
    if out.json_output:
        out.output_json([item.to_dict() for item in items])
        return

    if not items:
        out.info("No items found")
        return

    out.output_table(
        _item_rows(items, out),
        ["id", "name", "kind", "favorite", "encrypted", "accessed", "size"],
        {
            "id": "ID",
            "name": "Name",
            "kind": "Kind",
            "favorite": "Fav",
            "encrypted": "Vault",
            "accessed": "Last accessed",
            "size": "Size",
        },
    )


@main.command()
@click.argument("item")
@click.option(
    "--favorites",
    "from_favorites",
    is_flag=True,
    help="Act as the favorites view (unstarring removes the item)",
)
@click.pass_context
def star(ctx: Any, item: str, from_favorites: bool) -> None:
    """Toggle the favorite flag of ITEM (id or name)."""
    _require_token(ctx)

    async def toggle(session: ItemSession) -> ActionResult:
        session.open_menu(item)
        return await session.toggle_favorite()

    presentation = Presentation.FAVORITES if from_favorites else Presentation.ALL
    _run_item_command(ctx, toggle, presentation)


@main.command()
@click.argument("item")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def rm(ctx: Any, item: str, yes: bool) -> None:
    """Delete ITEM (id or name).

    Examples:
        whispervault rm report.pdf        # Delete by name
        whispervault rm 64f1c2 -y         # Delete by id, no prompt
    """
    _require_token(ctx)
    out: OutputFormatter = ctx.obj["out"]

    async def delete(session: ItemSession) -> ActionResult:
        target = session.open_menu(item)
        if (
            not yes
            and not out.quiet
            and not click.confirm(
                f"Are you sure you want to delete '{target.name}' "
                f"({target.kind.value})?"
            )
        ):
            session.close_menu()
            out.warning("Deletion cancelled.")
            return ActionResult(ok=True)
        return await session.delete()

    _run_item_command(ctx, delete)


@main.command()
@click.argument("item_id")
@click.option(
    "--kind",
    "-k",
    type=click.Choice([k.value for k in ItemKind]),
    required=True,
    help="Whether ITEM_ID is a file or a folder",
)
@click.pass_context
def restore(ctx: Any, item_id: str, kind: str) -> None:
    """Restore a deleted item by id."""
    _require_token(ctx)

    async def do_restore(session: ItemSession) -> ActionResult:
        return await session.restore(ItemKind(kind), item_id)

    _run_item_command(ctx, do_restore)


@main.command()
@click.argument("item")
@click.argument("new_name")
@click.pass_context
def rename(ctx: Any, item: str, new_name: str) -> None:
    """Rename ITEM to NEW_NAME."""
    _require_token(ctx)

    async def do_rename(session: ItemSession) -> ActionResult:
        session.open_menu(item)
        return await session.rename(new_name)

    _run_item_command(ctx, do_rename)


@main.command()
@click.argument("name")
@click.option("--parent", "-p", default=None, help="Parent folder id")
@click.pass_context
def mkdir(ctx: Any, name: str, parent: Optional[str]) -> None:
    """Create a folder called NAME."""
    _require_token(ctx)

    async def do_mkdir(session: ItemSession) -> ActionResult:
        return await session.create_folder(name, parent)

    _run_item_command(ctx, do_mkdir)


@main.command()
@click.argument("item")
@click.option(
    "--expires", "-e", default=None, help="Expiration (e.g. 2025-12-31T23:59:59Z)"
)
@click.pass_context
def share(ctx: Any, item: str, expires: Optional[str]) -> None:
    """Create a share link for a file."""
    _require_token(ctx)
    out: OutputFormatter = ctx.obj["out"]

    async def do_share(session: ItemSession) -> ActionResult:
        session.open_menu(item)
        return await session.share(expires)

    result = _run_item_command(ctx, do_share)
    if result is not None and result.ok and not out.json_output:
        link = result.value
        url = None
        if isinstance(link, dict):
            url = link.get("url") or link.get("link") or link.get("shareUrl")
        out.print(str(url or link))


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--parent", "-p", default=None, help="Destination folder id")
@click.pass_context
def upload(ctx: Any, path: str, parent: Optional[str]) -> None:
    """Upload the local file PATH.

    Examples:
        whispervault upload report.pdf              # Upload to the root
        whispervault upload scan.png -p 64f1c2      # Upload into a folder
    """
    _require_token(ctx)

    async def do_upload(session: ItemSession) -> ActionResult:
        return await session.upload(Path(path), parent)

    _run_item_command(ctx, do_upload)


@main.command()
@click.argument("item")
@click.option(
    "--output", "-o", default=None, help="Output file or directory path"
)
@click.pass_context
def download(ctx: Any, item: str, output: Optional[str]) -> None:
    """Download the file ITEM (id or name).

    Examples:
        whispervault download report.pdf            # Save to the current dir
        whispervault download 64f1c2 -o ./backup/   # Save into a directory
    """
    _require_token(ctx)
    out: OutputFormatter = ctx.obj["out"]

    async def do_download(session: ItemSession) -> ActionResult:
        session.open_menu(item)
        return await session.download(Path(output) if output else None)

    result = _run_item_command(ctx, do_download)
    if result is not None and result.ok and not out.json_output:
        out.info(f"Saved to {result.value}")


@main.command()
@click.argument("item")
@click.option(
    "--algorithm",
    "-a",
    type=click.Choice([a.value for a in EncryptionAlgorithm], case_sensitive=False),
    default=EncryptionAlgorithm.AES_256_GCM.value,
    show_default=True,
    help="Encryption algorithm",
)
@click.pass_context
def encrypt(ctx: Any, item: str, algorithm: str) -> None:
    """Lock ITEM in the vault.

    The key is read from WHISPERVAULT_KEY or prompted for. It is only sent
    with the encrypt request and never stored.
    """
    _require_token(ctx)

    async def do_encrypt(session: ItemSession) -> ActionResult:
        session.open_menu(item)
        session.open_vault_dialog(expected=VaultAction.ENCRYPT)
        session.set_algorithm(algorithm)
        session.set_key(_read_key(session, confirm=True))
        return await session.submit_vault_dialog()

    _run_item_command(ctx, do_encrypt, Presentation.VAULT)


@main.command()
@click.argument("item")
@click.pass_context
def decrypt(ctx: Any, item: str) -> None:
    """Unlock ITEM from the vault.

    The key is read from WHISPERVAULT_KEY or prompted for.
    """
    _require_token(ctx)

    async def do_decrypt(session: ItemSession) -> ActionResult:
        session.open_menu(item)
        session.open_vault_dialog(expected=VaultAction.DECRYPT)
        session.set_key(_read_key(session, confirm=False))
        return await session.submit_vault_dialog()

    _run_item_command(ctx, do_decrypt, Presentation.VAULT)


def _read_key(session: ItemSession, confirm: bool) -> str:
    key = get_vault_key_from_env()
    if key is not None:
        return key
    hint = session.menu.key_hint
    if hint:
        click.echo(hint, err=True)
    return click.prompt(
        "Encryption key",
        hide_input=True,
        confirmation_prompt=confirm,
        default="",
        show_default=False,
        err=True,
    )


def _run_item_command(
    ctx: Any,
    action: Callable[[ItemSession], Awaitable[ActionResult]],
    presentation: Presentation = Presentation.ALL,
) -> Optional[ActionResult]:
    out: OutputFormatter = ctx.obj["out"]
    try:
        result = _run_session(ctx, action, presentation=presentation)
    except (WhisperAPIError, InvalidTransitionError) as e:
        # Unknown item, wrong vault action, or a failure outside the session
        out.error(str(e))
        ctx.exit(1)
        return None

    _finish(ctx, result)
    return result


if __name__ == "__main__":
    main()
