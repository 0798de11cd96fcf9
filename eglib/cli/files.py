"""Laboratory storage browsing commands for the Easy Genomics CLI."""

import asyncio
import json
from typing import Optional

import typer
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

files_app = typer.Typer(help="Laboratory storage commands")
console = Console()


def format_file_size(size_bytes: Optional[int]) -> str:
    """Format file size in human-readable form."""
    if size_bytes is None:
        return ""
    if size_bytes == 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    size_float: float = float(size_bytes)
    while size_float >= 1024 and i < len(units) - 1:
        size_float /= 1024
        i += 1
    return f"{size_float:.1f} {units[i]}"


@files_app.command("ls")
def list_files(
    laboratory_id: str = typer.Argument(..., help="Laboratory ID"),
    bucket: Optional[str] = typer.Option(None, "--bucket", "-b", help="Bucket override"),
    prefix: Optional[str] = typer.Option(None, "--prefix", "-p", help="Prefix override"),
    max_keys: int = typer.Option(0, "--max-keys", help="Page size per list call (0 = default)"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw listing response"),
):
    """List one directory level of a laboratory's storage.

    Uses local AWS credentials directly; no Cognito claims are involved.
    """
    from eglib.exceptions import LaboratoryNotFoundError
    from eglib.file_listing import MAX_KEYS_LIMIT, build_listing_service, list_top_level_objects

    service = build_listing_service()
    try:
        laboratory = service.laboratory_service.query_by_laboratory_id(laboratory_id)
        effective_prefix = prefix or laboratory.default_prefix
        listing = list_top_level_objects(
            service.s3_service,
            bucket=bucket or laboratory.S3Bucket or "",
            prefix=effective_prefix,
            max_keys=min(max_keys or service.default_max_keys, MAX_KEYS_LIMIT),
            delimiter=service.delimiter,
        )
    except LaboratoryNotFoundError as e:
        console.print(f"[red]✗[/red]  {e.message}")
        raise typer.Exit(1)
    except (ClientError, BotoCoreError) as e:
        console.print(f"[red]✗[/red]  AWS error: {e}")
        raise typer.Exit(1)

    if as_json:
        console.print_json(json.dumps(listing.to_response_body()))
        return

    table = Table(title=f"{laboratory.Name or laboratory.LaboratoryId}: {effective_prefix}")
    table.add_column("Type", style="cyan")
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Last Modified", style="dim")
    for common_prefix in listing.CommonPrefixes:
        table.add_row("dir", common_prefix.Prefix[len(effective_prefix):] or common_prefix.Prefix, "", "")
    for obj in listing.Contents:
        if obj.Key.endswith("/"):
            continue
        table.add_row("file", obj.Key[len(effective_prefix):] or obj.Key, format_file_size(obj.Size), obj.LastModified or "")
    console.print(table)
    console.print(f"[dim]{len(listing.CommonPrefixes)} folders, {len(listing.Contents)} objects[/dim]")


def _render(browser) -> Tree:
    """Render the current directory, including pre-fetched grandchildren."""
    current = browser.current_directory
    tree = Tree(f"[bold]{' / '.join(browser.breadcrumbs)}[/bold]")
    for child in current.children or []:
        if child.is_directory:
            branch = tree.add(f"[cyan]{child.name}/[/cyan]")
            for grandchild in browser.cache.get(browser.bucket, child.key) or []:
                suffix = "/" if grandchild.is_directory else f"  [dim]{format_file_size(grandchild.size)}[/dim]"
                branch.add(f"{grandchild.name}{suffix}")
        else:
            tree.add(f"{child.name}  [dim]{format_file_size(child.size)}[/dim]")
    return tree


async def _browse(
    laboratory_id: str,
    path: Optional[str],
    bucket: Optional[str],
    api_url: str,
    token: Optional[str],
    cache_max_entries: Optional[int] = None,
):
    from eglib.api_client import FileApiClient
    from eglib.file_tree import DirectoryCache, FileTreeBrowser

    async with FileApiClient(api_url, id_token=token) as client:
        browser = FileTreeBrowser(
            client,
            laboratory_id,
            bucket=bucket,
            start_path=path,
            cache=DirectoryCache(max_entries=cache_max_entries),
        )
        try:
            await browser.initialize()
            await browser.wait_for_prefetches()
        finally:
            await browser.close()
    return browser


@files_app.command("tree")
def tree(
    laboratory_id: str = typer.Argument(..., help="Laboratory ID"),
    path: Optional[str] = typer.Option(None, "--path", help="Directory path to open, e.g. runs/2024"),
    bucket: Optional[str] = typer.Option(None, "--bucket", "-b", help="Bucket override"),
    api_url: Optional[str] = typer.Option(None, "--api-url", help="File API base URL (defaults to API_BASE_URL)"),
    token: Optional[str] = typer.Option(None, "--token", envvar="EG_ID_TOKEN", help="Cognito ID token"),
):
    """Browse a laboratory's storage through the file API."""
    from eglib.config import get_settings

    settings = get_settings()
    browser = asyncio.run(
        _browse(
            laboratory_id,
            path,
            bucket,
            api_url or settings.api_base_url,
            token,
            cache_max_entries=settings.tree_cache_max_entries,
        )
    )

    console.print(_render(browser))
    failed = [toast for toast in browser.toast_store.toasts if toast.variant == "error"]
    for toast in failed:
        console.print(f"[red]✗[/red]  {toast.title}")
    if failed:
        raise typer.Exit(1)


async def _download(laboratory_id: str, s3_uri: str, output: str, api_url: str, token: Optional[str]):
    from eglib.api_client import FileApiClient
    from eglib.file_download import download_file
    from eglib.toast import ToastStore

    path, _, file_name = s3_uri.rpartition("/")
    toast_store = ToastStore()
    async with FileApiClient(api_url, id_token=token) as client:
        target = await download_file(
            client, laboratory_id, file_name, path, destination=output, toast_store=toast_store
        )
    return target, toast_store


@files_app.command("download")
def download(
    laboratory_id: str = typer.Argument(..., help="Laboratory ID"),
    s3_uri: str = typer.Argument(..., help="Object to download, e.g. s3://bucket/org/lab/results.csv"),
    output: str = typer.Option(".", "--output", "-o", help="Directory to save the file in"),
    api_url: Optional[str] = typer.Option(None, "--api-url", help="File API base URL (defaults to API_BASE_URL)"),
    token: Optional[str] = typer.Option(None, "--token", envvar="EG_ID_TOKEN", help="Cognito ID token"),
):
    """Download one file through a presigned URL from the file API."""
    from eglib.config import get_settings
    from eglib.exceptions import InvalidRequestError
    from eglib.file_download import is_supported_file_type
    from eglib.file_listing import parse_s3_uri

    try:
        parse_s3_uri(s3_uri)
    except InvalidRequestError as e:
        console.print(f"[red]✗[/red]  {e.message}")
        raise typer.Exit(1)

    target, toast_store = asyncio.run(
        _download(laboratory_id, s3_uri, output, api_url or get_settings().api_base_url, token)
    )
    if target is None:
        for toast in toast_store.toasts:
            console.print(f"[red]✗[/red]  {toast.title}")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green]  Saved {target}")
    if not is_supported_file_type(target.name):
        console.print("[dim]No preview available for this file type[/dim]")
