from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from loguru import logger

from .client import StitchClient
from .config import DEFAULT_URL
from .errors import StitchError, StitchRejected
from .models import StitchResponse

app = typer.Typer(help="stitch_client operational CLI")

# ---------------------------
# Common options
# ---------------------------


def client_id_opt() -> int:
    return typer.Option(..., "--client-id", envvar="STITCH_CLIENT_ID", help="Stitch client id")


def token_opt() -> str:
    return typer.Option(..., "--token", envvar="STITCH_TOKEN", help="Import API token")


def namespace_opt() -> str:
    return typer.Option(..., "--namespace", envvar="STITCH_NAMESPACE", help="Destination namespace")


def url_opt() -> str:
    return typer.Option(DEFAULT_URL, "--url", envvar="STITCH_URL", help="Import API push endpoint")


def table_opt() -> Optional[str]:
    return typer.Option(None, "--table-name", help="Table for records that do not name one")


def keys_opt() -> Optional[str]:
    return typer.Option(None, "--key-names", help="Comma-separated primary key fields")


def _keys(key_names: Optional[str]) -> Optional[List[str]]:
    if not key_names:
        return None
    return [k.strip() for k in key_names.split(",") if k.strip()]


def _iter_ndjson(path: str) -> Iterator[dict]:
    stream = sys.stdin if path == "-" else Path(path).open("r", encoding="utf-8")
    try:
        for lineno, line in enumerate(stream, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise typer.BadParameter(f"line {lineno}: {e}") from e
            if not isinstance(record, dict):
                raise typer.BadParameter(f"line {lineno}: expected an object")
            yield record
    finally:
        if stream is not sys.stdin:
            stream.close()


class _Tally:
    """Counts outcomes; only ever called from the flush worker."""

    def __init__(self) -> None:
        self.accepted = 0
        self.failed = 0
        self.last_error: Optional[str] = None

    def handle_ok(self, record: dict, response: StitchResponse) -> None:
        self.accepted += 1

    def handle_error(self, record: dict, error: Exception) -> None:
        self.failed += 1
        self.last_error = str(error)


# ---------------------------
# Commands
# ---------------------------


@app.command("push-file")
def push_file(
    path: str = typer.Argument(..., help="NDJSON file of records, or - for stdin"),
    client_id: int = client_id_opt(),
    token: str = token_opt(),
    namespace: str = namespace_opt(),
    url: str = url_opt(),
    table_name: Optional[str] = table_opt(),
    key_names: Optional[str] = keys_opt(),
    max_records: int = typer.Option(10_000, "--max-records", help="Flush after this many records"),
    max_bytes: int = typer.Option(4_000_000, "--max-bytes", help="Flush after this many bytes"),
    max_ms: int = typer.Option(60_000, "--max-ms", help="Flush when this many ms elapsed"),
):
    """Queue every record in PATH and flush them in batches."""
    tally = _Tally()
    enqueued = 0
    with StitchClient(
        url=url,
        client_id=client_id,
        token=token,
        namespace=namespace,
        table_name=table_name,
        key_names=_keys(key_names),
        max_batch_records=max_records,
        max_batch_bytes=max_bytes,
        max_flush_interval_millis=max_ms,
        default_handler=tally,
    ) as stitch:
        for record in _iter_ndjson(path):
            stitch.put(record)
            enqueued += 1
        logger.info(f"Enqueued {enqueued} records, waiting for final flush")

    summary = {"enqueued": enqueued, "accepted": tally.accepted, "failed": tally.failed}
    if tally.last_error:
        summary["last_error"] = tally.last_error
    typer.echo(json.dumps(summary, indent=2))
    if tally.failed:
        raise typer.Exit(code=1)


@app.command("push-record")
def push_record(
    data: str = typer.Argument(..., help="One record as a JSON object"),
    client_id: int = client_id_opt(),
    token: str = token_opt(),
    namespace: str = namespace_opt(),
    url: str = url_opt(),
    table_name: Optional[str] = table_opt(),
    key_names: Optional[str] = keys_opt(),
):
    """Send one record synchronously and print Stitch's response."""
    try:
        record = json.loads(data)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(str(e)) from e
    if not isinstance(record, dict):
        raise typer.BadParameter("expected a JSON object")

    with StitchClient(
        url=url,
        client_id=client_id,
        token=token,
        namespace=namespace,
        table_name=table_name,
        key_names=_keys(key_names),
        autostart=False,
    ) as stitch:
        try:
            response = stitch.push(record)
        except StitchRejected as e:
            typer.echo(json.dumps({"status": e.response.status, "content": e.content}, indent=2))
            raise typer.Exit(code=1)
        except StitchError as e:
            logger.error(f"Push failed: {e}")
            raise typer.Exit(code=2)

    typer.echo(json.dumps(response.model_dump(), indent=2))


if __name__ == "__main__":
    app()
