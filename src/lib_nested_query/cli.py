"""CLI adapter for ``lib_nested_query`` built on ``lib_cli_exit_tools``.

Purpose
-------
Expose the codec from a shell so operators can inspect what a query string
decodes to (or what a JSON document encodes to) without writing Python code.

Contents
--------
* :data:`CLICK_CONTEXT_SETTINGS` – shared Click settings ensuring ``-h`` works.
* :func:`cli` – root command that wires global traceback handling into
  ``lib_cli_exit_tools``.
* :func:`cli_info` – prints distribution metadata for quick diagnostics.
* :func:`cli_decode` – calls :func:`lib_nested_query.core.decode` and prints
  JSON.
* :func:`cli_encode` – reads JSON and prints
  :func:`lib_nested_query.core.encode` output.
* :func:`main` – entry point used by ``console_scripts`` registration.

System Role
-----------
Outermost layer. Only talks to the composition root and the option records;
``lib_cli_exit_tools`` centralises the exit code strategy so library errors
surface consistently across shells and CI.
"""

from __future__ import annotations

import json
import sys
from importlib import metadata
from typing import Any, Final, Optional, Sequence

import lib_cli_exit_tools
import rich_click as click

from .core import decode, encode
from .domain.options import Charset, DecodeOptions, Duplicates, EncodeOptions, Format, ListFormat

CLICK_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
_TRACEBACK_SUMMARY_LIMIT: Final[int] = 500
_TRACEBACK_VERBOSE_LIMIT: Final[int] = 10_000

CHARSET_CHOICES: Final[tuple[str, ...]] = tuple(member.value for member in Charset)
DUPLICATES_CHOICES: Final[tuple[str, ...]] = tuple(member.value for member in Duplicates)
LIST_FORMAT_CHOICES: Final[tuple[str, ...]] = tuple(member.value for member in ListFormat)
FORMAT_CHOICES: Final[tuple[str, ...]] = ("rfc3986", "rfc1738")


def _resolve_version() -> str:
    """Return the installed package version, ``"0.0.0"`` when not installed."""

    try:
        return metadata.version("lib_nested_query")
    except metadata.PackageNotFoundError:
        return "0.0.0"


@click.group(
    help="Nested query-string encoder and decoder",
    context_settings=CLICK_CONTEXT_SETTINGS,
    invoke_without_command=False,
)
@click.version_option(
    version=_resolve_version(),
    prog_name="lib_nested_query",
    message="lib_nested_query version %(version)s",
)
@click.option(
    "--traceback/--no-traceback",
    is_flag=True,
    default=False,
    help="Show full Python traceback on errors",
)
@click.pass_context
def cli(ctx: click.Context, traceback: bool) -> None:
    """Root command configuring traceback handling for all subcommands.

    Side Effects
        Mutates ``lib_cli_exit_tools.config.traceback`` and
        ``lib_cli_exit_tools.config.traceback_force_color``.
    """

    ctx.ensure_object(dict)
    ctx.obj["traceback"] = traceback
    lib_cli_exit_tools.config.traceback = traceback
    lib_cli_exit_tools.config.traceback_force_color = traceback


@cli.command("info", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_info() -> None:
    """Print basic distribution metadata so users can confirm installation."""

    try:
        meta = metadata.metadata("lib_nested_query")
    except metadata.PackageNotFoundError:
        click.echo("lib_nested_query (metadata unavailable)")
        return
    click.echo(f"Info for {meta.get('Name', 'lib_nested_query')}:")
    click.echo(f"  Version         : {meta.get('Version', _resolve_version())}")
    click.echo(f"  Requires-Python : {meta.get('Requires-Python', '>=3.10')}")
    summary = meta.get("Summary")
    if summary:
        click.echo(f"  Summary         : {summary}")
    for entry in meta.get_all("Project-URL") or []:
        click.echo(f"  {entry}")


@cli.command("decode", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("query")
@click.option("--allow-dots/--no-allow-dots", default=False, help="Read a.b as a[b]")
@click.option("--comma/--no-comma", default=False, help="Split comma separated values into lists")
@click.option("--depth", type=int, default=5, show_default=True, help="Maximum bracket nesting depth")
@click.option("--list-limit", type=int, default=20, show_default=True, help="Highest index still read as a list")
@click.option("--strict-null-handling/--no-strict-null-handling", default=False, help="Read bare keys as null")
@click.option(
    "--charset",
    type=click.Choice(CHARSET_CHOICES, case_sensitive=False),
    default=Charset.UTF8.value,
    show_default=True,
    help="Charset of percent-encoded bytes",
)
@click.option("--charset-sentinel/--no-charset-sentinel", default=False, help="Honour a utf8=✓ parameter")
@click.option("--ignore-query-prefix/--no-ignore-query-prefix", default=False, help="Strip a leading '?'")
@click.option(
    "--duplicates",
    type=click.Choice(DUPLICATES_CHOICES, case_sensitive=False),
    default=Duplicates.COMBINE.value,
    show_default=True,
    help="Policy for repeated keys",
)
@click.option("--indent", type=int, default=None, help="Pretty-print JSON output with the provided indent size")
def cli_decode(
    query: str,
    allow_dots: bool,
    comma: bool,
    depth: int,
    list_limit: int,
    strict_null_handling: bool,
    charset: str,
    charset_sentinel: bool,
    ignore_query_prefix: bool,
    duplicates: str,
    indent: Optional[int],
) -> None:
    """Decode QUERY and print the resulting tree as JSON.

    Examples
    --------
    >>> from click.testing import CliRunner
    >>> result = CliRunner().invoke(cli, ["decode", "a[b]=c"])
    >>> result.output.strip()
    '{"a":{"b":"c"}}'
    """

    options = DecodeOptions(
        allow_dots=allow_dots,
        comma=comma,
        depth=depth,
        list_limit=list_limit,
        strict_null_handling=strict_null_handling,
        charset=charset.lower(),
        charset_sentinel=charset_sentinel,
        ignore_query_prefix=ignore_query_prefix,
        duplicates=duplicates.lower(),
    )
    result = decode(query, options)
    click.echo(json.dumps(result, indent=indent, separators=None if indent else (",", ":"), ensure_ascii=False))


@cli.command("encode", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("document")
@click.option(
    "--list-format",
    type=click.Choice(LIST_FORMAT_CHOICES, case_sensitive=False),
    default=ListFormat.INDICES.value,
    show_default=True,
    help="How list elements are keyed",
)
@click.option("--allow-dots/--no-allow-dots", default=False, help="Write a.b instead of a[b]")
@click.option("--encode/--no-encode", "encode_output", default=True, help="Percent-encode keys and values")
@click.option("--encode-values-only/--no-encode-values-only", default=False, help="Leave keys unencoded")
@click.option(
    "--format",
    "format_",
    type=click.Choice(FORMAT_CHOICES, case_sensitive=False),
    default="rfc3986",
    show_default=True,
    help="Space encoding flavour (rfc1738 writes '+')",
)
@click.option("--add-query-prefix/--no-add-query-prefix", default=False, help="Prepend '?'")
@click.option("--skip-nulls/--no-skip-nulls", default=False, help="Omit keys whose value is null")
@click.option("--strict-null-handling/--no-strict-null-handling", default=False, help="Write null as a bare key")
@click.option(
    "--charset",
    type=click.Choice(CHARSET_CHOICES, case_sensitive=False),
    default=Charset.UTF8.value,
    show_default=True,
    help="Charset used for percent-encoding",
)
@click.option("--charset-sentinel/--no-charset-sentinel", default=False, help="Lead with a utf8=✓ parameter")
def cli_encode(
    document: str,
    list_format: str,
    allow_dots: bool,
    encode_output: bool,
    encode_values_only: bool,
    format_: str,
    add_query_prefix: bool,
    skip_nulls: bool,
    strict_null_handling: bool,
    charset: str,
    charset_sentinel: bool,
) -> None:
    """Encode the JSON DOCUMENT (``-`` reads standard input) as a query string.

    Examples
    --------
    >>> from click.testing import CliRunner
    >>> result = CliRunner().invoke(cli, ["encode", '{"a": ["b", "c"]}', "--no-encode"])
    >>> result.output.strip()
    'a[0]=b&a[1]=c'
    """

    payload = _load_document(document)
    options = EncodeOptions(
        list_format=list_format.lower(),
        allow_dots=allow_dots,
        encode=encode_output,
        encode_values_only=encode_values_only,
        format=Format(format_.upper()),
        add_query_prefix=add_query_prefix,
        skip_nulls=skip_nulls,
        strict_null_handling=strict_null_handling,
        charset=charset.lower(),
        charset_sentinel=charset_sentinel,
    )
    click.echo(encode(payload, options))


def _load_document(document: str) -> Any:
    """Parse *document* as JSON, reading standard input for ``-``."""

    text = click.get_text_stream("stdin").read() if document == "-" else document
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"Invalid JSON: {exc.msg}", param_hint="DOCUMENT") from exc


def main(argv: Optional[Sequence[str]] = None, *, restore_traceback: bool = True) -> int:
    """Execute the CLI with shared exit handling and return the exit code."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    previous_force_color = getattr(lib_cli_exit_tools.config, "traceback_force_color", False)
    try:
        try:
            return lib_cli_exit_tools.run_cli(
                cli,
                argv=list(argv) if argv is not None else None,
                prog_name="lib_nested_query",
            )
        except BaseException as exc:  # noqa: BLE001 - funnel through shared printers
            lib_cli_exit_tools.print_exception_message(
                trace_back=lib_cli_exit_tools.config.traceback,
                length_limit=(
                    _TRACEBACK_VERBOSE_LIMIT if lib_cli_exit_tools.config.traceback else _TRACEBACK_SUMMARY_LIMIT
                ),
            )
            return lib_cli_exit_tools.get_system_exit_code(exc)
    finally:
        if restore_traceback:
            lib_cli_exit_tools.config.traceback = previous_traceback
            lib_cli_exit_tools.config.traceback_force_color = previous_force_color


if __name__ == "__main__":  # pragma: no cover - exercised via console entry point
    raise SystemExit(main(sys.argv[1:]))
