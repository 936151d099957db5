"""Loosechain CLI - create and verify DRVC3 receipts."""

from __future__ import annotations

import json
import logging
import sys
import traceback
from pathlib import Path

import click

from loosechain import __version__
from loosechain.config import ReceiptConfig
from loosechain.contracts.validate import load_contract
from loosechain.errors import ReceiptError, SchemaError
from loosechain.provenance.builder import ReceiptBuilder
from loosechain.provenance.verifier import ReceiptVerifier
from loosechain.security import safe_load_json_file


def handle_error(error: Exception, debug: bool) -> None:
    """Handle errors with structured output.

    Args:
        error: The exception that occurred
        debug: Whether to show full traceback
    """
    if debug:
        traceback.print_exc()
    else:
        click.echo(f"Error: {error}", err=True)
        if isinstance(error, SchemaError):
            for violation in error.violations:
                click.echo(f"  - {violation}", err=True)
    sys.exit(1)


def _load_config(config_path: Path | None) -> ReceiptConfig:
    if config_path is not None:
        return ReceiptConfig.from_yaml(config_path)
    return ReceiptConfig.from_env()


@click.group()
@click.version_option(version=__version__, prog_name="loosechain")
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True, path_type=Path),
              help='YAML settings file (signing key always comes from the environment)')
@click.option('--debug', is_flag=True, help='Enable debug mode (show full tracebacks)')
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, debug: bool):
    """Loosechain - signed content-provenance receipts."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path
    ctx.obj['debug'] = debug


@cli.command()
@click.option('--file', '-f', 'file_path', required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Path to file to hash')
@click.option('--issuer', help='Issuer (default: from config)')
@click.option('--event', help='Event name (default: from config)')
@click.option('--description', help='Free-form description')
@click.option('--block/--loose', default=False, help='Canonize (blocked) vs loose')
@click.option('--out', '-o', type=click.Path(dir_okay=False, path_type=Path),
              help='Output path (default: receipt.<file>.json)')
@click.option('--url', help='Resource URL to record instead of the local path')
@click.option('--branch', help='Source branch of the resource')
@click.option('--commit', 'commit_hash', help='Commit hash of the resource')
@click.option('--tag', 'tags', multiple=True, help='Tag to attach (repeatable; replaces defaults)')
@click.option('--v-score', type=click.FloatRange(0, 100), help='Override the default validation score')
@click.pass_context
def create(
    ctx: click.Context,
    file_path: Path,
    issuer: str | None,
    event: str | None,
    description: str | None,
    block: bool,
    out: Path | None,
    url: str | None,
    branch: str | None,
    commit_hash: str | None,
    tags: tuple[str, ...],
    v_score: float | None,
):
    """Create & sign a DRVC3 receipt.

    Examples:
      loosechain create --file ./report.pdf
      loosechain create --file ./report.pdf --block --out ./receipts/report.json
    """
    debug = ctx.obj.get('debug', False)

    try:
        builder = ReceiptBuilder(config=_load_config(ctx.obj.get('config_path')))
        receipt, out_path = builder.create(
            file_path,
            out=out,
            issuer=issuer,
            event=event,
            description=description,
            block=block,
            url=url,
            branch=branch,
            commit_hash=commit_hash,
            tags=list(tags) if tags else None,
            v_score=v_score,
        )
        click.echo(f"✅ Receipt created → {out_path}")
        click.echo(f"   receipt_id: {receipt.receipt_id}")
        click.echo(f"   hash:       {receipt.integrity.hash}")
    except (ReceiptError, OSError) as e:
        handle_error(e, debug)


@cli.command()
@click.option('--receipt', '-r', 'receipts', required=True, multiple=True,
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Receipt file to verify (repeatable)')
@click.option('--out', '-o', type=click.Path(file_okay=False, path_type=Path),
              help='Output directory for verification reports')
@click.option('--workers', default=4, show_default=True, type=click.IntRange(1, 64),
              help='Parallel workers when verifying several receipts')
@click.pass_context
def verify(ctx: click.Context, receipts: tuple[Path, ...], out: Path | None, workers: int):
    """Verify one or more DRVC3 receipt files.

    Examples:
      loosechain verify --receipt receipt.report.pdf.json
      loosechain verify -r a.json -r b.json --out ./verification
    """
    debug = ctx.obj.get('debug', False)

    try:
        verifier = ReceiptVerifier(config=_load_config(ctx.obj.get('config_path')))

        if len(receipts) == 1 and out is None:
            report = verifier.verify_file(receipts[0])
            click.echo("✅ Receipt verified:")
            for line in report.summary_lines():
                click.echo(f"   {line}")
            return

        if len(receipts) == 1:
            report, paths = verifier.verify_and_report(receipts[0], out)
            click.echo("✅ Receipt verified:")
            for line in report.summary_lines():
                click.echo(f"   {line}")
            click.echo(f"   reports:    {paths['json']}, {paths['markdown']}")
            return

        failures = 0
        for outcome in verifier.verify_many(list(receipts), max_workers=workers):
            if outcome.valid:
                click.echo(f"✅ {outcome.path}")
                for line in outcome.report.summary_lines():
                    click.echo(f"   {line}")
                if out is not None:
                    stem = outcome.path.stem
                    outcome.report.write_json(out / f"{stem}.verification.json")
                    outcome.report.write_markdown(out / f"{stem}.verification.md")
            else:
                failures += 1
                click.echo(f"❌ {outcome.path}: {outcome.error}", err=True)

        if failures:
            click.echo(f"\n{failures} of {len(receipts)} receipts failed verification", err=True)
            sys.exit(1)
    except (ReceiptError, OSError) as e:
        handle_error(e, debug)


@cli.command()
@click.option('--receipt', '-r', 'receipt_path', required=True,
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Receipt file to check against its schema contract')
@click.option('--json', 'as_json', is_flag=True, help='Print violations as JSON')
@click.pass_context
def validate(ctx: click.Context, receipt_path: Path, as_json: bool):
    """Check a receipt against the schema contract only (no crypto checks)."""
    debug = ctx.obj.get('debug', False)

    try:
        config = _load_config(ctx.obj.get('config_path'))
        document = safe_load_json_file(receipt_path)
        violations = load_contract(config.certificate).validate(document)

        if as_json:
            click.echo(json.dumps([v.to_dict() for v in violations], indent=2))
        elif violations:
            click.echo(f"Validation failed for {receipt_path}:", err=True)
            for violation in violations:
                click.echo(f"  - {violation}", err=True)
        else:
            click.echo(f"✅ {receipt_path} satisfies {config.certificate}")

        if violations:
            sys.exit(1)
    except (ReceiptError, OSError) as e:
        handle_error(e, debug)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
