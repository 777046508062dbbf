"""
CLI for VeriForge Provenance Audit
==================================

Command-line interface for checking /process_data responses offline.

Commands:
    veriforge-verify envelope <file> [--pubkey HEX]   Verify envelope signature
    veriforge-verify artifact <file> <hex>            Compare file digest with a signed hash
    veriforge-verify prompt <text> <hex>              Compare prompt text with promptHash
"""

import json
import sys
from typing import Optional

import click

from veriforge_audit import __version__
from veriforge_canonical.envelope import (
    decode_record,
    verify_artifact,
    verify_envelope,
    verify_prompt,
)


@click.group()
@click.version_option(version=__version__)
def main():
    """
    VeriForge Audit CLI - verify signed image provenance

    Anyone holding a /process_data response can check that the enclave
    signed it, and that a locally obtained image matches the signed hash.

    Examples:
        veriforge-verify envelope response.json
        veriforge-verify envelope response.json --pubkey 3b6a27bc...
        veriforge-verify artifact image.png 9f86d081...
    """
    pass


@main.command()
@click.argument("envelope_file", type=click.File("r"))
@click.option(
    "--pubkey", "-k",
    default=None,
    help="Pinned enclave public key (hex). Defaults to the key in the envelope.",
)
@click.option(
    "--image", "-i",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Local copy of the output image to check against imageHash",
)
def envelope(envelope_file, pubkey: Optional[str], image: Optional[str]):
    """
    Verify the signature of a signed provenance envelope.

    Exit status is 0 only if every requested check passes.
    """
    try:
        data = json.load(envelope_file)
    except json.JSONDecodeError as e:
        click.echo(f"❌ Not valid JSON: {e}", err=True)
        sys.exit(1)

    if not verify_envelope(data, expected_pubkey=pubkey):
        click.echo("❌ Signature INVALID")
        sys.exit(1)

    record = decode_record(data["record"])
    click.echo("✅ Signature valid")
    click.echo(f"   Public key:   {data['publicKey']}")
    click.echo(f"   Timestamp:    {data['timestamp']}")
    click.echo(f"   Model:        {record.model}")
    click.echo(f"   Seed:         {record.seed}")
    click.echo(f"   Blob id:      {record.storage_blob_id}")
    click.echo(f"   Image hash:   {record.image_hash.hex()}")
    click.echo(f"   Source hash:  {record.source_image_hash.hex() or '(none, generate mode)'}")

    if image:
        if verify_artifact(image, record.image_hash.hex()):
            click.echo(f"✅ {image} matches imageHash")
        else:
            click.echo(f"❌ {image} does NOT match imageHash")
            sys.exit(1)


@main.command()
@click.argument("artifact_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("expected_hash")
def artifact(artifact_file: str, expected_hash: str):
    """Check a local file against a signed SHA-256 digest."""
    try:
        bytes.fromhex(expected_hash)
    except ValueError:
        click.echo("❌ Expected hash is not valid hex", err=True)
        sys.exit(1)

    if verify_artifact(artifact_file, expected_hash):
        click.echo(f"✅ {artifact_file} matches")
    else:
        click.echo(f"❌ {artifact_file} does NOT match")
        sys.exit(1)


@main.command()
@click.argument("prompt_text")
@click.argument("expected_hash")
def prompt(prompt_text: str, expected_hash: str):
    """Check prompt text against a signed promptHash."""
    if verify_prompt(prompt_text, expected_hash):
        click.echo("✅ Prompt matches")
    else:
        click.echo("❌ Prompt does NOT match")
        sys.exit(1)


if __name__ == "__main__":
    main()
