"""
CLI for the Delphi Oracle
=========================

Command-line interface for operating the oracle and auditing its output.

Commands:
    delphi-oracle keygen                        Generate a fresh 32-byte signing seed
    delphi-oracle pubkey <seed_hex>             Derive the public key for a seed
    delphi-oracle revoke-sig <enclave_id>       Owner signature revoking a registry record
    delphi-oracle encode ...                    Canonical preimage for a fact
    delphi-oracle decode <hex>                  Decode a canonical preimage
    delphi-oracle verify <bundle.json> -k <pk>  Verify a bundle under a trusted key
    delphi-oracle serve                         Run the HTTP gateway
"""

import json
import secrets
import sys
from typing import Optional

import click
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from delphi_canonical import __version__
from delphi_canonical.codec import decode, encode
from delphi_canonical.constants import ED25519_PUBLIC_KEY_LENGTH, ED25519_SEED_LENGTH
from delphi_canonical.errors import DelphiError, KeyMaterialError
from delphi_canonical.hexutil import hex_decode, hex_encode
from delphi_canonical.pricing import format_fixed_point, scale_decimal_price
from delphi_canonical.types import AttestationBundle, Comparator, FactPayload, FactRequestType, FactResult
from delphi_canonical.verify import verify as verify_bundle
from gateway.utils.registry import sign_revocation
from oracle_tee.enclave_signer import EnclaveKeyPair


@click.group()
@click.version_option(version=__version__)
def main():
    """
    Delphi Oracle CLI - operate the oracle and audit its attestations

    Examples:
        delphi-oracle keygen
        delphi-oracle encode --type 2 --date 01-01-2024 --coin bitcoin --comparator 1 --price 42000 --result 1 --timestamp 1744038900000
        delphi-oracle verify bundle.json --public-key 3b6a27bc...
        delphi-oracle serve --port 3000
    """
    pass


@main.command()
def keygen():
    """
    Generate a random ED25519_SEED and print it with its public key.

    Keep the seed secret. Register the public key with the enclave registry.
    """
    seed_hex = secrets.token_hex(ED25519_SEED_LENGTH)
    keypair = EnclaveKeyPair.from_seed_hex(seed_hex)
    click.echo(f"ED25519_SEED={seed_hex}")
    click.echo(f"PUBLIC_KEY={keypair.public_key_hex}")


@main.command()
@click.argument("seed_hex")
def pubkey(seed_hex: str):
    """Print the public key derived from a 32-byte hex seed."""
    try:
        keypair = EnclaveKeyPair.from_seed_hex(seed_hex)
    except KeyMaterialError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    click.echo(keypair.public_key_hex)


@main.command("revoke-sig")
@click.argument("enclave_id")
@click.option("--owner-seed", envvar="DELPHI_OWNER_SEED", required=True, help="Owner key's 32-byte hex seed")
def revoke_sig_cmd(enclave_id: str, owner_seed: str):
    """
    Sign a revocation of ENCLAVE_ID with the owner key.

    Post the output as ``{"signature": ...}`` to /enclaves/ENCLAVE_ID/revoke.
    """
    try:
        seed = hex_decode(owner_seed.strip(), ED25519_SEED_LENGTH)
    except ValueError as e:
        click.echo(f"❌ Owner seed must be {ED25519_SEED_LENGTH} bytes of hex: {e}", err=True)
        sys.exit(1)
    signature = sign_revocation(Ed25519PrivateKey.from_private_bytes(seed), enclave_id)
    click.echo(hex_encode(signature))


@main.command("encode")
@click.option("--type", "request_type", type=click.IntRange(1, 2), required=True, help="1 question, 2 resolution")
@click.option("--date", required=True, help="DD-MM-YYYY")
@click.option("--coin", required=True, help="Canonical coin symbol, e.g. bitcoin")
@click.option("--comparator", type=click.IntRange(1, 2), required=True, help="1 <=, 2 >=")
@click.option("--price", required=True, help="Decimal USD price (scaled by 1e9, truncated)")
@click.option("--result", type=click.IntRange(0, 2), default=0, show_default=True)
@click.option("--timestamp", "timestamp_ms", type=int, required=True, help="Signing time in ms")
@click.option("--intent", "intent_scope", type=int, default=0, show_default=True)
def encode_cmd(
    request_type: int,
    date: str,
    coin: str,
    comparator: int,
    price: str,
    result: int,
    timestamp_ms: int,
    intent_scope: int,
):
    """Print the canonical preimage (hex) for a fact."""
    try:
        payload = FactPayload(
            request_type=FactRequestType(request_type),
            date=date,
            coin=coin,
            comparator=Comparator(comparator),
            price=scale_decimal_price(price),
            result=FactResult(result),
        )
        message = encode(intent_scope, timestamp_ms, payload)
    except DelphiError as e:
        click.echo(f"❌ {e.kind.value}: {e.reason}", err=True)
        sys.exit(1)
    click.echo(hex_encode(message))


@main.command("decode")
@click.argument("message_hex")
def decode_cmd(message_hex: str):
    """Decode a canonical preimage (hex) into JSON."""
    try:
        intent_scope, timestamp_ms, payload = decode(hex_decode(message_hex.strip()))
    except ValueError as e:
        click.echo(f"❌ Not valid hex: {e}", err=True)
        sys.exit(1)
    except DelphiError as e:
        click.echo(f"❌ {e.kind.value}: {e.reason}", err=True)
        sys.exit(1)

    decoded = {
        "intent_scope": intent_scope,
        "timestamp_ms": str(timestamp_ms),
        "payload": payload.to_dict(),
        "price_usd": format_fixed_point(payload.price),
    }
    click.echo(json.dumps(decoded, indent=2))


@main.command("verify")
@click.argument("bundle_file", type=click.File("r"))
@click.option("--public-key", "-k", required=True, help="Trusted 32-byte Ed25519 public key (hex)")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the result as JSON")
def verify_cmd(bundle_file, public_key: str, as_json: bool):
    """
    Verify a bundle (as returned by /process_data) under a trusted key.

    The trusted key must come from the enclave registry or another source
    you trust; the key embedded in the bundle is only reported.

    Exits 0 when the bundle is VALID, 1 otherwise.
    """
    try:
        trusted_key = hex_decode(public_key.strip(), ED25519_PUBLIC_KEY_LENGTH)
    except ValueError as e:
        click.echo(f"❌ Bad --public-key: {e}", err=True)
        sys.exit(1)

    try:
        bundle = AttestationBundle.from_response(json.load(bundle_file))
    except ValueError as e:
        click.echo(f"❌ Bundle file is not valid JSON: {e}", err=True)
        sys.exit(1)
    except DelphiError as e:
        click.echo(f"❌ {e.kind.value}: {e.reason}", err=True)
        sys.exit(1)

    result = verify_bundle(bundle, trusted_key)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        click.echo()
        for step in result.verification_steps:
            click.echo(f"  {step}")
        click.echo()
        if result.is_valid:
            click.echo("✅ VALID")
        else:
            click.echo(f"❌ {result.status.value.upper()}: {result.reason}")

    sys.exit(0 if result.is_valid else 1)


@main.command()
@click.option("--host", default=None, help="Bind address (default: HOST env or 0.0.0.0)")
@click.option("--port", type=int, default=None, help="Port (default: PORT env or 3000)")
@click.option("--env-file", default=None, type=click.Path(dir_okay=False), help="Path to a .env file")
def serve(host: Optional[str], port: Optional[int], env_file: Optional[str]):
    """Run the oracle HTTP gateway."""
    import uvicorn

    from gateway.config import OracleConfig
    from gateway.main import create_app

    config = OracleConfig.from_env(env_file)
    if host:
        config.HOST = host
    if port:
        config.PORT = port

    try:
        app = create_app(config)
    except (ValueError, KeyMaterialError) as e:
        click.echo(f"❌ Cannot start oracle: {e}", err=True)
        sys.exit(1)

    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
