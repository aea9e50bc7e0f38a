"""
delphi-oracle CLI tests (click CliRunner).
"""

import json

import pytest
from click.testing import CliRunner

from delphi_audit.cli import main
from gateway.utils.registry import EnclaveKeyRegistry, KeyStatus
from oracle_tee.enclave_signer import SignRequest

from conftest import OWNER_SEED_HEX, PUBLIC_KEY_HEX, SEED_HEX, raw_public_key

KNOWN_ANSWER_HEX = (
    "0020b1d1109601000002000000000000000a30312d30312d3230323407626974636f696e"
    "010000000000000000a014e3322600000100000000000000"
)


@pytest.fixture
def runner():
    return CliRunner()


def test_keygen(runner):
    result = runner.invoke(main, ["keygen"])
    assert result.exit_code == 0
    lines = dict(line.split("=", 1) for line in result.output.strip().splitlines())
    assert len(lines["ED25519_SEED"]) == 64
    assert len(lines["PUBLIC_KEY"]) == 64


def test_pubkey(runner):
    result = runner.invoke(main, ["pubkey", SEED_HEX])
    assert result.exit_code == 0
    assert result.output.strip() == PUBLIC_KEY_HEX


def test_pubkey_bad_seed(runner):
    result = runner.invoke(main, ["pubkey", "abcd"])
    assert result.exit_code == 1


def test_revoke_sig_revokes_registry_record(runner, owner_key, keypair):
    registry = EnclaveKeyRegistry()
    record = registry.register(keypair.public_key_bytes, owner=raw_public_key(owner_key))

    result = runner.invoke(main, ["revoke-sig", record.id, "--owner-seed", OWNER_SEED_HEX])
    assert result.exit_code == 0, result.output

    signature = bytes.fromhex(result.output.strip())
    assert registry.revoke(record.id, signature).status is KeyStatus.REVOKED


def test_revoke_sig_reads_seed_from_env(runner):
    from_flag = runner.invoke(main, ["revoke-sig", "abc", "--owner-seed", OWNER_SEED_HEX])
    from_env = runner.invoke(main, ["revoke-sig", "abc"], env={"DELPHI_OWNER_SEED": OWNER_SEED_HEX})
    assert from_env.exit_code == 0
    assert from_env.output == from_flag.output


def test_revoke_sig_bad_seed(runner):
    assert runner.invoke(main, ["revoke-sig", "abc", "--owner-seed", "abcd"]).exit_code == 1


def test_encode_matches_known_vector(runner):
    result = runner.invoke(main, [
        "encode",
        "--type", "2",
        "--date", "01-01-2024",
        "--coin", "bitcoin",
        "--comparator", "1",
        "--price", "42000",
        "--result", "1",
        "--timestamp", "1744038900000",
    ])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == KNOWN_ANSWER_HEX


def test_encode_rejects_unsupported_coin(runner):
    result = runner.invoke(main, [
        "encode", "--type", "1", "--date", "01-01-2024", "--coin", "notacoin",
        "--comparator", "1", "--price", "1", "--timestamp", "1",
    ])
    assert result.exit_code == 1


def test_decode(runner):
    result = runner.invoke(main, ["decode", "0x" + KNOWN_ANSWER_HEX])
    assert result.exit_code == 0
    decoded = json.loads(result.output)
    assert decoded["timestamp_ms"] == "1744038900000"
    assert decoded["payload"]["coin"] == "bitcoin"
    assert decoded["price_usd"] == "42000"


def test_decode_garbage(runner):
    assert runner.invoke(main, ["decode", "zz"]).exit_code == 1
    assert runner.invoke(main, ["decode", KNOWN_ANSWER_HEX + "00"]).exit_code == 1


@pytest.mark.asyncio
async def test_verify_bundle_file(runner, signer, tmp_path):
    bundle = await signer.sign(SignRequest(2, "01-01-2024", "bitcoin", 2, 42_000_000_000_000))
    path = tmp_path / "bundle.json"
    path.write_text(json.dumps(bundle.to_response()))

    ok = runner.invoke(main, ["verify", str(path), "--public-key", PUBLIC_KEY_HEX])
    assert ok.exit_code == 0
    assert "VALID" in ok.output

    as_json = runner.invoke(main, ["verify", str(path), "-k", PUBLIC_KEY_HEX, "--json"])
    assert json.loads(as_json.output)["status"] == "valid"

    tampered = bundle.to_response()
    tampered["payload"]["result"] = 2
    path.write_text(json.dumps(tampered))
    bad = runner.invoke(main, ["verify", str(path), "--public-key", PUBLIC_KEY_HEX])
    assert bad.exit_code == 1
    assert "INVALID" in bad.output


def test_verify_bad_public_key(runner, tmp_path):
    path = tmp_path / "bundle.json"
    path.write_text("{}")
    result = runner.invoke(main, ["verify", str(path), "--public-key", "abcd"])
    assert result.exit_code == 1
