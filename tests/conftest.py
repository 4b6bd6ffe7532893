import datetime

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from lnrpc.bootstrap import CIPHER_SUITES_VARIABLE
from tests.mocks.clients import StubTransport


@pytest.fixture(autouse=True)
def test_set_env(monkeypatch):
    for variable in ("LNRPC_SERVER", "LNRPC_TLS", "LNRPC_CERT", "LNRPC_SERVICE"):
        monkeypatch.delenv(variable, raising=False)
    # set then delete so monkeypatch restores the variable after the bootstrapper writes it
    monkeypatch.setenv(CIPHER_SUITES_VARIABLE, "unset")
    monkeypatch.delenv(CIPHER_SUITES_VARIABLE)


@pytest.fixture
def transport() -> StubTransport:
    """Create a stub transport handing out stub clients."""
    return StubTransport()


@pytest.fixture
def proto_paths(tmp_path):
    """Vendored-like protocol source and a patched destination inside tmp_path."""
    src = tmp_path / "vendor" / "rpc.proto"
    src.parent.mkdir()
    src.write_text(
        'syntax = "proto3";\n\nimport "google/api/annotations.proto";\n\npackage lnrpc;\n',
        encoding="utf-8",
    )
    return src, tmp_path / "out" / "rpc.proto"


@pytest.fixture(scope="session")
def certificate_pem() -> bytes:
    """Self-signed PEM certificate, shaped like the one lnd generates."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.ORGANIZATION_NAME, "lnd autogenerated cert")])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(x509.SubjectAlternativeName([x509.DNSName("localhost")]), critical=False)
        .sign(key, hashes.SHA256())
    )
    return certificate.public_bytes(serialization.Encoding.PEM)
