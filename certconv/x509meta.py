import datetime as dt
import logging
from typing import Any, Dict, List, Optional, Tuple, cast

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from .common import Warn, days_until, iso_utc

log = logging.getLogger(__name__)

# openssl x509 -subject -issuer -dates -serial
_SUMMARY_KEYS = {
    "subject": "subject",
    "issuer": "issuer",
    "notBefore": "not_before",
    "notAfter": "not_after",
    "serial": "serial",
}

_OPENSSL_DATE = "%b %d %H:%M:%S %Y"


def parse_summary_fields(text: str) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.strip().partition("=")
        if not sep:
            continue
        field = _SUMMARY_KEYS.get(key.strip())
        if field:
            out[field] = value.strip()
    return out


def parse_openssl_date(value: str) -> Optional[dt.datetime]:
    """'Jan  2 15:04:05 2026 GMT' -> aware UTC datetime."""
    value = value.strip()
    if value.endswith(" GMT"):
        value = value[: -len(" GMT")]
    try:
        return dt.datetime.strptime(value, _OPENSSL_DATE).replace(tzinfo=dt.timezone.utc)
    except ValueError:
        return None


def parse_enddate(text: str) -> Tuple[str, Optional[dt.datetime]]:
    raw = parse_summary_fields(text).get("not_after", "")
    return raw, (parse_openssl_date(raw) if raw else None)


def _name_to_cn(name: x509.Name) -> Optional[str]:
    try:
        return name.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value  # type: ignore[index]
    except Exception:
        return None

def _public_key_info(cert: x509.Certificate) -> Dict[str, Any]:
    from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, rsa
    pk = cert.public_key()
    if isinstance(pk, rsa.RSAPublicKey):
        return {"type": "RSA", "size": pk.key_size}
    if isinstance(pk, ec.EllipticCurvePublicKey):
        return {"type": "EC", "curve": getattr(pk.curve, "name", "EC")}
    if isinstance(pk, ed25519.Ed25519PublicKey):
        return {"type": "Ed25519"}
    if isinstance(pk, ed448.Ed448PublicKey):
        return {"type": "Ed448"}
    return {"type": pk.__class__.__name__}

def _san_list(cert: x509.Certificate) -> List[str]:
    try:
        ext = cert.extensions.get_extension_for_oid(x509.oid.ExtensionOID.SUBJECT_ALTERNATIVE_NAME)
        san = cast(x509.SubjectAlternativeName, ext.value)
    except x509.ExtensionNotFound:
        return []
    out: List[str] = []
    for g in san:
        if isinstance(g, (x509.DNSName, x509.UniformResourceIdentifier, x509.RFC822Name)):
            out.append(g.value)
        elif isinstance(g, x509.IPAddress):
            out.append(str(g.value))
    return out

def _is_ca(cert: x509.Certificate) -> bool:
    try:
        ext = cert.extensions.get_extension_for_oid(x509.oid.ExtensionOID.BASIC_CONSTRAINTS)
    except x509.ExtensionNotFound:
        return False
    return bool(cast(x509.BasicConstraints, ext.value).ca)

def _sig_hash(cert: x509.Certificate) -> Optional[str]:
    try:
        algo = cert.signature_hash_algorithm
    except Exception:
        return None
    return algo.name if isinstance(algo, hashes.HashAlgorithm) else None

_KEY_USAGE_NAMES = [
    ("digital_signature", "Digital Signature"),
    ("content_commitment", "Content Commitment"),
    ("key_encipherment", "Key Encipherment"),
    ("data_encipherment", "Data Encipherment"),
    ("key_agreement", "Key Agreement"),
    ("key_cert_sign", "Certificate Sign"),
    ("crl_sign", "CRL Sign"),
]

_EXT_KEY_USAGE_NAMES = {
    ExtendedKeyUsageOID.SERVER_AUTH: "Server Auth",
    ExtendedKeyUsageOID.CLIENT_AUTH: "Client Auth",
    ExtendedKeyUsageOID.CODE_SIGNING: "Code Signing",
    ExtendedKeyUsageOID.EMAIL_PROTECTION: "Email Protection",
    ExtendedKeyUsageOID.TIME_STAMPING: "Time Stamping",
    ExtendedKeyUsageOID.OCSP_SIGNING: "OCSP Signing",
    ExtendedKeyUsageOID.ANY_EXTENDED_KEY_USAGE: "Any",
}

def _key_usage(cert: x509.Certificate) -> List[str]:
    try:
        ku = cast(x509.KeyUsage, cert.extensions.get_extension_for_class(x509.KeyUsage).value)
    except x509.ExtensionNotFound:
        return []
    out = [label for attr, label in _KEY_USAGE_NAMES if getattr(ku, attr)]
    # encipher_only/decipher_only are only defined alongside key_agreement
    if ku.key_agreement:
        if ku.encipher_only:
            out.append("Encipher Only")
        if ku.decipher_only:
            out.append("Decipher Only")
    return out

def _ext_key_usage(cert: x509.Certificate) -> List[str]:
    try:
        eku = cast(x509.ExtendedKeyUsage, cert.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value)
    except x509.ExtensionNotFound:
        return []
    return [_EXT_KEY_USAGE_NAMES.get(oid, oid.dotted_string) for oid in eku]


def load_first_cert(data: bytes) -> Optional[x509.Certificate]:
    """First certificate in PEM text (any surrounding blocks ignored), else raw DER."""
    if b"-----BEGIN CERTIFICATE-----" in data:
        try:
            return x509.load_pem_x509_certificates(data)[0]
        except Exception:
            pass
        try:
            return x509.load_pem_x509_certificate(data)
        except Exception:
            return None
    try:
        return x509.load_der_x509_certificate(data)
    except Exception:
        return None


def cert_to_meta(cert: x509.Certificate) -> Dict[str, Any]:
    na = getattr(cert, "not_valid_after_utc", None) or cert.not_valid_after.replace(tzinfo=dt.timezone.utc)
    return {
        "subject_cn": _name_to_cn(cert.subject),
        "not_after_iso": iso_utc(na),
        "days_until_expiry": days_until(na),
        "expired": na < dt.datetime.now(dt.timezone.utc),
        "public_key": _public_key_info(cert),
        "signature_hash": _sig_hash(cert),
        "fingerprint_sha256": cert.fingerprint(hashes.SHA256()).hex(),
        "san": _san_list(cert),
        "key_usage": _key_usage(cert),
        "ext_key_usage": _ext_key_usage(cert),
        "is_ca": _is_ca(cert),
        "self_signed": cert.subject == cert.issuer,
    }


def enrich(data: bytes) -> Optional[Dict[str, Any]]:
    """Best-effort extra fields for an inspection; None when the bytes do not parse."""
    cert = load_first_cert(data)
    if cert is None:
        return None
    try:
        return cert_to_meta(cert)
    except Exception as exc:
        log.debug("certificate enrichment failed: %s", exc)
        return None


def cert_warnings(meta: Dict[str, Any], soon_days: int = 30) -> List[dict]:
    out: List[dict] = []
    if meta.get("expired"):
        out.append(Warn("CERT_EXPIRED", "Certificate is expired", "error").as_dict())
    else:
        days = meta.get("days_until_expiry")
        if days is not None and int(days) <= soon_days:
            out.append(Warn("CERT_SOON_EXPIRES", f"Certificate expires in {days} days").as_dict())

    pk = meta.get("public_key") or {}
    if pk.get("type") == "RSA" and int(pk.get("size", 0)) < 2048:
        out.append(Warn("RSA_WEAK_KEY", "RSA key size < 2048").as_dict())

    sig = (meta.get("signature_hash") or "").lower()
    if sig in {"md5", "sha1"}:
        out.append(Warn("WEAK_SIGNATURE_HASH", f"Weak signature hash: {sig}").as_dict())
    return out
