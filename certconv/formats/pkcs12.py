from typing import Optional

PASSWORD_MISMATCH = "password-mismatch"
NOT_PKCS12 = "not-pkcs12"
LEGACY_UNSUPPORTED = "legacy-unsupported"

_MESSAGES = {
    PASSWORD_MISMATCH: "invalid PFX or wrong password: incorrect password",
    NOT_PKCS12: "file is not a valid PKCS#12/PFX file",
    LEGACY_UNSUPPORTED: (
        "cannot read PFX: uses legacy encryption unsupported by OpenSSL "
        "(try enabling the legacy provider)"
    ),
}


def is_legacy_provider_error(stderr: str) -> bool:
    # OpenSSL 3 without the legacy provider:
    #   ... digital envelope routines:inner_evp_generic_fetch:unsupported
    return "inner_evp_generic_fetch:unsup" in stderr.lower()


def classify_error(stderr: str) -> Optional[str]:
    lower = stderr.strip().lower()
    if not lower:
        return None
    if is_legacy_provider_error(lower):
        return LEGACY_UNSUPPORTED
    if (
        "mac verify failure" in lower
        or "mac verify error" in lower
        or "invalid password" in lower
        or "bad decrypt" in lower
        or ("password" in lower and "incorrect" in lower)
    ):
        return PASSWORD_MISMATCH
    if (
        "expecting an asn1 sequence" in lower
        or "not a pkcs12" in lower
        or "not a pkcs#12" in lower
        or (
            "asn1" in lower
            and any(s in lower for s in ("wrong tag", "nested asn1 error", "not enough data", "type=pkcs12"))
        )
    ):
        return NOT_PKCS12
    return None


def describe(subkind: Optional[str], stderr: str) -> str:
    if subkind in _MESSAGES:
        return _MESSAGES[subkind]
    msg = stderr.strip()
    return f"invalid PFX: {msg}" if msg else "invalid PFX"
