from pathlib import Path
from typing import Annotated, List, Literal, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

from .contracts import Artifact, ConversionOptions, ConversionRequest, Kind, Operation
from .errors import CertconvError, IOFailure, MalformedInput
from .format_identify import classify, key_type
from .formats.pem import PEMExpect, normalize, validate_strict
from .logging_conf import setup_logging
from .orchestrator import ConversionOrchestrator
from .path_utils import resolve_output, resolve_path
from .secrets import SecretSpec
from .settings import Settings

mcp = FastMCP(
    name="certconv",
    instructions=(
        "Purpose: identify, validate, inspect and convert certificate artifacts "
        "(PEM certificates and keys, PKCS#12/PFX, DER, raw base64) using the local openssl binary.\n\n"
        "Use me when: you need to know what a certificate file is, check a PEM file is well formed, "
        "read subject/issuer/validity, verify a chain, check a key matches a certificate, "
        "or convert between formats.\n"
        "Do NOT use me for: TLS handshakes, certificate issuance, or keystores other than PKCS#12.\n\n"
        "How to call:\n"
        "- `classify_file(path=...)` → detected kind.\n"
        "- `validate_pem(path=..., expect=cert|key|auto)` → strict single-block check with a failure reason.\n"
        "- `normalize_pem(path=...)` → canonical PEM text (64-column body).\n"
        "- `inspect_file`, `check_expiry`, `verify_chain`, `match_key` → read-only reports.\n"
        "- `convert(operation=..., inputs=[...], output=?)` → writes `output` (never overwrites); "
        "without `output`, produced bytes come back base64-encoded in `data`.\n\n"
        "Secrets: pass `password`/`key_password` inline or as `*_file` paths. "
        "Passwords never appear in the openssl command line or in logs."
    ),
)

_ORCHESTRATOR: Optional[ConversionOrchestrator] = None


def get_orchestrator() -> ConversionOrchestrator:
    global _ORCHESTRATOR
    if _ORCHESTRATOR is None:
        settings = Settings.from_env()
        setup_logging(settings)
        _ORCHESTRATOR = ConversionOrchestrator(settings=settings)
    return _ORCHESTRATOR


def _secret(name: str, value: Optional[str], file: Optional[str]) -> SecretSpec:
    # stdin belongs to the MCP transport
    if file and file.strip() == "-":
        raise ToolError(f"{name}_file cannot read from stdin on the MCP server")
    return SecretSpec(name, value=value or "", file=str(resolve_path(file)) if file else "")


def _run(request: ConversionRequest) -> dict:
    try:
        result = get_orchestrator().execute(request)
    except CertconvError as exc:
        raise ToolError(str(exc)) from exc
    return result.model_dump(mode="json", exclude_none=True)


@mcp.tool(
    description="Liveness check. Returns the server name and the configured openssl binary.",
    tags={"certconv", "health"},
    annotations={"title": "Ping", "readOnlyHint": True, "idempotentHint": True, "openWorldHint": False},
)
def ping() -> dict:
    return {"ok": True, "name": "certconv", "openssl": get_orchestrator().settings.OPENSSL_BIN}


@mcp.tool(
    description=(
        "Detect the kind of a certificate artifact: cert, key, combined, pfx, der, base64 or unknown. "
        "Extension first, then content markers. Read-only."
    ),
    tags={"certconv", "x509", "analysis", "filesystem"},
    annotations={"title": "Classify file", "readOnlyHint": True, "idempotentHint": True, "openWorldHint": False},
)
def classify_file(
    path: Annotated[Path, Field(description="Local path to the file.")],
) -> dict:
    p = resolve_path(str(path))
    kind = classify(p)
    out = {"path": str(p), "kind": kind.value}
    if kind is Kind.PRIVATE_KEY:
        out["key_type"] = key_type(p)
    return out


@mcp.tool(
    description=(
        "Strictly validate that a file holds exactly one well-formed PEM block of the expected type. "
        "Returns `valid` and, on failure, a machine-readable `reason`."
    ),
    tags={"certconv", "pem", "validation"},
    annotations={"title": "Validate PEM", "readOnlyHint": True, "idempotentHint": True, "openWorldHint": False},
)
def validate_pem(
    path: Annotated[Path, Field(description="Local path to the PEM file.")],
    expect: Annotated[
        Literal["cert", "key", "auto"],
        Field(description="Expected block type; `auto` accepts a certificate or a private key."),
    ] = "auto",
) -> dict:
    p = resolve_path(str(path))
    try:
        block = validate_strict(p, PEMExpect(expect))
    except MalformedInput as exc:
        return {"path": str(p), "valid": False, "reason": exc.reason.value, "detail": exc.detail}
    except IOFailure as exc:
        raise ToolError(str(exc)) from exc
    return {"path": str(p), "valid": True, "label": block.label}


@mcp.tool(
    description=(
        "Return the canonical form of a single-block PEM file: surrounding whitespace dropped, "
        "body re-wrapped at 64 columns. The file itself is not modified."
    ),
    tags={"certconv", "pem"},
    annotations={"title": "Normalize PEM", "readOnlyHint": True, "idempotentHint": True, "openWorldHint": False},
)
def normalize_pem(
    path: Annotated[Path, Field(description="Local path to the PEM file.")],
    expect: Annotated[
        Literal["cert", "key", "auto"],
        Field(description="Expected block type; `auto` accepts a certificate or a private key."),
    ] = "auto",
) -> dict:
    p = resolve_path(str(path))
    try:
        text = normalize(p, PEMExpect(expect))
    except MalformedInput as exc:
        raise ToolError(str(exc)) from exc
    except IOFailure as exc:
        raise ToolError(str(exc)) from exc
    return {"path": str(p), "pem": text}


@mcp.tool(
    description=(
        "Summarize a certificate, PFX or key file: subject, issuer, validity, serial, SANs, "
        "SHA-256 fingerprint, key type, plus warnings (expiring soon, weak keys or hashes)."
    ),
    tags={"certconv", "x509", "analysis"},
    annotations={"title": "Inspect file", "readOnlyHint": True, "idempotentHint": True, "openWorldHint": False},
)
def inspect_file(
    path: Annotated[Path, Field(description="Local path to the file.")],
    password: Annotated[Optional[str], Field(description="PFX password, if the file is PKCS#12.")] = None,
    password_file: Annotated[Optional[str], Field(description="Path to a file holding the PFX password.")] = None,
    details: Annotated[bool, Field(description="Return the full `openssl x509 -text` dump instead.")] = False,
) -> dict:
    request = ConversionRequest(
        operation=Operation.DETAILS if details else Operation.INSPECT,
        inputs=[Artifact(resolve_path(str(path)))],
        options=ConversionOptions(password=_secret("password", password, password_file)),
    )
    return _run(request)


@mcp.tool(
    description="Report a certificate's expiry date and whether it is still valid `days` from now.",
    tags={"certconv", "x509", "expiry"},
    annotations={"title": "Check expiry", "readOnlyHint": True, "idempotentHint": True, "openWorldHint": False},
)
def check_expiry(
    path: Annotated[Path, Field(description="Local path to the certificate (PEM or DER).")],
    days: Annotated[Optional[int], Field(description="Window in days; defaults to the server setting.", gt=0)] = None,
) -> dict:
    request = ConversionRequest(
        operation=Operation.CHECK_EXPIRY,
        inputs=[Artifact(resolve_path(str(path)))],
        options=ConversionOptions(days=days),
    )
    return _run(request)


@mcp.tool(
    description="Verify a certificate against a CA bundle with `openssl verify`.",
    tags={"certconv", "x509", "chain"},
    annotations={"title": "Verify chain", "readOnlyHint": True, "idempotentHint": True, "openWorldHint": False},
)
def verify_chain(
    path: Annotated[Path, Field(description="Local path to the leaf certificate.")],
    ca_bundle: Annotated[Path, Field(description="Local path to the CA bundle (PEM, may hold several certs).")],
) -> dict:
    request = ConversionRequest(
        operation=Operation.VERIFY_CHAIN,
        inputs=[Artifact(resolve_path(str(path)))],
        ca_bundle=Artifact(resolve_path(str(ca_bundle))),
    )
    return _run(request)


@mcp.tool(
    description="Check whether a private key belongs to a certificate by comparing public keys.",
    tags={"certconv", "x509", "key"},
    annotations={"title": "Match key", "readOnlyHint": True, "idempotentHint": True, "openWorldHint": False},
)
def match_key(
    cert: Annotated[Path, Field(description="Local path to the certificate.")],
    key: Annotated[Path, Field(description="Local path to the private key (PEM).")],
    key_password: Annotated[Optional[str], Field(description="Password of an encrypted key.")] = None,
    key_password_file: Annotated[Optional[str], Field(description="Path to a file holding the key password.")] = None,
) -> dict:
    request = ConversionRequest(
        operation=Operation.MATCH_KEY,
        inputs=[Artifact(resolve_path(str(cert))), Artifact(resolve_path(str(key)))],
        options=ConversionOptions(key_password=_secret("key-password", key_password, key_password_file)),
    )
    return _run(request)


@mcp.tool(
    description=(
        "Convert certificate artifacts. Operations: to-pfx (cert, key), from-pfx (pfx; output is a directory), "
        "to-der, from-der, to-base64, from-base64, combine (cert, key). Existing outputs are never overwritten; "
        "the error suggests a free name."
    ),
    tags={"certconv", "conversion", "filesystem"},
    annotations={"title": "Convert", "readOnlyHint": False, "idempotentHint": False, "openWorldHint": False},
)
def convert(
    operation: Annotated[
        Literal["to-pfx", "from-pfx", "to-der", "from-der", "to-base64", "from-base64", "combine"],
        Field(description="Conversion to run."),
    ],
    inputs: Annotated[List[str], Field(description="Input paths in operation order, e.g. [cert, key].")],
    output: Annotated[
        Optional[str],
        Field(description="Output file (directory for from-pfx). Omit or '-' to get base64 `data` back."),
    ] = None,
    ca_bundle: Annotated[Optional[str], Field(description="Optional CA bundle for to-pfx and combine.")] = None,
    password: Annotated[Optional[str], Field(description="PFX password (export or import).")] = None,
    password_file: Annotated[Optional[str], Field(description="Path to a file holding the PFX password.")] = None,
    key_password: Annotated[Optional[str], Field(description="Password of an encrypted input key.")] = None,
    key_password_file: Annotated[Optional[str], Field(description="Path to a file holding the key password.")] = None,
    normalize: Annotated[bool, Field(description="Canonicalize PEM inputs before strict validation.")] = False,
    as_key: Annotated[bool, Field(description="Treat DER input/output as a private key.")] = False,
) -> dict:
    """
    Examples:

    - PEM pair to PFX:
      { "operation": "to-pfx", "inputs": ["/tmp/leaf.pem", "/tmp/leaf.key"],
        "output": "/tmp/leaf.pfx", "password_file": "/run/secrets/pfx" }

    - Certificate to DER, bytes returned:
      { "operation": "to-der", "inputs": ["/tmp/leaf.pem"] }
    """
    options = ConversionOptions(
        password=_secret("password", password, password_file),
        key_password=_secret("key-password", key_password, key_password_file),
        normalize=normalize,
        as_key=as_key,
    )
    request = ConversionRequest(
        operation=Operation(operation),
        inputs=[Artifact(resolve_path(p)) for p in inputs],
        ca_bundle=Artifact(resolve_path(ca_bundle)) if ca_bundle else None,
        output=resolve_output(output),
        options=options,
    )
    return _run(request)


@mcp.prompt(
    name="audit_certificate",
    description=(
        "Audit a local certificate by calling `inspect_file` and `check_expiry`, "
        "then produce a short report."
    ),
    tags={"certconv", "prompt", "audit"},
)
def audit_certificate(
    path: Annotated[str, Field(description="Local path to the certificate.")],
) -> str:
    return (
        "Task: Audit the certificate at the given local path.\n\n"
        f'1) Call `inspect_file` with {{"path": "{path}"}}.\n'
        f'2) Call `check_expiry` with {{"path": "{path}"}}.\n\n'
        "Report subject, issuer, validity window, SANs, key type and size, signature hash, "
        "and every warning returned. Flag: expires within 30 days; SHA-1 or MD5 signatures; RSA < 2048 bits.\n"
        "If a tool call fails, output ERROR: <message> and stop. Do not invent results.\n"
    )


if __name__ == "__main__":
    mcp.run()
