# certconv/orchestrator.py
"""
Drives one ConversionRequest through Validating -> Executing -> Parsing.

Validation is fail-fast: secret-source conflicts are rejected before any I/O,
and PEM inputs that do not pass the strict gate never reach openssl. All
scratch files, staged outputs and secret carriers are released on every exit
path of the step that created them.
"""
from __future__ import annotations

import contextlib
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from . import output as out_files
from .common import Warn, days_until
from .contracts import (
    Artifact,
    ConversionRequest,
    ConversionResult,
    DetailsResult,
    ExpiryResult,
    FromPFXResult,
    InspectResult,
    Kind,
    MatchResult,
    Operation,
    OutputResult,
    VerifyResult,
)
from .errors import Cancelled, CertconvError, IOFailure, MalformedInput, ToolchainFailure, UsageError
from .executor import Arg, ExecResult, Executor, OpenSSLExecutor, SecretArg
from .format_identify import key_type
from .formats import b64
from .formats import pkcs12 as fmt_pkcs12
from .formats.der import der_warnings
from .formats.pem import PEMExpect, pem_payload, validate_strict, write_normalized
from .secrets import InlineSecretWarner, SecretSpec, StdinSource, check_sources, load_secret, reject_shared_stdin
from .settings import Settings
from .x509meta import cert_warnings, enrich, parse_enddate, parse_summary_fields

log = logging.getLogger(__name__)


class RequestState(str, Enum):
    PENDING = "pending"
    VALIDATING = "validating"
    EXECUTING = "executing"
    PARSING = "parsing"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS = {
    RequestState.PENDING: {RequestState.VALIDATING},
    RequestState.VALIDATING: {RequestState.EXECUTING, RequestState.FAILED},
    RequestState.EXECUTING: {RequestState.PARSING, RequestState.FAILED},
    RequestState.PARSING: {RequestState.DONE, RequestState.FAILED},
}


@dataclass
class RequestRun:
    """Per-request state record. Done and Failed are terminal."""

    state: RequestState = RequestState.PENDING
    history: List[RequestState] = field(default_factory=lambda: [RequestState.PENDING])
    error: Optional[Exception] = None

    def can_advance(self, state: RequestState) -> bool:
        return state in _TRANSITIONS.get(self.state, set())

    def advance(self, state: RequestState) -> None:
        if not self.can_advance(state):
            raise RuntimeError(f"invalid transition {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def fail(self, error: Exception) -> None:
        self.error = error
        self.advance(RequestState.FAILED)

    @property
    def reason(self) -> Optional[str]:
        if self.error is None:
            return None
        if isinstance(self.error, Cancelled):
            return "cancelled"
        if isinstance(self.error, MalformedInput):
            return self.error.reason.value
        return type(self.error).__name__


# inputs per operation
_ARITY: Dict[Operation, int] = {
    Operation.INSPECT: 1,
    Operation.DETAILS: 1,
    Operation.TO_PFX: 2,
    Operation.FROM_PFX: 1,
    Operation.TO_DER: 1,
    Operation.FROM_DER: 1,
    Operation.TO_BASE64: 1,
    Operation.FROM_BASE64: 1,
    Operation.COMBINE: 2,
    Operation.VERIFY_CHAIN: 1,
    Operation.MATCH_KEY: 2,
    Operation.CHECK_EXPIRY: 1,
}

_WRITES_FILE = {
    Operation.TO_PFX,
    Operation.TO_DER,
    Operation.FROM_DER,
    Operation.TO_BASE64,
    Operation.FROM_BASE64,
    Operation.COMBINE,
}

_X509_SUMMARY = ["-noout", "-subject", "-issuer", "-dates", "-serial"]

_CERT_KINDS = {Kind.CERTIFICATE, Kind.COMBINED, Kind.DER}


@dataclass
class _Ctx:
    request: ConversionRequest
    run: RequestRun
    cancel: Optional[threading.Event]
    timeout: Optional[float]
    inputs: List[Artifact]
    ca: Optional[Artifact] = None
    warnings: List[dict] = field(default_factory=list)

    @property
    def op(self) -> Operation:
        return self.request.operation

    def parsing(self) -> None:
        if self.run.state is RequestState.EXECUTING:
            self.run.advance(RequestState.PARSING)

    def warn(self, code: str, message: str) -> None:
        log.warning(message)
        self.warnings.append(Warn(code, message).as_dict())


def _path(a: Artifact) -> str:
    return str(a.path)


def _record_failure(request: ConversionRequest, run: RequestRun, exc: Exception) -> None:
    log.debug("%s failed in %s: %s", request.operation.value, run.state.value, exc)
    # a run handed in already terminal keeps its first outcome
    if run.can_advance(RequestState.FAILED):
        run.fail(exc)


def _read_scratch(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise IOFailure(f"read {path}", exc) from exc


def _secret_specs(request: ConversionRequest) -> List[SecretSpec]:
    """The secrets an operation actually consumes, in resolution order."""
    op, opts = request.operation, request.options
    if op in (Operation.INSPECT, Operation.DETAILS, Operation.FROM_PFX):
        return [opts.password]
    if op is Operation.TO_PFX:
        return [opts.password, opts.key_password]
    if op in (Operation.TO_DER, Operation.MATCH_KEY, Operation.COMBINE):
        return [opts.key_password]
    return []


class ConversionOrchestrator:
    def __init__(
        self,
        executor: Optional[Executor] = None,
        settings: Optional[Settings] = None,
        stdin: Optional[StdinSource] = None,
        warner: Optional[InlineSecretWarner] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.executor = executor or OpenSSLExecutor(self.settings.OPENSSL_BIN)
        self.stdin = stdin or StdinSource()
        self.warner = warner
        self._ops: Dict[Operation, Callable[[_Ctx], ConversionResult]] = {
            Operation.INSPECT: self._inspect,
            Operation.DETAILS: self._details,
            Operation.TO_PFX: self._to_pfx,
            Operation.FROM_PFX: self._from_pfx,
            Operation.TO_DER: self._to_der,
            Operation.FROM_DER: self._from_der,
            Operation.TO_BASE64: self._to_base64,
            Operation.FROM_BASE64: self._from_base64,
            Operation.COMBINE: self._combine,
            Operation.VERIFY_CHAIN: self._verify_chain,
            Operation.MATCH_KEY: self._match_key,
            Operation.CHECK_EXPIRY: self._check_expiry,
        }

    def execute(
        self,
        request: ConversionRequest,
        run: Optional[RequestRun] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ConversionResult:
        run = run or RequestRun()
        timeout = request.options.timeout or self.settings.TIMEOUT_SEC
        with contextlib.ExitStack() as stack:
            try:
                run.advance(RequestState.VALIDATING)
                ctx = self._validate(request, run, cancel, timeout, stack)
                run.advance(RequestState.EXECUTING)
                result = self._ops[request.operation](ctx)
                ctx.parsing()
                run.advance(RequestState.DONE)
            except CertconvError as exc:
                _record_failure(request, run, exc)
                raise
            except OSError as exc:
                err = IOFailure(request.operation.value, exc)
                _record_failure(request, run, err)
                raise err from exc
            except Exception as exc:
                _record_failure(request, run, exc)
                raise
        return result

    # ---------------------------
    # Validating
    # ---------------------------

    def _validate(
        self,
        request: ConversionRequest,
        run: RequestRun,
        cancel: Optional[threading.Event],
        timeout: Optional[float],
        stack: contextlib.ExitStack,
    ) -> _Ctx:
        op = request.operation
        want = _ARITY[op]
        if len(request.inputs) != want:
            raise UsageError(f"{op.value} takes {want} input file(s), got {len(request.inputs)}")

        # No I/O before this point: source conflicts are pure option checks.
        specs = _secret_specs(request)
        for spec in specs:
            check_sources(spec)
        reject_shared_stdin(*specs)

        for a in request.inputs:
            if not a.path.is_file():
                raise UsageError(f"file not found: {a.path}")
            log.debug("classified %s as %s", a.path, a.kind.value)
        ca = request.ca_bundle
        if op is Operation.VERIFY_CHAIN and ca is None:
            raise UsageError("verify requires a CA bundle")
        if ca is not None and not ca.path.is_file():
            raise UsageError(f"file not found: {ca.path}")

        if op in _WRITES_FILE and request.writes_file:
            out_files.ensure_not_exists(request.output)
        if op is Operation.FROM_PFX:
            if not request.writes_file:
                raise UsageError("from-pfx requires an output directory")
            cert_file, key_file, _ = _pfx_targets(request.inputs[0], Path(request.output))
            out_files.ensure_not_exists(cert_file)
            out_files.ensure_not_exists(key_file)
        if op is Operation.CHECK_EXPIRY and request.inputs[0].kind not in _CERT_KINDS:
            raise UsageError(f"cannot check expiry of file type: {request.inputs[0].kind.value}")

        ctx = _Ctx(request=request, run=run, cancel=cancel, timeout=timeout, inputs=list(request.inputs), ca=ca)
        for index, expect in self._pem_gates(request):
            ctx.inputs[index] = self._gate(ctx.inputs[index], expect, request.options.normalize, stack)
        return ctx

    def _pem_gates(self, request: ConversionRequest) -> List[tuple]:
        op = request.operation
        if op in (Operation.TO_PFX, Operation.COMBINE):
            return [(0, PEMExpect.CERT), (1, PEMExpect.KEY)]
        if op is Operation.TO_DER:
            if request.options.as_key or request.inputs[0].kind is Kind.PRIVATE_KEY:
                return [(0, PEMExpect.KEY)]
            return [(0, PEMExpect.CERT)]
        if op is Operation.MATCH_KEY:
            gates = [(1, PEMExpect.KEY)]
            if request.inputs[0].kind is Kind.CERTIFICATE:
                gates.insert(0, (0, PEMExpect.CERT))
            return gates
        return []

    def _gate(self, art: Artifact, expect: PEMExpect, normalize: bool, stack: contextlib.ExitStack) -> Artifact:
        kind = art.kind
        if normalize:
            tmp = stack.enter_context(write_normalized(art.path, expect))
            log.debug("normalized %s into %s", art.path, tmp)
            art = Artifact(tmp)
            art._kind = kind
        validate_strict(art.path, expect)
        return art

    # ---------------------------
    # Executing helpers
    # ---------------------------

    def _secret(self, spec: SecretSpec) -> str:
        secret = load_secret(spec, self.stdin)
        if self.warner is not None and secret.value:
            self.warner.warn_if_inline(spec)
        return secret.value

    def _exec(self, ctx: _Ctx, args: Sequence[Arg], secrets: Sequence[str] = ()) -> ExecResult:
        if secrets:
            res = self.executor.run_with_secrets(args, secrets, timeout=ctx.timeout, cancel=ctx.cancel)
        else:
            res = self.executor.run([str(a) for a in args], timeout=ctx.timeout, cancel=ctx.cancel)
        if (
            not res.ok
            and self.settings.LEGACY_RETRY
            and args
            and args[0] == "pkcs12"
            and "-legacy" not in args
            and fmt_pkcs12.is_legacy_provider_error(res.err)
        ):
            log.info("retrying pkcs12 with -legacy")
            legacy = ["pkcs12", "-legacy", *args[1:]]
            if secrets:
                res = self.executor.run_with_secrets(legacy, secrets, timeout=ctx.timeout, cancel=ctx.cancel)
            else:
                res = self.executor.run([str(a) for a in legacy], timeout=ctx.timeout, cancel=ctx.cancel)
        return res

    @staticmethod
    def _failure(what: str, res: ExecResult, subkind: Optional[str] = None) -> ToolchainFailure:
        # stderr is more useful to users than "exit status N"
        msg = res.err.strip() or f"exit status {res.returncode}"
        return ToolchainFailure(
            f"{what}: {msg}",
            subkind=subkind,
            stderr=res.err,
            stdout=res.out,
            returncode=res.returncode,
        )

    def _produce(
        self,
        ctx: _Ctx,
        build: Callable[[str], List[Arg]],
        secrets: Sequence[str],
        mode: int,
        what: str,
        subkind_of: Optional[Callable[[str], Optional[str]]] = None,
    ) -> OutputResult:
        request = ctx.request
        holder = out_files.staged(request.output) if request.writes_file else out_files.scratch()
        with holder as tmp:
            res = self._exec(ctx, build(str(tmp)), secrets)
            ctx.parsing()
            if not res.ok:
                raise self._failure(what, res, subkind_of(res.err) if subkind_of else None)
            if tmp.stat().st_size == 0:
                raise ToolchainFailure(f"{what}: output file is empty", stderr=res.err, stdout=res.out)
            base = dict(operation=ctx.op, stdout=res.out, stderr=res.err, warnings=ctx.warnings)
            if request.writes_file:
                out_files.commit(tmp, request.output, mode)
                return OutputResult(output=request.output, **base)
            return OutputResult(data=_read_scratch(tmp), **base)

    def _emit(self, ctx: _Ctx, data: bytes, mode: int) -> OutputResult:
        request = ctx.request
        ctx.parsing()
        if request.writes_file:
            out_files.write_exclusive(request.output, data, mode)
            return OutputResult(operation=ctx.op, output=request.output, warnings=ctx.warnings)
        return OutputResult(operation=ctx.op, data=data, warnings=ctx.warnings)

    def _pfx_certs(self, ctx: _Ctx, path: str) -> ExecResult:
        password = self._secret(ctx.request.options.password)
        res = self._exec(ctx, ["pkcs12", "-in", path, "-nokeys", "-passin", SecretArg(0)], [password])
        if not res.ok:
            subkind = fmt_pkcs12.classify_error(res.err)
            raise self._failure(f"read pfx: {fmt_pkcs12.describe(subkind, res.err)}", res, subkind)
        return res

    def _x509(self, ctx: _Ctx, art: Artifact, extra: List[str], what: str):
        """Run `x509` on a certificate artifact; PKCS#12 inputs go through a scratch PEM."""
        kind = art.kind
        if kind is Kind.PKCS12:
            pem = self._pfx_certs(ctx, _path(art)).stdout
            with out_files.scratch(".pem") as tmp:
                try:
                    tmp.write_bytes(pem)
                except OSError as exc:
                    raise IOFailure("write scratch PEM", exc) from exc
                res = self._exec(ctx, ["x509", "-in", str(tmp), *extra])
            source = pem
        else:
            args = ["x509", "-in", _path(art)]
            if kind is Kind.DER:
                args += ["-inform", "DER"]
            res = self._exec(ctx, args + extra)
            source = None
        if not res.ok:
            raise self._failure(what, res)
        return res, source

    # ---------------------------
    # Operations
    # ---------------------------

    def _inspect(self, ctx: _Ctx) -> InspectResult:
        art = ctx.inputs[0]
        kind = art.kind
        if kind is Kind.PRIVATE_KEY:
            ctx.parsing()
            return InspectResult(operation=ctx.op, file=_path(art), kind=kind, key_type=key_type(art.path))
        if kind not in _CERT_KINDS and kind is not Kind.PKCS12:
            ctx.parsing()
            return InspectResult(operation=ctx.op, file=_path(art), kind=kind)

        res, source = self._x509(ctx, art, _X509_SUMMARY, f"read {kind.value} cert")
        ctx.parsing()
        fields: Dict[str, object] = dict(parse_summary_fields(res.out))
        meta = enrich(source if source is not None else art.read_bytes())
        if meta:
            for name in (
                "san",
                "key_usage",
                "ext_key_usage",
                "fingerprint_sha256",
                "public_key",
                "signature_hash",
                "is_ca",
                "self_signed",
            ):
                fields[name] = meta[name]
            ctx.warnings.extend(cert_warnings(meta, self.settings.EXPIRY_DAYS))
        return InspectResult(
            operation=ctx.op,
            file=_path(art),
            kind=kind,
            stdout=res.out,
            stderr=res.err,
            warnings=ctx.warnings,
            **fields,
        )

    def _details(self, ctx: _Ctx) -> DetailsResult:
        art = ctx.inputs[0]
        if art.kind not in _CERT_KINDS and art.kind is not Kind.PKCS12:
            raise UsageError(f"cannot show full details for file type: {art.kind.value}")
        res, _ = self._x509(ctx, art, ["-text", "-noout"], "read certificate")
        ctx.parsing()
        return DetailsResult(
            operation=ctx.op, file=_path(art), kind=art.kind, text=res.out, stdout=res.out, stderr=res.err
        )

    def _public_keys_match(self, ctx: _Ctx, cert: Artifact, key: Artifact, key_password: str) -> bool:
        args = ["x509", "-in", _path(cert)]
        if cert.kind is Kind.DER:
            args += ["-inform", "DER"]
        cert_res = self._exec(ctx, args + ["-pubkey", "-noout"])
        if not cert_res.ok:
            raise self._failure("read certificate public key", cert_res)

        key_args: List[Arg] = ["pkey", "-in", _path(key), "-pubout"]
        secrets: List[str] = []
        if key_password:
            key_args += ["-passin", SecretArg(0)]
            secrets.append(key_password)
        key_res = self._exec(ctx, key_args, secrets)
        if not key_res.ok:
            subkind = fmt_pkcs12.classify_error(key_res.err)
            raise self._failure(
                "read key public key",
                key_res,
                subkind if subkind == fmt_pkcs12.PASSWORD_MISMATCH else None,
            )

        cert_pub = pem_payload(cert_res.out)
        key_pub = pem_payload(key_res.out)
        if not cert_pub or not key_pub:
            raise ToolchainFailure("failed to normalize public keys for comparison", stdout=cert_res.out + key_res.out)
        return cert_pub == key_pub

    def _require_match(self, ctx: _Ctx, key_password: str) -> None:
        if not self._public_keys_match(ctx, ctx.inputs[0], ctx.inputs[1], key_password):
            raise ToolchainFailure("private key does NOT match certificate", subkind="key-mismatch")

    def _match_key(self, ctx: _Ctx) -> MatchResult:
        key_password = self._secret(ctx.request.options.key_password)
        matched = self._public_keys_match(ctx, ctx.inputs[0], ctx.inputs[1], key_password)
        ctx.parsing()
        detail = "Private key matches certificate" if matched else "Private key does NOT match certificate"
        return MatchResult(operation=ctx.op, match=matched, detail=detail)

    def _to_pfx(self, ctx: _Ctx) -> OutputResult:
        opts = ctx.request.options
        password = self._secret(opts.password)
        key_password = self._secret(opts.key_password)
        self._require_match(ctx, key_password)

        cert, key = ctx.inputs
        secrets = [password]
        if key_password:
            secrets.append(key_password)

        def build(target: str) -> List[Arg]:
            args: List[Arg] = ["pkcs12", "-export", "-out", target, "-inkey", _path(key), "-in", _path(cert)]
            if ctx.ca is not None:
                args += ["-certfile", _path(ctx.ca)]
            args += ["-passout", SecretArg(0)]
            if key_password:
                args += ["-passin", SecretArg(1)]
            return args

        return self._produce(ctx, build, secrets, 0o600, "create PFX", fmt_pkcs12.classify_error)

    def _from_pfx(self, ctx: _Ctx) -> FromPFXResult:
        art = ctx.inputs[0]
        src = _path(art)
        password = self._secret(ctx.request.options.password)

        check = self._exec(ctx, ["pkcs12", "-in", src, "-noout", "-passin", SecretArg(0)], [password])
        if not check.ok:
            subkind = fmt_pkcs12.classify_error(check.err)
            raise ToolchainFailure(
                fmt_pkcs12.describe(subkind, check.err),
                subkind=subkind,
                stderr=check.err,
                stdout=check.out,
                returncode=check.returncode,
            )

        out_dir = Path(ctx.request.output)
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise IOFailure("create output directory", exc) from exc
        cert_file, key_file, ca_file = _pfx_targets(art, out_dir)

        def extract(dest: Path, selector: List[str], mode: int, what: str) -> None:
            with out_files.staged(dest) as tmp:
                res = self._exec(
                    ctx, ["pkcs12", "-in", src, *selector, "-passin", SecretArg(0), "-out", str(tmp)], [password]
                )
                if not res.ok:
                    raise self._failure(what, res, fmt_pkcs12.classify_error(res.err))
                out_files.commit(tmp, dest, mode)

        extract(cert_file, ["-clcerts", "-nokeys"], 0o644, "extract certificate")
        extract(key_file, ["-nocerts", "-nodes"], 0o600, "extract private key")

        ca_written: Optional[str] = None
        with out_files.staged(ca_file) as tmp:
            # CA certificates are optional
            res = self._exec(
                ctx, ["pkcs12", "-in", src, "-cacerts", "-nokeys", "-passin", SecretArg(0), "-out", str(tmp)], [password]
            )
            ctx.parsing()
            if res.ok and b"BEGIN CERTIFICATE" in _read_scratch(tmp):
                if ca_file.exists():
                    ctx.warn("CA_OUTPUT_EXISTS", f"CA certificates not written, output already exists: {ca_file}")
                else:
                    out_files.commit(tmp, ca_file, 0o644)
                    ca_written = str(ca_file)

        return FromPFXResult(
            operation=ctx.op,
            cert_file=str(cert_file),
            key_file=str(key_file),
            ca_file=ca_written,
            warnings=ctx.warnings,
        )

    def _to_der(self, ctx: _Ctx) -> OutputResult:
        art = ctx.inputs[0]
        src = _path(art)
        if ctx.request.options.as_key or art.kind is Kind.PRIVATE_KEY:
            key_password = self._secret(ctx.request.options.key_password)
            secrets = [key_password] if key_password else []

            def build_key(target: str) -> List[Arg]:
                args: List[Arg] = ["pkey", "-in", src, "-inform", "PEM", "-outform", "DER", "-out", target]
                if key_password:
                    args += ["-passin", SecretArg(0)]
                return args

            return self._produce(ctx, build_key, secrets, 0o600, "convert key to DER")

        return self._produce(
            ctx,
            lambda target: ["x509", "-in", src, "-inform", "PEM", "-outform", "DER", "-out", target],
            (),
            0o644,
            "convert cert to DER",
        )

    def _from_der(self, ctx: _Ctx) -> OutputResult:
        art = ctx.inputs[0]
        src = _path(art)
        for w in der_warnings(src):
            ctx.warn(w["code"], w["message"])
        if ctx.request.options.as_key:
            return self._produce(
                ctx,
                lambda target: ["pkey", "-in", src, "-inform", "DER", "-outform", "PEM", "-out", target],
                (),
                0o600,
                "convert DER to key PEM (try without as_key if this is a certificate)",
            )
        return self._produce(
            ctx,
            lambda target: ["x509", "-in", src, "-inform", "DER", "-outform", "PEM", "-out", target],
            (),
            0o644,
            "convert DER to cert PEM (try as_key if this is a private key)",
        )

    def _to_base64(self, ctx: _Ctx) -> OutputResult:
        return self._emit(ctx, b64.encode(ctx.inputs[0].read_bytes()), 0o644)

    def _from_base64(self, ctx: _Ctx) -> OutputResult:
        art = ctx.inputs[0]
        text = art.read_bytes().decode("utf-8", errors="replace")
        return self._emit(ctx, b64.decode(text, _path(art)), 0o644)

    def _combine(self, ctx: _Ctx) -> OutputResult:
        key_password = self._secret(ctx.request.options.key_password)
        self._require_match(ctx, key_password)

        parts = [a.path for a in ctx.inputs]
        if ctx.ca is not None:
            parts.append(ctx.ca.path)
        combined = b""
        for p in parts:
            try:
                chunk = p.read_bytes()
            except OSError as exc:
                raise IOFailure(f"read {p}", exc) from exc
            if combined and not combined.endswith(b"\n"):
                combined += b"\n"
            combined += chunk
        return self._emit(ctx, combined, 0o600)

    def _verify_chain(self, ctx: _Ctx) -> VerifyResult:
        cert = ctx.inputs[0]
        res = self._exec(ctx, ["verify", "-CAfile", _path(ctx.ca), _path(cert)])
        ctx.parsing()
        output = (res.out + res.err).strip()
        if res.ok and ": OK" in output:
            return VerifyResult(operation=ctx.op, valid=True, output=output, stdout=res.out, stderr=res.err)

        details: List[str] = []
        if "expired" in output or "Expire" in output:
            details.append("Certificate or CA has expired")
        if "unable to get local issuer" in output:
            details.append("Certificate issuer not found in CA bundle")
        if "self" in output and "signed" in output:
            details.append("Certificate is self-signed")
        return VerifyResult(
            operation=ctx.op,
            valid=False,
            output=output,
            details="; ".join(details),
            stdout=res.out,
            stderr=res.err,
        )

    def _check_expiry(self, ctx: _Ctx) -> ExpiryResult:
        art = ctx.inputs[0]
        days = ctx.request.options.days or self.settings.EXPIRY_DAYS
        res, _ = self._x509(ctx, art, ["-noout", "-enddate"], "read certificate expiry")
        args = ["x509", "-in", _path(art)]
        if art.kind is Kind.DER:
            args += ["-inform", "DER"]
        # non-zero exit means "expires within the window", not a failure
        check = self._exec(ctx, args + ["-checkend", str(days * 86400), "-noout"])
        ctx.parsing()

        expiry_date, expires_at = parse_enddate(res.out)
        return ExpiryResult(
            operation=ctx.op,
            expiry_date=expiry_date,
            expires_at=expires_at,
            days_left=days_until(expires_at) if expires_at else None,
            days_checked=days,
            valid=check.ok,
            stdout=res.out + check.out,
            stderr=res.err + check.err,
            warnings=ctx.warnings,
        )


def _pfx_targets(art: Artifact, out_dir: Path):
    base = art.path.stem
    return out_dir / f"{base}.crt", out_dir / f"{base}.key", out_dir / f"{base}-ca.crt"
