# certconv/contracts.py
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import IOFailure
from .secrets import SecretSpec


class Kind(str, Enum):
    CERTIFICATE = "cert"
    PRIVATE_KEY = "key"
    COMBINED = "combined"
    PKCS12 = "pfx"
    DER = "der"
    BASE64 = "base64"
    UNKNOWN = "unknown"


class Operation(str, Enum):
    INSPECT = "inspect"
    DETAILS = "details"
    TO_PFX = "to-pfx"
    FROM_PFX = "from-pfx"
    TO_DER = "to-der"
    FROM_DER = "from-der"
    TO_BASE64 = "to-base64"
    FROM_BASE64 = "from-base64"
    COMBINE = "combine"
    VERIFY_CHAIN = "verify"
    MATCH_KEY = "match"
    CHECK_EXPIRY = "expiry"


@dataclass
class Artifact:
    path: Path
    _kind: Optional[Kind] = field(default=None, init=False, repr=False, compare=False)
    _content: Optional[bytes] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    @property
    def kind(self) -> Kind:
        if self._kind is None:
            from .format_identify import classify
            self._kind = classify(self.path)
        return self._kind

    def read_bytes(self) -> bytes:
        if self._content is None:
            try:
                self._content = self.path.read_bytes()
            except OSError as exc:
                raise IOFailure(f"read {self.path}", exc) from exc
        return self._content

    def __str__(self) -> str:
        return str(self.path)


@dataclass
class ConversionOptions:
    password: SecretSpec = field(default_factory=lambda: SecretSpec("password"))
    key_password: SecretSpec = field(default_factory=lambda: SecretSpec("key-password"))
    normalize: bool = False
    as_key: bool = False
    days: Optional[int] = None
    timeout: Optional[float] = None


@dataclass
class ConversionRequest:
    operation: Operation
    inputs: List[Artifact]
    ca_bundle: Optional[Artifact] = None
    # None or "-" returns the produced bytes instead of writing a file
    output: Optional[str] = None
    options: ConversionOptions = field(default_factory=ConversionOptions)

    @property
    def writes_file(self) -> bool:
        return self.output is not None and self.output != "-"


class WarningItem(BaseModel):
    code: str = Field(..., examples=["DER_HEURISTIC"])
    message: str
    severity: str = "warn"


class ConversionResult(BaseModel):
    operation: Operation
    stdout: str = ""
    stderr: str = ""
    warnings: List[WarningItem] = []


class InspectResult(ConversionResult):
    file: str
    kind: Kind
    subject: Optional[str] = None
    issuer: Optional[str] = None
    not_before: Optional[str] = None
    not_after: Optional[str] = None
    serial: Optional[str] = None
    key_type: Optional[str] = None
    san: List[str] = []
    key_usage: List[str] = []
    ext_key_usage: List[str] = []
    fingerprint_sha256: Optional[str] = None
    public_key: Optional[dict] = None
    signature_hash: Optional[str] = None
    is_ca: Optional[bool] = None
    self_signed: Optional[bool] = None


class DetailsResult(ConversionResult):
    file: str
    kind: Kind
    text: str


class ExpiryResult(ConversionResult):
    expiry_date: str = ""
    expires_at: Optional[dt.datetime] = None
    days_left: Optional[int] = None
    days_checked: int
    valid: bool


class VerifyResult(ConversionResult):
    valid: bool
    output: str = ""
    details: str = ""


class MatchResult(ConversionResult):
    match: bool
    detail: str = ""


class FromPFXResult(ConversionResult):
    cert_file: str
    key_file: str
    ca_file: Optional[str] = None


class OutputResult(ConversionResult):
    model_config = ConfigDict(ser_json_bytes="base64")

    output: Optional[str] = None
    data: Optional[bytes] = None
