"""Anchor IDL decoder - program log events and instructions via construct layouts."""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import base58
from construct import (
    Array,
    Bytes,
    BytesInteger,
    Construct,
    ConstructError,
    Flag,
    Float32l,
    Float64l,
    GreedyBytes,
    If,
    Int8sl,
    Int8ul,
    Int16sl,
    Int16ul,
    Int32sl,
    Int32ul,
    Int64sl,
    Int64ul,
    PascalString,
    Pass,
    Prefixed,
    PrefixedArray,
    Sequence,
    Struct,
    Switch,
    this,
)

from solana_chain_events.errors import DecodeError
from solana_chain_events.models.events import DecodedInstruction, InstructionList, ProgramEvent

log = logging.getLogger(__name__)

PROGRAM_DATA = "Program data: "
PROGRAM_LOG = "Program log: "

_B58 = r"[1-9A-HJ-NP-Za-km-z]{32,44}"
_INVOKE_RE = re.compile(rf"^Program ({_B58}) invoke \[\d+\]$")
_EXIT_RE = re.compile(rf"^Program ({_B58}) (?:success|failed)")

_PUBKEY_TYPES = ("publicKey", "pubkey")

_PRIMITIVES: dict[str, Construct] = {
    "u8": Int8ul,
    "i8": Int8sl,
    "u16": Int16ul,
    "i16": Int16sl,
    "u32": Int32ul,
    "i32": Int32sl,
    "u64": Int64ul,
    "i64": Int64sl,
    "u128": BytesInteger(16, signed=False, swapped=True),
    "i128": BytesInteger(16, signed=True, swapped=True),
    "f32": Float32l,
    "f64": Float64l,
    "bool": Flag,
    "string": PascalString(Int32ul, "utf8"),
    "bytes": Prefixed(Int32ul, GreedyBytes),
    "publicKey": Bytes(32),
    "pubkey": Bytes(32),
}


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _sighash(namespace: str, name: str) -> bytes:
    return hashlib.sha256(f"{namespace}:{name}".encode("utf-8")).digest()[:8]


def _defined_name(defined: Any) -> str:
    # Legacy IDLs use {"defined": "Name"}, 0.30+ uses {"defined": {"name": "Name"}}
    if isinstance(defined, dict):
        return defined["name"]
    return str(defined)


def _flatten_accounts(accounts: list[dict]) -> list[str]:
    names: list[str] = []
    for acc in accounts:
        if "accounts" in acc:
            names.extend(_flatten_accounts(acc["accounts"]))
        else:
            names.append(acc["name"])
    return names


def load_idl(path: str | Path) -> dict:
    """Read an Anchor IDL JSON file."""
    with open(Path(path).expanduser(), encoding="utf-8") as f:
        return json.load(f)


@dataclass(frozen=True)
class _EventSchema:
    name: str
    fields: list
    layout: Construct


@dataclass(frozen=True)
class _InstructionSchema:
    name: str
    args: list
    layout: Construct
    accounts: list[str]


class IdlProgramDecoder:
    """Implements the ProgramDecoder protocol from an Anchor IDL.

    Supports both the legacy IDL format (discriminators derived from
    ``event:<Name>`` / ``global:<snake_name>``) and the 0.30 format with
    explicit discriminators.
    """

    def __init__(self, idl: dict, program_id: str | None = None) -> None:
        self.program_id = (
            program_id
            or idl.get("address")
            or (idl.get("metadata") or {}).get("address")
            or ""
        )
        if not self.program_id:
            raise ValueError("program_id not given and IDL carries no address")

        self._types: dict[str, dict] = {t["name"]: t for t in idl.get("types") or []}
        self._defined: dict[str, Construct] = {}
        self._events: dict[bytes, _EventSchema] = {}
        self._instructions: dict[bytes, _InstructionSchema] = {}

        for ev in idl.get("events") or []:
            if "fields" in ev:
                fields = ev["fields"]
            else:
                fields = self._typedef(ev["name"])["type"].get("fields", [])
            disc = bytes(ev["discriminator"]) if "discriminator" in ev else _sighash("event", ev["name"])
            self._events[disc] = _EventSchema(ev["name"], fields, self._fields_layout(fields))

        for ix in idl.get("instructions") or []:
            args = ix.get("args") or []
            disc = (
                bytes(ix["discriminator"]) if "discriminator" in ix
                else _sighash("global", _snake(ix["name"]))
            )
            self._instructions[disc] = _InstructionSchema(
                name=ix["name"],
                args=args,
                layout=self._fields_layout(args),
                accounts=_flatten_accounts(ix.get("accounts") or []),
            )

    @classmethod
    def from_file(cls, path: str | Path, program_id: str | None = None) -> IdlProgramDecoder:
        return cls(load_idl(path), program_id)

    @property
    def event_names(self) -> list[str]:
        return [schema.name for schema in self._events.values()]

    # ── Logs ───────────────────────────────────────────────

    def decode_logs(self, lines: list[str]) -> list[ProgramEvent]:
        """Decode the events this program emitted, in log order.

        Only data lines written while the program is on top of the invocation
        stack are considered, so CPI callers and callees are ignored.
        """
        events: list[ProgramEvent] = []
        stack: list[str] = []

        for line in lines:
            m = _INVOKE_RE.match(line)
            if m:
                stack.append(m.group(1))
                continue
            if _EXIT_RE.match(line):
                if stack:
                    stack.pop()
                continue
            if not stack or stack[-1] != self.program_id:
                continue

            if line.startswith(PROGRAM_DATA):
                payload = line[len(PROGRAM_DATA):]
            elif line.startswith(PROGRAM_LOG):
                payload = line[len(PROGRAM_LOG):]
            else:
                continue

            try:
                raw = base64.b64decode(payload, validate=True)
            except (binascii.Error, ValueError):
                continue

            event = self.decode_event(raw)
            if event is not None:
                events.append(event)

        return events

    def decode_event(self, raw: bytes) -> ProgramEvent | None:
        """Decode one discriminator-prefixed event payload.

        Returns None for an unknown discriminator; raises DecodeError when the
        discriminator is known but the payload does not fit the layout.
        """
        schema = self._events.get(raw[:8]) if len(raw) >= 8 else None
        if schema is None:
            return None
        try:
            parsed = schema.layout.parse(raw[8:])
        except (ConstructError, UnicodeDecodeError) as exc:
            raise DecodeError(f"Failed to decode {schema.name} event: {exc}") from exc
        return ProgramEvent(name=schema.name, data=self._convert_fields(schema.fields, parsed))

    # ── Instructions ───────────────────────────────────────

    def decode_instructions(self, message: dict) -> InstructionList:
        """Decode the program's instructions, leaving None for every other program.

        The result is index-aligned with ``message["instructions"]``.
        """
        keys = [
            k["pubkey"] if isinstance(k, dict) else k
            for k in message.get("accountKeys") or []
        ]
        instructions: InstructionList = []

        for ix in message.get("instructions") or []:
            program_id = ix.get("programId")
            if program_id is None and "programIdIndex" in ix:
                program_id = keys[ix["programIdIndex"]]
            if program_id != self.program_id or ix.get("data") is None:
                instructions.append(None)
                continue

            accounts = [
                keys[a] if isinstance(a, int) else a
                for a in ix.get("accounts") or []
            ]
            instructions.append(self.decode_instruction(ix["data"], accounts))

        return instructions

    def decode_instruction(self, data: str, accounts: list[str]) -> DecodedInstruction:
        """Decode base58 instruction data and bind accounts by IDL position."""
        try:
            raw = base58.b58decode(data)
        except ValueError as exc:
            raise DecodeError(f"Instruction data is not base58: {data!r}") from exc

        schema = self._instructions.get(raw[:8])
        if schema is None:
            raise DecodeError(f"Failed to decode transaction instruction: {data}")
        try:
            parsed = schema.layout.parse(raw[8:])
        except (ConstructError, UnicodeDecodeError) as exc:
            raise DecodeError(f"Failed to decode {schema.name} instruction: {exc}") from exc

        named = {
            name: accounts[i]
            for i, name in enumerate(schema.accounts)
            if i < len(accounts)
        }
        return DecodedInstruction(
            name=schema.name,
            data=self._convert_fields(schema.args, parsed),
            accounts=named,
        )

    # ── Layouts ────────────────────────────────────────────

    def _typedef(self, name: str) -> dict:
        try:
            return self._types[name]
        except KeyError:
            raise DecodeError(f"IDL type {name!r} is not defined") from None

    def _fields_layout(self, fields: list) -> Construct:
        if fields and all(isinstance(f, dict) and "name" in f for f in fields):
            return Struct(*[f["name"] / self._layout(f["type"]) for f in fields])
        if fields:
            return Sequence(*[self._layout(t) for t in fields])
        return Struct()

    def _layout(self, ty: Any) -> Construct:
        if isinstance(ty, str):
            try:
                return _PRIMITIVES[ty]
            except KeyError:
                raise DecodeError(f"Unsupported IDL type {ty!r}") from None
        if "vec" in ty:
            return PrefixedArray(Int32ul, self._layout(ty["vec"]))
        if "option" in ty:
            return Struct("tag" / Int8ul, "value" / If(this.tag == 1, self._layout(ty["option"])))
        if "array" in ty:
            inner, length = ty["array"]
            if inner == "u8":
                return Bytes(length)
            return Array(length, self._layout(inner))
        if "defined" in ty:
            return self._defined_layout(_defined_name(ty["defined"]))
        raise DecodeError(f"Unsupported IDL type {ty!r}")

    def _defined_layout(self, name: str) -> Construct:
        if name in self._defined:
            return self._defined[name]

        body = self._typedef(name)["type"]
        kind = body.get("kind")
        if kind == "struct":
            layout = self._fields_layout(body.get("fields") or [])
        elif kind == "enum":
            cases = {
                i: self._fields_layout(v["fields"]) if v.get("fields") else Pass
                for i, v in enumerate(body.get("variants") or [])
            }
            layout = Struct("variant" / Int8ul, "value" / Switch(this.variant, cases))
        elif kind == "type":
            layout = self._layout(body["alias"])
        else:
            raise DecodeError(f"Unsupported kind {kind!r} for IDL type {name!r}")

        self._defined[name] = layout
        return layout

    # ── Conversion to plain Python values ──────────────────

    def _convert_fields(self, fields: list, parsed: Any) -> Any:
        if fields and all(isinstance(f, dict) and "name" in f for f in fields):
            return {f["name"]: self._convert(f["type"], parsed[f["name"]]) for f in fields}
        return [self._convert(t, v) for t, v in zip(fields, parsed)]

    def _convert(self, ty: Any, value: Any) -> Any:
        if isinstance(ty, str):
            if ty in _PUBKEY_TYPES:
                return base58.b58encode(value).decode("ascii")
            if ty == "bytes":
                return bytes(value)
            return value
        if "vec" in ty:
            return [self._convert(ty["vec"], v) for v in value]
        if "option" in ty:
            if value["tag"] != 1:
                return None
            return self._convert(ty["option"], value["value"])
        if "array" in ty:
            inner, _ = ty["array"]
            if inner == "u8":
                return bytes(value)
            return [self._convert(inner, v) for v in value]
        if "defined" in ty:
            return self._convert_defined(_defined_name(ty["defined"]), value)
        return value

    def _convert_defined(self, name: str, value: Any) -> Any:
        body = self._typedef(name)["type"]
        kind = body.get("kind")
        if kind == "struct":
            return self._convert_fields(body.get("fields") or [], value)
        if kind == "enum":
            variants = body.get("variants") or []
            index = value["variant"]
            if index >= len(variants):
                raise DecodeError(f"Invalid variant {index} for enum {name!r}")
            variant = variants[index]
            if not variant.get("fields"):
                return variant["name"]
            return {variant["name"]: self._convert_fields(variant["fields"], value["value"])}
        return self._convert(body["alias"], value)
