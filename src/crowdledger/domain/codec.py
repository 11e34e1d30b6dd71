"""Deterministic binary encoding of project state.

State is laid out as host key/value entries using Borsh encoding
(little-endian fixed-width integers, ``u32``-length-prefixed strings and
byte vectors, ``u8`` tags for options and enums). The root record lives under
``STATE_KEY``. The expense log and contributor map are stored as separately
addressed entries referenced from the root by their key prefixes:

    STATE                    root record
    e  + u64(i)              expense i
    ck + u64(i)              contributor account i
    cv + u64(i)              contribution i
    ci + string(account)     u64 index of account

Encoding is byte-stable: the same ``Project`` always produces the same
entries, and decoding then re-encoding yields identical bytes.
"""

from __future__ import annotations

import struct
from collections.abc import Mapping

from crowdledger.domain.models import (
    Contribution,
    Expense,
    Project,
    ProjectDetails,
    ProjectFunding,
    TaskStatus,
)
from crowdledger.errors import CodecError

STATE_KEY = b"STATE"
EXPENSES_PREFIX = b"e"
CONTRIBUTORS_PREFIX = b"c"
CONTRIBUTORS_INDEX_PREFIX = CONTRIBUTORS_PREFIX + b"i"
CONTRIBUTORS_KEYS_PREFIX = CONTRIBUTORS_PREFIX + b"k"
CONTRIBUTORS_VALUES_PREFIX = CONTRIBUTORS_PREFIX + b"v"

_TASK_STATUSES = list(TaskStatus)


class BorshWriter:
    """Accumulates Borsh-encoded values into a byte buffer."""

    def __init__(self) -> None:
        self._buf = bytearray()

    def u8(self, value: int) -> BorshWriter:
        self._buf += struct.pack("<B", value)
        return self

    def u32(self, value: int) -> BorshWriter:
        self._buf += struct.pack("<I", value)
        return self

    def u64(self, value: int) -> BorshWriter:
        self._buf += struct.pack("<Q", value)
        return self

    def u128(self, value: int) -> BorshWriter:
        self._buf += value.to_bytes(16, "little")
        return self

    def raw(self, value: bytes) -> BorshWriter:
        self.u32(len(value))
        self._buf += value
        return self

    def string(self, value: str) -> BorshWriter:
        try:
            encoded = value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise CodecError(f"String is not encodable as UTF-8: {e.reason}") from e
        return self.raw(encoded)

    def getvalue(self) -> bytes:
        return bytes(self._buf)


class BorshReader:
    """Reads Borsh-encoded values from a byte string.

    Raises:
        CodecError: On truncated input, invalid UTF-8 or unread trailing bytes
            when ``finish`` is called.
    """

    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0

    def _take(self, size: int) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise CodecError(
                f"Unexpected end of data: need {size} bytes at offset {self._pos}"
            )
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def u8(self) -> int:
        return struct.unpack("<B", self._take(1))[0]

    def u32(self) -> int:
        return struct.unpack("<I", self._take(4))[0]

    def u64(self) -> int:
        return struct.unpack("<Q", self._take(8))[0]

    def u128(self) -> int:
        return int.from_bytes(self._take(16), "little")

    def raw(self) -> bytes:
        return self._take(self.u32())

    def string(self) -> str:
        try:
            return self.raw().decode("utf-8")
        except UnicodeDecodeError as e:
            raise CodecError(f"Invalid UTF-8 string: {e}") from e

    def option_tag(self) -> bool:
        tag = self.u8()
        if tag not in (0, 1):
            raise CodecError(f"Invalid option tag: {tag}")
        return tag == 1

    def finish(self) -> None:
        if self._pos != len(self._data):
            raise CodecError(
                f"Trailing bytes: {len(self._data) - self._pos} unread"
            )


def _element_key(prefix: bytes, index: int) -> bytes:
    return prefix + struct.pack("<Q", index)


def _vector_header(writer: BorshWriter, length: int, prefix: bytes) -> None:
    writer.u64(length).raw(prefix)


def _read_vector_header(reader: BorshReader, expected_prefix: bytes) -> int:
    length = reader.u64()
    prefix = reader.raw()
    if prefix != expected_prefix:
        raise CodecError(
            f"Unexpected collection prefix {prefix!r}, expected {expected_prefix!r}"
        )
    return length


def encode_expense(expense: Expense) -> bytes:
    return BorshWriter().string(expense.label).u128(expense.amount).getvalue()


def decode_expense(data: bytes) -> Expense:
    reader = BorshReader(data)
    expense = Expense(label=reader.string(), amount=reader.u128())
    reader.finish()
    return expense


def encode_contribution(contribution: Contribution) -> bytes:
    return (
        BorshWriter()
        .string(contribution.account)
        .string(contribution.task)
        .u128(contribution.amount)
        .u8(_TASK_STATUSES.index(contribution.status))
        .getvalue()
    )


def decode_contribution(data: bytes) -> Contribution:
    reader = BorshReader(data)
    account = reader.string()
    task = reader.string()
    amount = reader.u128()
    tag = reader.u8()
    reader.finish()
    if tag >= len(_TASK_STATUSES):
        raise CodecError(f"Invalid task status tag: {tag}")
    return Contribution(
        account=account,
        task=task,
        amount=amount,
        status=_TASK_STATUSES[tag],
    )


def encode_state(project: Project) -> dict[bytes, bytes]:
    """Encode a project into its full set of storage entries.

    Args:
        project: Project state to encode.

    Returns:
        Mapping of storage key to encoded value, covering the root record
        and every collection element.
    """
    entries: dict[bytes, bytes] = {}
    root = BorshWriter().string(project.factory).string(project.proposal)

    if project.details is None:
        root.u8(0)
    else:
        root.u8(1).string(project.details.title).string(project.details.description)

    if project.funding is None:
        root.u8(0)
    else:
        funding = project.funding
        root.u8(1).u128(funding.total).u128(funding.spent)
        _vector_header(root, len(funding.expenses), EXPENSES_PREFIX)
        for index, expense in enumerate(funding.expenses):
            entries[_element_key(EXPENSES_PREFIX, index)] = encode_expense(expense)

    root.raw(CONTRIBUTORS_INDEX_PREFIX)
    _vector_header(root, len(project.contributors), CONTRIBUTORS_KEYS_PREFIX)
    _vector_header(root, len(project.contributors), CONTRIBUTORS_VALUES_PREFIX)
    for index, (account, contribution) in enumerate(project.contributors.items()):
        account_bytes = BorshWriter().string(account).getvalue()
        entries[_element_key(CONTRIBUTORS_KEYS_PREFIX, index)] = account_bytes
        entries[_element_key(CONTRIBUTORS_VALUES_PREFIX, index)] = encode_contribution(
            contribution
        )
        entries[CONTRIBUTORS_INDEX_PREFIX + account_bytes] = (
            BorshWriter().u64(index).getvalue()
        )

    entries[STATE_KEY] = root.getvalue()
    return dict(sorted(entries.items()))


def _lookup(entries: Mapping[bytes, bytes], key: bytes) -> bytes:
    try:
        return entries[key]
    except KeyError:
        raise CodecError(f"Missing storage entry {key!r}") from None


def decode_state(entries: Mapping[bytes, bytes]) -> Project | None:
    """Decode a project from its storage entries.

    Args:
        entries: Storage entries for one instance.

    Returns:
        The decoded Project, or None if the instance has no root record.

    Raises:
        CodecError: If the entries are truncated or inconsistent.
    """
    if STATE_KEY not in entries:
        return None

    reader = BorshReader(entries[STATE_KEY])
    factory = reader.string()
    proposal = reader.string()

    details = None
    if reader.option_tag():
        details = ProjectDetails(title=reader.string(), description=reader.string())

    funding = None
    if reader.option_tag():
        total = reader.u128()
        spent = reader.u128()
        length = _read_vector_header(reader, EXPENSES_PREFIX)
        expenses = [
            decode_expense(_lookup(entries, _element_key(EXPENSES_PREFIX, i)))
            for i in range(length)
        ]
        funding = ProjectFunding(total=total, spent=spent, expenses=expenses)

    index_prefix = reader.raw()
    if index_prefix != CONTRIBUTORS_INDEX_PREFIX:
        raise CodecError(f"Unexpected contributor index prefix {index_prefix!r}")
    key_count = _read_vector_header(reader, CONTRIBUTORS_KEYS_PREFIX)
    value_count = _read_vector_header(reader, CONTRIBUTORS_VALUES_PREFIX)
    reader.finish()
    if key_count != value_count:
        raise CodecError(
            f"Contributor keys ({key_count}) and values ({value_count}) differ"
        )

    contributors: dict[str, Contribution] = {}
    for i in range(key_count):
        account_bytes = _lookup(entries, _element_key(CONTRIBUTORS_KEYS_PREFIX, i))
        key_reader = BorshReader(account_bytes)
        account = key_reader.string()
        key_reader.finish()
        if account in contributors:
            raise CodecError(f"Duplicate contributor key {account!r}")
        index_entry = _lookup(entries, CONTRIBUTORS_INDEX_PREFIX + account_bytes)
        if index_entry != _element_key(b"", i):
            raise CodecError(
                f"Contributor index for {account!r} does not point at slot {i}"
            )
        contributors[account] = decode_contribution(
            _lookup(entries, _element_key(CONTRIBUTORS_VALUES_PREFIX, i))
        )

    return Project(
        factory=factory,
        proposal=proposal,
        details=details,
        funding=funding,
        contributors=contributors,
    )
