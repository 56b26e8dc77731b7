"""
Contact import: one ``contacts/`` archive entry holds one vCard.

The vCard is decoded with vobject and mapped onto a Contact document. Only
unparsable syntax stops the import; missing optional fields never do, and a
vCard without a structured name is stored under a placeholder name.
"""

from __future__ import annotations

from typing import Any, Union

import vobject
from vobject.base import VObjectError

from archive_restore.models.contact import (
    PLACEHOLDER_FULL_NAME,
    Contact,
    ContactAddress,
    ContactEmail,
    ContactName,
    ContactPhone,
)
from archive_restore.restore.errors import ArchiveFormatError, StorageError
from archive_restore.storage.db import DocumentStore, DocumentStoreError
from archive_restore.utils.logging import get_logger

logger = get_logger(__name__)

# TYPE values that say nothing about the kind of address/number
_IGNORED_TYPES = {"internet", "voice", "pref", "x400"}


def _text(value: Any) -> str:
    """Flatten a vCard component (str or list of str) to a single string."""
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(str(v).strip() for v in value if str(v).strip())
    return str(value).strip()


def _types(line: Any) -> list[str]:
    params = getattr(line, "params", {}) or {}
    raw = list(params.get("TYPE", [])) + list(getattr(line, "singletonparams", []))
    types: list[str] = []
    for value in raw:
        types.extend(t.strip().lower() for t in str(value).split(",") if t.strip())
    return types


def _kind_and_primary(line: Any) -> tuple[str, bool]:
    types = _types(line)
    params = getattr(line, "params", {}) or {}
    primary = "pref" in types or "PREF" in params
    kinds = [t for t in types if t not in _IGNORED_TYPES]
    return (kinds[0] if kinds else ""), primary


def _first_value(card: Any, key: str) -> str:
    lines = card.contents.get(key)
    if not lines:
        return ""
    return _text(lines[0].value)


def _structured_name(value: Any) -> ContactName:
    if isinstance(value, str):
        # Not transformed by vobject: raw "family;given;additional;prefix;suffix"
        parts = (value.split(";") + [""] * 5)[:5]
        family, given, additional, prefix, suffix = parts
    else:
        family = getattr(value, "family", "")
        given = getattr(value, "given", "")
        additional = getattr(value, "additional", "")
        prefix = getattr(value, "prefix", "")
        suffix = getattr(value, "suffix", "")
    return ContactName(
        family_name=_text(family),
        given_name=_text(given),
        additional_name=_text(additional),
        name_prefix=_text(prefix),
        name_suffix=_text(suffix),
    )


def _display_name(name: ContactName) -> str:
    parts = [
        name.name_prefix,
        name.given_name,
        name.additional_name,
        name.family_name,
        name.name_suffix,
    ]
    return " ".join(p for p in parts if p)


def _address(line: Any) -> ContactAddress:
    value = line.value
    kind, primary = _kind_and_primary(line)
    if isinstance(value, str):
        parts = (value.split(";") + [""] * 7)[:7]
        pobox, _extended, street, city, region, postcode, country = parts
    else:
        pobox = getattr(value, "box", "")
        street = getattr(value, "street", "")
        city = getattr(value, "city", "")
        region = getattr(value, "region", "")
        postcode = getattr(value, "code", "")
        country = getattr(value, "country", "")

    address = ContactAddress(
        street=_text(street),
        pobox=_text(pobox),
        city=_text(city),
        region=_text(region),
        postcode=_text(postcode),
        country=_text(country),
        type=kind,
        primary=primary,
    )

    label = (getattr(line, "params", {}) or {}).get("LABEL")
    if label:
        address.formatted_address = _text(label[0])
    else:
        components = [
            address.pobox,
            address.street,
            address.city,
            address.region,
            address.postcode,
            address.country,
        ]
        address.formatted_address = ", ".join(c for c in components if c)
    return address


def parse_vcard(data: Union[bytes, str]) -> Contact:
    """
    Decode one vCard into a Contact.

    Args:
        data: Raw vCard text (bytes are decoded as UTF-8, invalid bytes
              replaced)

    Returns:
        Contact without identity, ready to be created

    Raises:
        ArchiveFormatError: If the data holds no parsable vCard

    Example:
        contact = parse_vcard(b"BEGIN:VCARD\\r\\nVERSION:3.0\\r\\nFN:Ada\\r\\nEND:VCARD\\r\\n")
        contact.fullname   # "Ada"
        contact.name       # ContactName(given_name="John", family_name="Doe")
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")

    try:
        card = vobject.readOne(data)
    except StopIteration as e:
        raise ArchiveFormatError("No vCard found") from e
    except (VObjectError, ValueError) as e:
        raise ArchiveFormatError(f"Invalid vCard: {e}") from e

    component = (getattr(card, "name", None) or "").upper()
    if component != "VCARD":
        raise ArchiveFormatError(f"Expected a VCARD component, got {component or None}")

    name = ContactName.placeholder()
    fullname = PLACEHOLDER_FULL_NAME
    n_lines = card.contents.get("n")
    if n_lines:
        name = _structured_name(n_lines[0].value)
        fullname = _display_name(name)

    formatted = _first_value(card, "fn")
    if formatted:
        fullname = formatted

    emails = []
    for line in card.contents.get("email", []):
        kind, primary = _kind_and_primary(line)
        emails.append(ContactEmail(address=_text(line.value), type=kind, primary=primary))

    phones = []
    for line in card.contents.get("tel", []):
        kind, primary = _kind_and_primary(line)
        phones.append(ContactPhone(number=_text(line.value), type=kind, primary=primary))

    addresses = [_address(line) for line in card.contents.get("adr", [])]

    return Contact(
        fullname=fullname,
        name=name,
        birthday=_first_value(card, "bday"),
        note=_first_value(card, "note"),
        email=emails,
        address=addresses,
        phone=phones,
    )


def import_contact(db: DocumentStore, data: Union[bytes, str]) -> Contact:
    """
    Decode one vCard entry and create the contact document.

    Returns:
        The stored contact, with the identity assigned by the store

    Raises:
        ArchiveFormatError: If the vCard can't be parsed
        StorageError: If the document can't be created
    """
    contact = parse_vcard(data)
    contact.clear_identity()
    try:
        stored = db.create_doc(Contact.DOCTYPE, contact.to_document())
    except DocumentStoreError as e:
        raise StorageError(f"Can't create contact {contact.fullname}: {e}") from e

    logger.debug(f"Imported contact {contact.fullname}")
    return Contact.from_document(stored)
