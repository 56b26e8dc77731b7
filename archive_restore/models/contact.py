"""
Contact data model for restored address book entries.

Provides the Contact representation written to the document store, with
methods for:
- Serializing to a document (empty fields omitted)
- Rebuilding a Contact from a stored document
- Dropping the store-owned identity before creation
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Optional

from archive_restore.models.document import CONTACTS, ID_FIELD, REV_FIELD

# Name used when a vCard has no structured name
PLACEHOLDER_GIVEN_NAME = "John"
PLACEHOLDER_FAMILY_NAME = "Doe"
PLACEHOLDER_FULL_NAME = "John Doe"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _compact(obj: Any, always: tuple[str, ...] = ()) -> dict[str, Any]:
    """Serialize a flat dataclass with camelCase keys, dropping empty values."""
    result: dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if f.name in always or value:
            result[_camel(f.name)] = value
    return result


def _from_compact(cls: type, data: dict[str, Any]) -> Any:
    kwargs = {}
    for f in fields(cls):
        key = _camel(f.name)
        if key in data:
            kwargs[f.name] = data[key]
    return cls(**kwargs)


@dataclass
class ContactName:
    """Structured name components."""

    family_name: str = ""
    given_name: str = ""
    additional_name: str = ""
    name_prefix: str = ""
    name_suffix: str = ""

    @classmethod
    def placeholder(cls) -> ContactName:
        return cls(given_name=PLACEHOLDER_GIVEN_NAME, family_name=PLACEHOLDER_FAMILY_NAME)

    def to_dict(self) -> dict[str, Any]:
        return _compact(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContactName:
        return _from_compact(cls, data)


@dataclass
class ContactEmail:
    address: str
    type: str = ""
    label: str = ""
    primary: bool = False

    def to_dict(self) -> dict[str, Any]:
        return _compact(self, always=("address",))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContactEmail:
        return _from_compact(cls, {"address": "", **data})


@dataclass
class ContactAddress:
    street: str = ""
    pobox: str = ""
    city: str = ""
    region: str = ""
    postcode: str = ""
    country: str = ""
    type: str = ""
    primary: bool = False
    label: str = ""
    formatted_address: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _compact(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContactAddress:
        return _from_compact(cls, data)


@dataclass
class ContactPhone:
    number: str
    type: str = ""
    label: str = ""
    primary: bool = False

    def to_dict(self) -> dict[str, Any]:
        return _compact(self, always=("number",))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContactPhone:
        return _from_compact(cls, {"number": "", **data})


@dataclass
class ContactCozy:
    """Address of another personal cloud instance owned by the contact."""

    url: str
    label: str = ""
    primary: bool = False

    def to_dict(self) -> dict[str, Any]:
        return _compact(self, always=("url",))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContactCozy:
        return _from_compact(cls, {"url": "", **data})


@dataclass
class Contact:
    """
    Address book entry stored as an ``io.cozy.contacts`` document.

    Attributes:
        doc_id: Identifier assigned by the document store (None until created)
        doc_rev: Revision assigned by the document store (None until created)
        fullname: Display name
        name: Structured name components
        birthday: Free-form birthday string as found in the source
        note: Free-form note
        email: Ordered email addresses
        address: Ordered postal addresses
        phone: Ordered phone numbers
        cozy: Ordered instance URLs

    Usage:
        contact = Contact(fullname="Ada Lovelace", name=ContactName(given_name="Ada"))
        doc = contact.to_document()      # no _id/_rev: the store assigns them
        stored = db.create_doc(Contact.DOCTYPE, doc)
        same = Contact.from_document(stored)
    """

    DOCTYPE = CONTACTS

    doc_id: Optional[str] = None
    doc_rev: Optional[str] = None

    fullname: str = ""
    name: ContactName = field(default_factory=ContactName)
    birthday: str = ""
    note: str = ""
    email: list[ContactEmail] = field(default_factory=list)
    address: list[ContactAddress] = field(default_factory=list)
    phone: list[ContactPhone] = field(default_factory=list)
    cozy: list[ContactCozy] = field(default_factory=list)

    def clear_identity(self) -> None:
        """Forget the store-owned identity so the contact can be created anew."""
        self.doc_id = None
        self.doc_rev = None

    def to_document(self) -> dict[str, Any]:
        """
        Convert to a document body.

        Empty strings and lists are omitted; ``_id``/``_rev`` only appear
        once the contact has been stored.
        """
        doc: dict[str, Any] = {}
        if self.doc_id:
            doc[ID_FIELD] = self.doc_id
        if self.doc_rev:
            doc[REV_FIELD] = self.doc_rev

        if self.fullname:
            doc["fullname"] = self.fullname
        name = self.name.to_dict()
        if name:
            doc["name"] = name
        if self.birthday:
            doc["birthday"] = self.birthday
        if self.note:
            doc["note"] = self.note
        if self.email:
            doc["email"] = [e.to_dict() for e in self.email]
        if self.address:
            doc["address"] = [a.to_dict() for a in self.address]
        if self.phone:
            doc["phone"] = [p.to_dict() for p in self.phone]
        if self.cozy:
            doc["cozy"] = [c.to_dict() for c in self.cozy]
        return doc

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Contact:
        """Rebuild a Contact from a stored document."""
        return cls(
            doc_id=doc.get(ID_FIELD),
            doc_rev=doc.get(REV_FIELD),
            fullname=doc.get("fullname", ""),
            name=ContactName.from_dict(doc.get("name") or {}),
            birthday=doc.get("birthday", ""),
            note=doc.get("note", ""),
            email=[ContactEmail.from_dict(e) for e in doc.get("email") or []],
            address=[ContactAddress.from_dict(a) for a in doc.get("address") or []],
            phone=[ContactPhone.from_dict(p) for p in doc.get("phone") or []],
            cozy=[ContactCozy.from_dict(c) for c in doc.get("cozy") or []],
        )
