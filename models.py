# models.py
import json
from dataclasses import MISSING, dataclass, field, fields
from typing import Optional


def _loads(value, default):
    if value is None or value == "":
        return default
    if isinstance(value, (list, dict)):
        return value
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return default


class RowModel:
    """Builds a dataclass from a sqlite3.Row (or dict), ignoring unknown columns."""

    json_fields: tuple = ()
    bool_fields: tuple = ()

    @classmethod
    def from_row(cls, row):
        if row is None:
            return None
        data = dict(row)
        kwargs = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            if f.name in cls.json_fields:
                default = f.default_factory() if f.default_factory is not MISSING else f.default
                value = _loads(value, default)
            elif f.name in cls.bool_fields:
                value = bool(value)
            kwargs[f.name] = value
        return cls(**kwargs)


@dataclass
class User(RowModel):
    id: str
    email: str
    name: Optional[str] = None
    role: Optional[str] = "donor"
    created_at: Optional[str] = None


@dataclass
class NGO(RowModel):
    id: int
    name: str
    owner_id: Optional[str] = None
    reg_no: Optional[str] = None
    mission: Optional[str] = None
    category: Optional[str] = None
    logo: Optional[str] = None
    docs: list = field(default_factory=list)
    verified: bool = False
    slug: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    created_at: Optional[str] = None

    json_fields = ("docs",)
    bool_fields = ("verified",)


@dataclass
class BankDetails(RowModel):
    ngo_id: int
    account_holder_name: Optional[str] = None
    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    bank_name: Optional[str] = None
    branch_name: Optional[str] = None
    upi_id: Optional[str] = None
    qr_code_url: Optional[str] = None
    donation_link: Optional[str] = None
    payment_methods: Optional[dict] = None

    json_fields = ("payment_methods",)

    @property
    def has_bank_account(self):
        return all([self.account_holder_name, self.account_number, self.ifsc_code, self.bank_name, self.branch_name])

    @property
    def has_upi(self):
        return bool(self.upi_id and self.qr_code_url)


@dataclass
class WishlistItem(RowModel):
    id: int
    wishlist_id: int
    name: str
    price: float = 0
    qty: int = 1
    funded_qty: int = 0
    description: Optional[str] = None
    vendor_url: Optional[str] = None
    rationale: Optional[str] = None
    image_url: Optional[str] = None
    status: str = "available"

    @property
    def is_complete(self):
        return (self.funded_qty or 0) >= (self.qty or 0)


@dataclass
class Wishlist(RowModel):
    id: int
    ngo_id: int
    title: str
    description: Optional[str] = None
    status: str = "draft"
    target_amount: float = 0
    raised_amount: float = 0
    image: Optional[str] = None
    urgent: bool = False
    occasion_tags: list = field(default_factory=list)
    deadline: Optional[str] = None
    created_at: Optional[str] = None
    # joined from ngo
    ngo_name: Optional[str] = None
    ngo_slug: Optional[str] = None
    ngo_logo: Optional[str] = None
    ngo_category: Optional[str] = None
    ngo_contact_email: Optional[str] = None

    json_fields = ("occasion_tags",)
    bool_fields = ("urgent",)

    @property
    def progress(self):
        if not self.target_amount:
            return 0.0
        return (self.raised_amount or 0) / self.target_amount * 100

    @property
    def remaining(self):
        return (self.target_amount or 0) - (self.raised_amount or 0)


@dataclass
class Donation(RowModel):
    id: int
    amount: float
    donor_id: Optional[str] = None
    ngo_id: Optional[int] = None
    wishlist_id: Optional[int] = None
    wishlist_item_id: Optional[int] = None
    items: list = field(default_factory=list)
    gateway: Optional[str] = None
    txn_id: Optional[str] = None
    status: str = "pending"
    name: Optional[str] = None
    email: Optional[str] = None
    message: Optional[str] = None
    anonymous: bool = False
    created_at: Optional[str] = None
    # joined
    ngo_name: Optional[str] = None
    wishlist_title: Optional[str] = None

    json_fields = ("items",)
    bool_fields = ("anonymous",)


@dataclass
class SuccessStory(RowModel):
    id: int
    ngo_id: int
    title: str
    story_text: Optional[str] = None
    media_url: Optional[str] = None
    impact_metrics: Optional[str] = None
    approved: bool = False
    created_at: Optional[str] = None
    ngo_name: Optional[str] = None

    bool_fields = ("approved",)


@dataclass
class AuditLog(RowModel):
    id: int
    action: str
    user_id: Optional[str] = None
    entity: Optional[str] = None
    status: Optional[str] = None
    details: dict = field(default_factory=dict)
    created_at: Optional[str] = None
    user_name: Optional[str] = None

    json_fields = ("details",)
