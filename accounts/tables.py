"""
accounts/tables.py -- Storage schema for accounts and verification tokens.

Both tables hang off store.schema.metadata, so Database.create_all() builds
them together (the token FK needs the accounts table first; MetaData orders
that).

accounts.email is UNIQUE regardless of verification state or soft deletion:
a second signup for the same address can never create a second row.
verification_tokens rows are deleted physically and cascade with their
account.
"""

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, String, Table, false

from accounts.models import Account, Role, VerificationToken
from store.schema import EntitySchema, Relation, id_column, metadata, soft_delete_column, timestamp_columns

_accounts = Table(
    "accounts",
    metadata,
    id_column(),
    Column("email", String(320), nullable=False, unique=True),
    Column("password_hash", String(60), nullable=False),  # bcrypt output is always 60 chars
    Column("password_salt", String(29), nullable=False),  # "$2b$" + cost + "$" + 22 chars
    Column("is_verified", Boolean, nullable=False, server_default=false()),
    Column(
        "role",
        Enum(Role, name="account_role", native_enum=False, values_callable=lambda roles: [r.value for r in roles]),
        nullable=False,
    ),
    *timestamp_columns(),
    soft_delete_column(),
)

_verification_tokens = Table(
    "verification_tokens",
    metadata,
    id_column(),
    Column("account_id", String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("expires_at", DateTime, nullable=False),
    *timestamp_columns(),
)

ACCOUNTS = EntitySchema(
    _accounts,
    Account,
    server_computed=("is_verified",),
    soft_delete=True,
)

VERIFICATION_TOKENS = EntitySchema(
    _verification_tokens,
    VerificationToken,
    relations={"account": Relation(column="account_id", target=ACCOUNTS)},
)
