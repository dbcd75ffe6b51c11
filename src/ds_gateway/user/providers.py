"""User-profile and bank-account collaborators.

Profiles and bank accounts are owned by the identity side of the platform;
the escrow core only asks two questions of them: has this user completed KYC
(phone number and ID document on file), and where should a seller's payout go.
"""

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

_GET_PROFILE_SQL = text("""
    SELECT id, email, name, phone, id_card_url
    FROM users
    WHERE id = :user_id
""")

_GET_DEFAULT_BANK_ACCOUNT_SQL = text("""
    SELECT id, user_id, bank_name, account_number, account_holder_name
    FROM bank_accounts
    WHERE user_id = :user_id AND is_default = TRUE
    LIMIT 1
""")


@dataclass
class UserProfile:
    id: str
    email: str
    name: str
    phone: str | None
    id_card_url: str | None

    @property
    def has_completed_kyc(self) -> bool:
        return bool(self.phone) and bool(self.id_card_url)


@dataclass
class BankAccount:
    id: str
    user_id: str
    bank_name: str
    account_number: str
    account_holder_name: str


class UserProfileProviderProtocol(Protocol):
    async def get_profile(self, db: AsyncSession, user_id: str) -> UserProfile | None: ...

    async def has_completed_kyc(self, db: AsyncSession, user_id: str) -> bool: ...


class BankAccountProviderProtocol(Protocol):
    async def get_default_bank_account(
        self, db: AsyncSession, user_id: str
    ) -> BankAccount | None: ...


class UserProfileProvider:
    async def get_profile(self, db: AsyncSession, user_id: str) -> UserProfile | None:
        row = (await db.execute(_GET_PROFILE_SQL, {"user_id": user_id})).fetchone()
        if row is None:
            return None
        return UserProfile(
            id=str(row.id),
            email=row.email,
            name=row.name,
            phone=row.phone,
            id_card_url=row.id_card_url,
        )

    async def has_completed_kyc(self, db: AsyncSession, user_id: str) -> bool:
        profile = await self.get_profile(db, user_id)
        return profile is not None and profile.has_completed_kyc


class BankAccountProvider:
    async def get_default_bank_account(
        self, db: AsyncSession, user_id: str
    ) -> BankAccount | None:
        row = (
            await db.execute(_GET_DEFAULT_BANK_ACCOUNT_SQL, {"user_id": user_id})
        ).fetchone()
        if row is None:
            return None
        return BankAccount(
            id=str(row.id),
            user_id=str(row.user_id),
            bank_name=row.bank_name,
            account_number=row.account_number,
            account_holder_name=row.account_holder_name,
        )
