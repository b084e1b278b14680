"""
Catalog lookups used by the entitlement core.

Read-only access to mods, developers and bundles. "Not found" is a normal
outcome here: catalog data may be stale relative to outstanding entitlements.
"""

from decimal import Decimal
from typing import Iterable, Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from modmarket.app.core.exceptions import DeveloperNotResolvedError
from modmarket.app.models.catalog import Bundle, Developer, Mod
from modmarket.app.models.user import User


class CatalogResolver:
    
    @staticmethod
    async def get_mod(db: AsyncSession, mod_id: int) -> Optional[Mod]:
        return await db.get(Mod, mod_id)
    
    @staticmethod
    async def mod_price(db: AsyncSession, mod_id: int) -> Optional[Decimal]:
        mod = await db.get(Mod, mod_id)
        return Decimal(mod.price) if mod is not None else None
    
    @staticmethod
    async def valid_mod_ids(db: AsyncSession, mod_ids: Iterable[int]) -> Set[int]:
        """Return the subset of `mod_ids` that exists in the catalog."""
        wanted = set(mod_ids)
        if not wanted:
            return set()
        result = await db.execute(select(Mod.id).where(Mod.id.in_(wanted)))
        return set(result.scalars().all())
    
    @staticmethod
    async def get_bundle(db: AsyncSession, bundle_id: int) -> Optional[Bundle]:
        return await db.get(Bundle, bundle_id)
    
    @staticmethod
    async def bundle_by_developer(db: AsyncSession, developer_key: str) -> Optional[Bundle]:
        result = await db.execute(select(Bundle).where(Bundle.developer_key == developer_key))
        return result.scalar_one_or_none()
    
    @staticmethod
    async def developer_by_login(db: AsyncSession, login: str) -> Optional[Developer]:
        result = await db.execute(select(Developer).where(Developer.payable_login == login))
        return result.scalars().first()
    
    @staticmethod
    async def resolve_payable_account(db: AsyncSession, developer_key: str, lock: bool = False) -> User:
        """
        Resolve a developer-group key to the account that gets paid.
        
        Raises:
            DeveloperNotResolvedError: no developer row, or its login has no account
        """
        result = await db.execute(select(Developer).where(Developer.developer_key == developer_key))
        developer = result.scalar_one_or_none()
        if developer is None:
            raise DeveloperNotResolvedError(developer_key)
        
        stmt = select(User).where(User.login == developer.payable_login)
        if lock:
            stmt = stmt.with_for_update()
        account = (await db.execute(stmt)).scalar_one_or_none()
        if account is None:
            raise DeveloperNotResolvedError(developer_key)
        return account
