"""
Database abstraction for the hosted Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol, Type

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    Integer,
    String,
    Text,
    create_engine,
    func,
    or_,
    select,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from shared.constants import DEFAULT_TIP_CATEGORY
from shared.types import Role


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_record_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


class _Record:
    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class MarketPriceRecord(_Record):
    id: str
    commodity: str
    price: float
    unit: str
    date: str
    created_by: Optional[str] = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: Optional[str] = None


@dataclass
class ArticleRecord(_Record):
    id: str
    title: str
    content: str
    source: str = ""
    url: str = ""
    image_url: str = ""
    created_by: Optional[str] = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: Optional[str] = None


@dataclass
class TipRecord(_Record):
    id: str
    title: str
    content: str
    category: str = DEFAULT_TIP_CATEGORY
    created_by: Optional[str] = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: Optional[str] = None


@dataclass
class PlantingRecord(_Record):
    id: str
    user_id: str
    user_name: str
    seed_type: str
    seed_count: int
    planting_date: str
    harvest_date: Optional[str] = None
    harvest_yield: Optional[float] = None
    sales_amount: Optional[float] = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: Optional[str] = None

    @property
    def is_harvested(self) -> bool:
        return bool(self.harvest_date)


@dataclass
class ProfileRecord(_Record):
    id: str
    email: str
    name: str
    role: Role
    is_approved: bool = False
    created_at: str = field(default_factory=utc_now_iso)

    def as_dict(self) -> dict:
        data = asdict(self)
        data["role"] = str(self.role)
        return data


class DbClient(Protocol):
    """Interface for database access."""

    # Market prices
    def add_market_price(self, record: MarketPriceRecord) -> MarketPriceRecord:
        ...

    def list_market_prices(
        self, limit: int | None = None
    ) -> list[MarketPriceRecord]:
        ...

    def get_market_price(self, price_id: str) -> Optional[MarketPriceRecord]:
        ...

    def update_market_price(
        self, price_id: str, changes: dict
    ) -> Optional[MarketPriceRecord]:
        ...

    def delete_market_price(self, price_id: str) -> bool:
        ...

    # Tips
    def add_tip(self, record: TipRecord) -> TipRecord:
        ...

    def list_tips(self, limit: int | None = None) -> list[TipRecord]:
        ...

    def get_tip(self, tip_id: str) -> Optional[TipRecord]:
        ...

    def update_tip(self, tip_id: str, changes: dict) -> Optional[TipRecord]:
        ...

    def delete_tip(self, tip_id: str) -> bool:
        ...

    def search_tips(self, keyword: str, limit: int = 3) -> list[TipRecord]:
        ...

    # Articles
    def add_article(self, record: ArticleRecord) -> ArticleRecord:
        ...

    def list_articles(self, limit: int | None = None) -> list[ArticleRecord]:
        ...

    def get_article(self, article_id: str) -> Optional[ArticleRecord]:
        ...

    def update_article(
        self, article_id: str, changes: dict
    ) -> Optional[ArticleRecord]:
        ...

    def delete_article(self, article_id: str) -> bool:
        ...

    def search_articles(self, keyword: str, limit: int = 3) -> list[ArticleRecord]:
        ...

    # Plantings
    def add_planting(self, record: PlantingRecord) -> PlantingRecord:
        ...

    def list_plantings(
        self, user_id: str | None = None, *, unharvested_only: bool = False
    ) -> list[PlantingRecord]:
        ...

    def get_planting(self, planting_id: str) -> Optional[PlantingRecord]:
        ...

    def update_planting(
        self, planting_id: str, changes: dict
    ) -> Optional[PlantingRecord]:
        ...

    def delete_planting(self, planting_id: str) -> bool:
        ...

    # Profiles
    def save_profile(self, profile: ProfileRecord) -> ProfileRecord:
        ...

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        ...

    def list_pending_profiles(self) -> list[ProfileRecord]:
        ...

    def approve_profile(self, user_id: str) -> Optional[ProfileRecord]:
        ...

    def delete_profile(self, user_id: str) -> bool:
        ...


def _newest_first(records) -> list:
    # sorted() is stable, so equal timestamps keep the reversed insertion order.
    return sorted(reversed(list(records)), key=lambda r: r.created_at, reverse=True)


def _contains(haystack: str | None, keyword: str) -> bool:
    return keyword.lower() in (haystack or "").lower()


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.market_prices: Dict[str, MarketPriceRecord] = {}
        self.tips: Dict[str, TipRecord] = {}
        self.articles: Dict[str, ArticleRecord] = {}
        self.plantings: Dict[str, PlantingRecord] = {}
        self.profiles: Dict[str, ProfileRecord] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.market_prices.clear()
        self.tips.clear()
        self.articles.clear()
        self.plantings.clear()
        self.profiles.clear()

    @staticmethod
    def _list(table: dict, limit: int | None) -> list:
        items = _newest_first(table.values())
        return items[:limit] if limit is not None else items

    @staticmethod
    def _update(table: dict, record_id: str, changes: dict):
        record = table.get(record_id)
        if record is None:
            return None
        updated = replace(record, **{**changes, "updated_at": utc_now_iso()})
        table[record_id] = updated
        return updated

    @staticmethod
    def _delete(table: dict, record_id: str) -> bool:
        return table.pop(record_id, None) is not None

    @staticmethod
    def _search(table: dict, keyword: str, limit: int) -> list:
        matches = [
            record
            for record in _newest_first(table.values())
            if _contains(record.title, keyword) or _contains(record.content, keyword)
        ]
        return matches[:limit]

    def add_market_price(self, record: MarketPriceRecord) -> MarketPriceRecord:
        self.market_prices[record.id] = record
        return record

    def list_market_prices(
        self, limit: int | None = None
    ) -> list[MarketPriceRecord]:
        return self._list(self.market_prices, limit)

    def get_market_price(self, price_id: str) -> Optional[MarketPriceRecord]:
        return self.market_prices.get(price_id)

    def update_market_price(
        self, price_id: str, changes: dict
    ) -> Optional[MarketPriceRecord]:
        return self._update(self.market_prices, price_id, changes)

    def delete_market_price(self, price_id: str) -> bool:
        return self._delete(self.market_prices, price_id)

    def add_tip(self, record: TipRecord) -> TipRecord:
        self.tips[record.id] = record
        return record

    def list_tips(self, limit: int | None = None) -> list[TipRecord]:
        return self._list(self.tips, limit)

    def get_tip(self, tip_id: str) -> Optional[TipRecord]:
        return self.tips.get(tip_id)

    def update_tip(self, tip_id: str, changes: dict) -> Optional[TipRecord]:
        return self._update(self.tips, tip_id, changes)

    def delete_tip(self, tip_id: str) -> bool:
        return self._delete(self.tips, tip_id)

    def search_tips(self, keyword: str, limit: int = 3) -> list[TipRecord]:
        return self._search(self.tips, keyword, limit)

    def add_article(self, record: ArticleRecord) -> ArticleRecord:
        self.articles[record.id] = record
        return record

    def list_articles(self, limit: int | None = None) -> list[ArticleRecord]:
        return self._list(self.articles, limit)

    def get_article(self, article_id: str) -> Optional[ArticleRecord]:
        return self.articles.get(article_id)

    def update_article(
        self, article_id: str, changes: dict
    ) -> Optional[ArticleRecord]:
        return self._update(self.articles, article_id, changes)

    def delete_article(self, article_id: str) -> bool:
        return self._delete(self.articles, article_id)

    def search_articles(self, keyword: str, limit: int = 3) -> list[ArticleRecord]:
        return self._search(self.articles, keyword, limit)

    def add_planting(self, record: PlantingRecord) -> PlantingRecord:
        self.plantings[record.id] = record
        return record

    def list_plantings(
        self, user_id: str | None = None, *, unharvested_only: bool = False
    ) -> list[PlantingRecord]:
        items = []
        for planting in _newest_first(self.plantings.values()):
            if user_id is not None and planting.user_id != user_id:
                continue
            if unharvested_only and planting.is_harvested:
                continue
            items.append(planting)
        return items

    def get_planting(self, planting_id: str) -> Optional[PlantingRecord]:
        return self.plantings.get(planting_id)

    def update_planting(
        self, planting_id: str, changes: dict
    ) -> Optional[PlantingRecord]:
        return self._update(self.plantings, planting_id, changes)

    def delete_planting(self, planting_id: str) -> bool:
        return self._delete(self.plantings, planting_id)

    def save_profile(self, profile: ProfileRecord) -> ProfileRecord:
        self.profiles[profile.id] = profile
        return profile

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        return self.profiles.get(user_id)

    def list_pending_profiles(self) -> list[ProfileRecord]:
        pending = [
            profile
            for profile in self.profiles.values()
            if not profile.is_approved and profile.role == Role.USER
        ]
        return sorted(pending, key=lambda p: p.created_at)

    def approve_profile(self, user_id: str) -> Optional[ProfileRecord]:
        profile = self.profiles.get(user_id)
        if profile is None:
            return None
        profile.is_approved = True
        return profile

    def delete_profile(self, user_id: str) -> bool:
        return self._delete(self.profiles, user_id)


def _like_pattern(keyword: str) -> str:
    escaped = (
        keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    )
    return f"%{escaped}%"


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @staticmethod
    def _to_record(row, record_cls: Type[Any]):
        values = {f.name: getattr(row, f.name) for f in fields(record_cls)}
        if record_cls is ProfileRecord:
            values["role"] = Role(values["role"])
        return record_cls(**values)

    def _insert(self, row_cls, record):
        with self.Session() as session:
            values = record.as_dict()
            # Insertion counter, breaks ties between equal created_at values.
            last_seq = session.execute(select(func.max(row_cls.seq))).scalar()
            session.add(row_cls(**values, seq=(last_seq or 0) + 1))
            session.commit()
        return record

    def _list(self, row_cls, record_cls, limit: int | None, *criteria) -> list:
        with self.Session() as session:
            stmt = (
                select(row_cls)
                .where(*criteria)
                .order_by(row_cls.created_at.desc(), row_cls.seq.desc())
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            rows = session.execute(stmt).scalars().all()
            return [self._to_record(row, record_cls) for row in rows]

    def _get(self, row_cls, record_cls, record_id: str):
        with self.Session() as session:
            row = session.get(row_cls, record_id)
            if not row:
                return None
            return self._to_record(row, record_cls)

    def _update(self, row_cls, record_cls, record_id: str, changes: dict):
        with self.Session() as session:
            row = session.get(row_cls, record_id)
            if not row:
                return None
            for key, value in changes.items():
                setattr(row, key, value)
            row.updated_at = utc_now_iso()
            session.commit()
            session.refresh(row)
            return self._to_record(row, record_cls)

    def _delete(self, row_cls, record_id: str) -> bool:
        with self.Session() as session:
            row = session.get(row_cls, record_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def _search(self, row_cls, record_cls, keyword: str, limit: int) -> list:
        pattern = _like_pattern(keyword)
        return self._list(
            row_cls,
            record_cls,
            limit,
            or_(
                row_cls.title.ilike(pattern, escape="\\"),
                row_cls.content.ilike(pattern, escape="\\"),
            ),
        )

    def add_market_price(self, record: MarketPriceRecord) -> MarketPriceRecord:
        return self._insert(MarketPriceRow, record)

    def list_market_prices(
        self, limit: int | None = None
    ) -> list[MarketPriceRecord]:
        return self._list(MarketPriceRow, MarketPriceRecord, limit)

    def get_market_price(self, price_id: str) -> Optional[MarketPriceRecord]:
        return self._get(MarketPriceRow, MarketPriceRecord, price_id)

    def update_market_price(
        self, price_id: str, changes: dict
    ) -> Optional[MarketPriceRecord]:
        return self._update(MarketPriceRow, MarketPriceRecord, price_id, changes)

    def delete_market_price(self, price_id: str) -> bool:
        return self._delete(MarketPriceRow, price_id)

    def add_tip(self, record: TipRecord) -> TipRecord:
        return self._insert(TipRow, record)

    def list_tips(self, limit: int | None = None) -> list[TipRecord]:
        return self._list(TipRow, TipRecord, limit)

    def get_tip(self, tip_id: str) -> Optional[TipRecord]:
        return self._get(TipRow, TipRecord, tip_id)

    def update_tip(self, tip_id: str, changes: dict) -> Optional[TipRecord]:
        return self._update(TipRow, TipRecord, tip_id, changes)

    def delete_tip(self, tip_id: str) -> bool:
        return self._delete(TipRow, tip_id)

    def search_tips(self, keyword: str, limit: int = 3) -> list[TipRecord]:
        return self._search(TipRow, TipRecord, keyword, limit)

    def add_article(self, record: ArticleRecord) -> ArticleRecord:
        return self._insert(ArticleRow, record)

    def list_articles(self, limit: int | None = None) -> list[ArticleRecord]:
        return self._list(ArticleRow, ArticleRecord, limit)

    def get_article(self, article_id: str) -> Optional[ArticleRecord]:
        return self._get(ArticleRow, ArticleRecord, article_id)

    def update_article(
        self, article_id: str, changes: dict
    ) -> Optional[ArticleRecord]:
        return self._update(ArticleRow, ArticleRecord, article_id, changes)

    def delete_article(self, article_id: str) -> bool:
        return self._delete(ArticleRow, article_id)

    def search_articles(self, keyword: str, limit: int = 3) -> list[ArticleRecord]:
        return self._search(ArticleRow, ArticleRecord, keyword, limit)

    def add_planting(self, record: PlantingRecord) -> PlantingRecord:
        return self._insert(PlantingRow, record)

    def list_plantings(
        self, user_id: str | None = None, *, unharvested_only: bool = False
    ) -> list[PlantingRecord]:
        criteria = []
        if user_id is not None:
            criteria.append(PlantingRow.user_id == user_id)
        if unharvested_only:
            criteria.append(
                or_(PlantingRow.harvest_date.is_(None), PlantingRow.harvest_date == "")
            )
        return self._list(PlantingRow, PlantingRecord, None, *criteria)

    def get_planting(self, planting_id: str) -> Optional[PlantingRecord]:
        return self._get(PlantingRow, PlantingRecord, planting_id)

    def update_planting(
        self, planting_id: str, changes: dict
    ) -> Optional[PlantingRecord]:
        return self._update(PlantingRow, PlantingRecord, planting_id, changes)

    def delete_planting(self, planting_id: str) -> bool:
        return self._delete(PlantingRow, planting_id)

    def save_profile(self, profile: ProfileRecord) -> ProfileRecord:
        with self.Session() as session:
            session.merge(ProfileRow(**profile.as_dict()))
            session.commit()
        return profile

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        return self._get(ProfileRow, ProfileRecord, user_id)

    def list_pending_profiles(self) -> list[ProfileRecord]:
        with self.Session() as session:
            stmt = (
                select(ProfileRow)
                .where(
                    ProfileRow.is_approved.is_(False),
                    ProfileRow.role == Role.USER.value,
                )
                .order_by(ProfileRow.created_at.asc())
            )
            rows = session.execute(stmt).scalars().all()
            return [self._to_record(row, ProfileRecord) for row in rows]

    def approve_profile(self, user_id: str) -> Optional[ProfileRecord]:
        with self.Session() as session:
            row = session.get(ProfileRow, user_id)
            if not row:
                return None
            row.is_approved = True
            session.commit()
            session.refresh(row)
            return self._to_record(row, ProfileRecord)

    def delete_profile(self, user_id: str) -> bool:
        return self._delete(ProfileRow, user_id)


Base = declarative_base()


class MarketPriceRow(Base):
    __tablename__ = "market_prices"

    id = Column(String, primary_key=True)
    commodity = Column(String, nullable=False)
    price = Column(Float, nullable=False)
    unit = Column(String, nullable=False)
    date = Column(String, nullable=False)
    created_by = Column(String, nullable=True)
    created_at = Column(String, nullable=False, index=True)
    seq = Column(Integer, nullable=False, default=0)
    updated_at = Column(String, nullable=True)


class TipRow(Base):
    __tablename__ = "tips"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String, nullable=False, default=DEFAULT_TIP_CATEGORY)
    created_by = Column(String, nullable=True)
    created_at = Column(String, nullable=False, index=True)
    seq = Column(Integer, nullable=False, default=0)
    updated_at = Column(String, nullable=True)


class ArticleRow(Base):
    __tablename__ = "articles"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    source = Column(String, nullable=False, default="")
    url = Column(String, nullable=False, default="")
    image_url = Column(String, nullable=False, default="")
    created_by = Column(String, nullable=True)
    created_at = Column(String, nullable=False, index=True)
    seq = Column(Integer, nullable=False, default=0)
    updated_at = Column(String, nullable=True)


class PlantingRow(Base):
    __tablename__ = "plantings"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    user_name = Column(String, nullable=False)
    seed_type = Column(String, nullable=False)
    seed_count = Column(Integer, nullable=False)
    planting_date = Column(String, nullable=False)
    harvest_date = Column(String, nullable=True)
    harvest_yield = Column(Float, nullable=True)
    sales_amount = Column(Float, nullable=True)
    created_at = Column(String, nullable=False, index=True)
    seq = Column(Integer, nullable=False, default=0)
    updated_at = Column(String, nullable=True)


class ProfileRow(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False, index=True)
    is_approved = Column(Boolean, nullable=False, default=False)
    created_at = Column(String, nullable=False)
