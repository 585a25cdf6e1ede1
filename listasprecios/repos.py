from __future__ import annotations

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session, contains_eager, joinedload, selectinload

from listasprecios.models import PriceItem, PriceList, Product, Supplier, User

# Newest effective date wins; ties go to the most recently created item.
LATEST_PRICE_ORDER = (
    PriceList.effective_date.desc(),
    PriceItem.created_at.desc(),
    PriceItem.id.desc(),
)


class SupplierRepo:
    def __init__(self, session: Session):
        self.session = session

    def get(self, supplier_id: int) -> Supplier | None:
        return self.session.get(Supplier, supplier_id)

    def find_by_name(self, name: str) -> Supplier | None:
        """Case-insensitive exact match; oldest supplier first when several match."""
        n = (name or "").strip()
        if not n:
            return None
        stmt = (
            select(Supplier)
            .where(func.lower(Supplier.name) == n.casefold())
            .order_by(Supplier.id.asc())
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def find_by_slug(self, slug: str) -> Supplier | None:
        return self.session.execute(select(Supplier).where(Supplier.slug == slug)).scalar_one_or_none()

    def list(self) -> list[Supplier]:
        return self.session.execute(select(Supplier).order_by(Supplier.name.asc())).scalars().all()

    def create(self, name: str, **fields) -> Supplier:
        supplier = Supplier(name=name, **fields)
        self.session.add(supplier)
        self.session.flush()
        return supplier


class ProductRepo:
    def __init__(self, session: Session):
        self.session = session

    def get(self, product_id: int) -> Product | None:
        stmt = select(Product).options(joinedload(Product.supplier)).where(Product.id == product_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def get_by_codes(self, supplier_id: int, codes: list[str]) -> dict[str, Product]:
        if not codes:
            return {}
        stmt = select(Product).where(Product.supplier_id == supplier_id, Product.code.in_(set(codes)))
        return {p.code: p for p in self.session.execute(stmt).scalars().all()}

    def get_many(self, ids: list[int]) -> list[Product]:
        if not ids:
            return []
        stmt = select(Product).options(joinedload(Product.supplier)).where(Product.id.in_(ids))
        by_id = {p.id: p for p in self.session.execute(stmt).scalars().all()}
        return [by_id[i] for i in ids if i in by_id]

    def search(
        self, q: str = "", supplier_id: int | None = None, offset: int = 0, limit: int = 20
    ) -> tuple[list[Product], int]:
        conds = []
        qn = (q or "").strip()
        if qn:
            # "%" and "_" in the query are literal characters, not wildcards.
            conds.append(
                or_(
                    Product.name.icontains(qn, autoescape=True),
                    Product.brand.icontains(qn, autoescape=True),
                    Product.family.icontains(qn, autoescape=True),
                    Product.code.icontains(qn, autoescape=True),
                )
            )
        if supplier_id is not None:
            conds.append(Product.supplier_id == supplier_id)

        total = self.session.execute(select(func.count(Product.id)).where(*conds)).scalar_one()
        stmt = (
            select(Product)
            .options(joinedload(Product.supplier))
            .where(*conds)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .offset(max(0, int(offset)))
            .limit(int(limit))
        )
        return self.session.execute(stmt).scalars().all(), int(total)

    def latest_price_items(self, product_ids: list[int]) -> dict[int, PriceItem]:
        if not product_ids:
            return {}
        stmt = (
            select(PriceItem)
            .join(PriceItem.price_list)
            .options(contains_eager(PriceItem.price_list))
            .where(PriceItem.product_id.in_(product_ids))
            .order_by(PriceItem.product_id, *LATEST_PRICE_ORDER)
        )
        latest: dict[int, PriceItem] = {}
        for item in self.session.execute(stmt).scalars().all():
            latest.setdefault(item.product_id, item)
        return latest


class PriceListRepo:
    def __init__(self, session: Session):
        self.session = session

    def create(self, supplier_id: int, **fields) -> PriceList:
        pl = PriceList(supplier_id=supplier_id, **fields)
        self.session.add(pl)
        self.session.flush()
        return pl

    def list_with_counts(self, supplier_id: int | None = None) -> list[tuple[PriceList, int]]:
        stmt = (
            select(PriceList, func.count(PriceItem.id))
            .options(selectinload(PriceList.supplier))
            .outerjoin(PriceItem, PriceItem.price_list_id == PriceList.id)
            .group_by(PriceList.id)
            .order_by(PriceList.effective_date.desc(), PriceList.created_at.desc(), PriceList.id.desc())
        )
        if supplier_id is not None:
            stmt = stmt.where(PriceList.supplier_id == supplier_id)
        return [(pl, int(n)) for pl, n in self.session.execute(stmt).all()]


class PriceItemRepo:
    def __init__(self, session: Session):
        self.session = session

    def get(self, item_id: int) -> PriceItem | None:
        stmt = (
            select(PriceItem)
            .options(joinedload(PriceItem.price_list), joinedload(PriceItem.product))
            .where(PriceItem.id == item_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list(
        self,
        product_id: int | None = None,
        price_list_id: int | None = None,
        limit: int = 200,
    ) -> list[PriceItem]:
        stmt = (
            select(PriceItem)
            .join(PriceItem.price_list)
            .options(contains_eager(PriceItem.price_list), joinedload(PriceItem.product).joinedload(Product.supplier))
            .order_by(*LATEST_PRICE_ORDER)
            .limit(int(limit))
        )
        if product_id is not None:
            stmt = stmt.where(PriceItem.product_id == product_id)
        if price_list_id is not None:
            stmt = stmt.where(PriceItem.price_list_id == price_list_id)
        return self.session.execute(stmt).unique().scalars().all()

    def update_many(self, ids: list[int], values: dict) -> int:
        if not ids or not values:
            return 0
        stmt = update(PriceItem).where(PriceItem.id.in_(ids)).values(**values)
        res = self.session.execute(stmt.execution_options(synchronize_session="fetch"))
        return int(res.rowcount or 0)


class UserRepo:
    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: int) -> User | None:
        return self.session.get(User, user_id)

    def get_by_email(self, email: str) -> User | None:
        e = (email or "").strip().lower()
        return self.session.execute(select(User).where(User.email == e)).scalar_one_or_none()

    def list(self) -> list[User]:
        return self.session.execute(select(User).order_by(User.created_at.desc(), User.id.desc())).scalars().all()

    def add(self, user: User) -> User:
        self.session.add(user)
        self.session.flush()
        return user
