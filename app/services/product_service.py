"""
Product Service - Product reference lookups
"""
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import or_
from typing import List, Optional, Tuple
from uuid import UUID

from app.core.exceptions import NotFoundError, ValidationError
from app.models import Product, ProductVariant
from app.schemas.product import ProductCreate

class ProductService:
    """Product reference data used by the stock core"""

    @staticmethod
    def get_products(
        db: Session,
        search: Optional[str] = None,
        active_only: bool = True,
        page: int = 1,
        per_page: int = 50
    ) -> Tuple[List[Product], int]:
        """Products with their variants; search matches product or variant SKU and name"""
        query = db.query(Product)
        if active_only:
            query = query.filter(Product.is_active == True)

        if search:
            term = f"%{search}%"
            variant_match = db.query(ProductVariant.product_id).filter(
                or_(ProductVariant.sku.ilike(term), ProductVariant.name.ilike(term))
            )
            query = query.filter(
                or_(Product.sku.ilike(term), Product.name.ilike(term), Product.id.in_(variant_match))
            )

        total = query.count()
        products = query.options(selectinload(Product.variants))\
            .order_by(Product.sku)\
            .offset((page - 1) * per_page)\
            .limit(per_page)\
            .all()
        return products, total

    @staticmethod
    def get_product_by_id(db: Session, product_id: UUID) -> Optional[Product]:
        return db.query(Product).filter(Product.id == product_id).first()

    @staticmethod
    def create_product(db: Session, product_data: ProductCreate) -> Product:
        if db.query(Product).filter(Product.sku == product_data.sku).first():
            raise ValidationError(f"Product SKU {product_data.sku} already exists", status_code=409)

        product = Product(
            sku=product_data.sku,
            name=product_data.name,
            description=product_data.description
        )
        for variant in product_data.variants:
            product.variants.append(ProductVariant(sku=variant.sku, name=variant.name))

        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    @staticmethod
    def resolve(db: Session, product_id: UUID, variant_id: Optional[UUID] = None) -> Tuple[Product, Optional[ProductVariant]]:
        """Check that a product (and variant) exists; raise NotFoundError otherwise"""
        product = ProductService.get_product_by_id(db, product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")

        variant = None
        if variant_id is not None:
            variant = db.query(ProductVariant).filter(
                ProductVariant.id == variant_id,
                ProductVariant.product_id == product_id
            ).first()
            if not variant:
                raise NotFoundError(f"Variant {variant_id} not found for product {product.sku}")
        return product, variant

    @staticmethod
    def describe(product: Product, variant: Optional[ProductVariant] = None) -> str:
        if variant:
            return f"{product.name} ({variant.name})"
        return product.name
