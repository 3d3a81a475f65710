"""Catalogue seam — product and variant creation."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.product.product import Product


@storefront.repository(part_of=Product)
class ProductRepository:
    def find_by_slug(self, slug: str) -> Product | None:
        return self._dao.query.filter(slug=slug).all().first


@storefront.command(part_of="Product")
class CreateProduct:
    name = String(required=True, max_length=255)
    slug = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    discount_percent = Float(default=0.0)
    stock = Integer(default=0)


@storefront.command(part_of="Product")
class AddProductVariant:
    product_id = Identifier(required=True)
    name = String(required=True, max_length=100)
    sku = String(max_length=50)
    price = Float()
    stock = Integer(default=0)


@storefront.command_handler(part_of=Product)
class ProductManagementHandler:
    @handle(CreateProduct)
    def create_product(self, command):
        repo = current_domain.repository_for(Product)
        if repo.find_by_slug(command.slug) is not None:
            raise ValidationError({"slug": [f"A product with slug '{command.slug}' already exists"]})

        product = Product.create(
            name=command.name,
            slug=command.slug,
            price=command.price,
            stock=command.stock or 0,
            discount_percent=command.discount_percent or 0.0,
        )
        repo.add(product)
        return str(product.id)

    @handle(AddProductVariant)
    def add_variant(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        variant = product.add_variant(
            name=command.name,
            sku=command.sku,
            price=command.price,
            stock=command.stock or 0,
        )
        repo.add(product)
        return str(variant.id)
