# ===============================================================================
# TEST FACTORIES FOR ORDERS, CATALOG AND LEDGERS
# ===============================================================================
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from django.utils import timezone

from apps.affiliates.models import AffiliateSettings
from apps.billing.models import ExchangeRate
from apps.customers.models import Client, Organization
from apps.inventory.models import WarehouseStock
from apps.orders.models import Cart, CartLine, Order
from apps.orders.services import CheckoutData, CheckoutService
from apps.products.models import AffiliateProduct, Product, ProductCategory, ProductVariation


def create_organization(slug: str = 'acme', **kwargs) -> Organization:
    """Create a tenant with sensible defaults."""
    defaults = {'name': slug.title(), 'countries': ['GB', 'DE', 'US']}
    defaults.update(kwargs)
    return Organization.objects.create(slug=slug, **defaults)


def create_client(organization: Organization, username: str = 'alice', **kwargs) -> Client:
    defaults = {'email': f'{username}@example.com', 'country': 'GB'}
    defaults.update(kwargs)
    return Client.objects.create(organization=organization, username=username, **defaults)


def create_category(organization: Organization, name: str = 'Coffee') -> ProductCategory:
    return ProductCategory.objects.create(organization=organization, name=name, slug=name.lower())


def create_product(
    organization: Organization,
    name: str = 'Widget',
    prices: dict[str, str] | None = None,
    costs: dict[str, str] | None = None,
    manage_stock: bool = True,
    allow_backorders: bool = False,
    categories: Iterable[ProductCategory] = (),
) -> Product:
    """Create a regular product priced per country."""
    product = Product.objects.create(
        organization=organization,
        name=name,
        regular_price=prices or {'GB': '10.00', 'DE': '12.00', 'US': '14.00'},
        cost=costs or {'GB': '4.00', 'DE': '5.00', 'US': '6.00'},
        manage_stock=manage_stock,
        allow_backorders=allow_backorders,
    )
    for category in categories:
        product.categories.add(category)
    return product


def create_affiliate_product(
    organization: Organization,
    name: str = 'Sticker pack',
    manage_stock: bool = True,
    allow_backorders: bool = False,
) -> AffiliateProduct:
    return AffiliateProduct.objects.create(
        organization=organization,
        name=name,
        points_price={'GB': '25.0'},
        manage_stock=manage_stock,
        allow_backorders=allow_backorders,
    )


def create_variation(product: Product, name: str = 'Large') -> ProductVariation:
    return ProductVariation.objects.create(product=product, name=name)


def set_stock(
    item: Product | AffiliateProduct,
    country: str,
    quantity: int,
    variation: ProductVariation | None = None,
) -> WarehouseStock:
    """Create a stock row for a product or affiliate product."""
    field = 'affiliate_product' if isinstance(item, AffiliateProduct) else 'product'
    return WarehouseStock.objects.create(**{field: item}, variation=variation, country=country, quantity=quantity)


def stock_of(item: Product | AffiliateProduct, country: str, variation: ProductVariation | None = None) -> int:
    field = 'affiliate_product' if isinstance(item, AffiliateProduct) else 'product'
    rows = WarehouseStock.objects.filter(**{field: item}, country=country, variation=variation)
    return sum(row.quantity for row in rows)


def create_cart(
    client: Client,
    country: str = 'GB',
    lines: Iterable[tuple[Product | AffiliateProduct, int, str]] = (),
) -> Cart:
    """Create a cart; ``lines`` are (item, quantity, unit_price) tuples."""
    cart = Cart.objects.create(organization=client.organization, client=client, country=country)
    for item, quantity, unit_price in lines:
        field = 'affiliate_product' if isinstance(item, AffiliateProduct) else 'product'
        CartLine.objects.create(cart=cart, quantity=quantity, unit_price=Decimal(unit_price), **{field: item})
    return cart


def place_order(cart: Cart, **kwargs) -> Order:
    """Check a cart out through CheckoutService so reservations are applied."""
    result = CheckoutService.place_order(
        CheckoutData(cart_id=cart.id, organization_id=cart.organization_id, **kwargs)
    )
    return result.unwrap()


def create_order(cart: Cart, status: str = 'paid', **kwargs) -> Order:
    """Create an order row directly, without reservation side effects."""
    defaults = {
        'order_key': f'K-{Order.objects.count() + 1}',
        'country': cart.country,
        'total_amount': Decimal('100.00'),
    }
    defaults.update(kwargs)
    return Order.objects.create(
        organization=cart.organization,
        client=cart.client,
        cart=cart,
        status=status,
        **defaults,
    )


def create_exchange_rate(
    usd_eur: str = '0.90',
    usd_gbp: str = '0.80',
    date: datetime | None = None,
) -> ExchangeRate:
    return ExchangeRate.objects.create(
        usd_eur=Decimal(usd_eur),
        usd_gbp=Decimal(usd_gbp),
        date=date or timezone.now(),
    )


def create_affiliate_settings(
    organization: Organization,
    points_per_referral: str = '10',
    spending_needed: str = '100',
    points_per_spending: str = '5',
) -> AffiliateSettings:
    return AffiliateSettings.objects.create(
        organization=organization,
        points_per_referral=Decimal(points_per_referral),
        spending_needed=Decimal(spending_needed),
        points_per_spending=Decimal(points_per_spending),
    )
