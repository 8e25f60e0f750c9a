"""
Pydantic schemas for the desired-state document.

Every collection entity declares its natural key (the slug or name that
identifies it on both sides), the sub-key of each list-of-records field,
and the fields that reference entities in other sections. The diff engine
and the deploy references checker read these declarations instead of
sniffing shapes at runtime.

YAML uses camelCase keys; Python attributes are snake_case. Models reject
unknown fields so typos surface at load time. Remote listings are parsed
with ``Entity.from_remote``, which drops fields the schema doesn't know.
"""

from collections import Counter
from collections.abc import Iterable
from enum import Enum
from typing import Any, ClassVar, Literal, NamedTuple, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel, to_snake

from shopform.core.errors import ConfiguratorError


class Section(str, Enum):
    """
    Top-level document sections, declared in deployment order.

    Iterating the enum yields the stage order: dependencies come first
    (attributes before product types, categories before products, channels
    before tax configuration and shipping zones).
    """

    SHOP = "shop"
    CHANNELS = "channels"
    TAX_CLASSES = "taxClasses"
    TAX_CONFIGURATION = "taxConfiguration"
    ATTRIBUTES = "attributes"
    PRODUCT_TYPES = "productTypes"
    PAGE_TYPES = "pageTypes"
    CATEGORIES = "categories"
    WAREHOUSES = "warehouses"
    SHIPPING_ZONES = "shippingZones"
    PRODUCTS = "products"
    COLLECTIONS = "collections"
    PAGES = "pages"
    MENUS = "menus"

    @property
    def field_name(self) -> str:
        """Attribute name on ConfigDocument."""
        return to_snake(self.value)

    @property
    def label(self) -> str:
        return SECTION_LABELS[self]

    @property
    def is_singleton(self) -> bool:
        return self is Section.SHOP

    @classmethod
    def parse(cls, name: str) -> "Section":
        """Look up a section by its document name, case-insensitively."""
        wanted = name.strip().lower()
        for section in cls:
            if section.value.lower() == wanted:
                return section
        raise ValueError(name)


SECTION_LABELS: dict[Section, str] = {
    Section.SHOP: "Shop Settings",
    Section.CHANNELS: "Channels",
    Section.TAX_CLASSES: "Tax Classes",
    Section.TAX_CONFIGURATION: "Tax Configuration",
    Section.ATTRIBUTES: "Attributes",
    Section.PRODUCT_TYPES: "Product Types",
    Section.PAGE_TYPES: "Page Types",
    Section.CATEGORIES: "Categories",
    Section.WAREHOUSES: "Warehouses",
    Section.SHIPPING_ZONES: "Shipping Zones",
    Section.PRODUCTS: "Products",
    Section.COLLECTIONS: "Collections",
    Section.PAGES: "Pages",
    Section.MENUS: "Menus",
}


class Reference(NamedTuple):
    """A field that names entities of another section by natural key."""

    section: Section
    label: str


class SchemaModel(BaseModel):
    """Base for every document model: camelCase aliases, unknown keys rejected."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    # list field name -> field of each record that identifies it
    sub_keys: ClassVar[dict[str, str]] = {}

    @model_validator(mode="after")
    def _unique_sub_keys(self) -> "SchemaModel":
        for field_name, sub_key in self.sub_keys.items():
            counts = Counter(str(getattr(item, sub_key)) for item in getattr(self, field_name))
            duplicates = sorted(key for key, count in counts.items() if count > 1)
            if duplicates:
                alias = type(self).model_fields[field_name].alias or field_name
                raise ValueError(f"Duplicate {alias} entries: {', '.join(duplicates)}")
        return self

    @classmethod
    def from_remote(cls, data: dict[str, Any]) -> "SchemaModel":
        """Validate remote data, dropping keys this schema doesn't declare."""
        return cls.model_validate(_strip_unknown(cls, data))


def _strip_unknown(model: type[BaseModel], data: Any) -> Any:
    if not isinstance(data, dict):
        return data
    known: dict[str, Any] = {}
    for name, info in model.model_fields.items():
        alias = info.alias or name
        if alias in data:
            key = alias
        elif name in data:
            key = name
        else:
            continue
        known[key] = _strip_nested(info.annotation, data[key])
    return known


def _nested_model(annotation: Any) -> type[BaseModel] | None:
    if get_origin(annotation) is None and isinstance(annotation, type):
        return annotation if issubclass(annotation, BaseModel) else None
    for arg in get_args(annotation):
        model = _nested_model(arg)
        if model is not None:
            return model
    return None


def _strip_nested(annotation: Any, value: Any) -> Any:
    model = _nested_model(annotation)
    if model is None:
        return value
    if isinstance(value, list):
        return [_strip_unknown(model, item) for item in value]
    return _strip_unknown(model, value)


class Entity(SchemaModel):
    """
    A record within a collection section.

    Subclasses set ``natural_key`` to the field that identifies the entity
    across local and remote documents, ``label`` to its singular display
    name, and ``references`` for fields naming entities of other sections.
    """

    natural_key: ClassVar[str]
    label: ClassVar[str]
    references: ClassVar[dict[str, Reference]] = {}

    id: str | None = Field(default=None, description="Remote identifier, never compared")

    @property
    def key(self) -> str:
        return str(getattr(self, self.natural_key))

    @classmethod
    def key_alias(cls) -> str:
        info = cls.model_fields[cls.natural_key]
        return info.alias or cls.natural_key


# ==============================================================================
# Shop settings (singleton)
# ==============================================================================


class ShopSettings(SchemaModel):
    """Global shop settings. Fields left unset are not managed."""

    header_text: str | None = None
    description: str | None = None
    track_inventory_by_default: bool | None = None
    default_weight_unit: Literal["G", "LB", "OZ", "KG", "TONNE"] | None = None
    automatic_fulfillment_digital_products: bool | None = None
    default_digital_max_downloads: int | None = Field(default=None, ge=0)
    default_digital_url_valid_days: int | None = Field(default=None, ge=0)
    default_mail_sender_name: str | None = None
    default_mail_sender_address: str | None = None
    customer_set_password_url: str | None = None
    reserve_stock_duration_anonymous_user: int | None = Field(default=None, ge=0)
    reserve_stock_duration_authenticated_user: int | None = Field(default=None, ge=0)
    limit_quantity_per_checkout: int | None = Field(default=None, ge=1)
    enable_account_confirmation_by_email: bool | None = None
    fulfillment_auto_approve: bool | None = None
    fulfillment_allow_unpaid: bool | None = None


# ==============================================================================
# Channels and taxes
# ==============================================================================


class ChannelSettings(SchemaModel):
    allocation_strategy: Literal["PRIORITIZE_SORTING_ORDER", "PRIORITIZE_HIGH_STOCK"] | None = None
    automatically_confirm_all_new_orders: bool | None = None
    automatically_fulfill_non_shippable_gift_card: bool | None = None
    expire_orders_after: int | None = Field(default=None, ge=0)
    delete_expired_orders_after: int | None = Field(default=None, ge=1)
    mark_as_paid_strategy: Literal["TRANSACTION_FLOW", "PAYMENT_FLOW"] | None = None
    allow_unpaid_orders: bool | None = None
    default_transaction_flow_strategy: Literal["AUTHORIZATION", "CHARGE"] | None = None


class Channel(Entity):
    natural_key: ClassVar[str] = "slug"
    label: ClassVar[str] = "Channel"

    name: str
    slug: str
    currency_code: str
    default_country: str
    is_active: bool = False
    settings: ChannelSettings | None = None

    @field_validator("currency_code")
    @classmethod
    def _currency_code(cls, value: str) -> str:
        if len(value) != 3 or not value.isalpha() or not value.isupper():
            raise ValueError(f"Invalid currency code '{value}'")
        return value

    @field_validator("default_country")
    @classmethod
    def _country_code(cls, value: str) -> str:
        return _check_country(value)


def _check_country(value: str) -> str:
    if len(value) != 2 or not value.isalpha() or not value.isupper():
        raise ValueError(f"Invalid country code '{value}'")
    return value


class CountryRate(SchemaModel):
    country_code: str
    rate: float

    @field_validator("country_code")
    @classmethod
    def _country_code(cls, value: str) -> str:
        return _check_country(value)

    @field_validator("rate")
    @classmethod
    def _rate(cls, value: float) -> float:
        if not 0 <= value <= 100:
            raise ValueError("Tax rate must be between 0 and 100")
        return value


class TaxClass(Entity):
    natural_key: ClassVar[str] = "name"
    label: ClassVar[str] = "Tax class"
    sub_keys: ClassVar[dict[str, str]] = {"country_rates": "country_code"}

    name: str
    country_rates: list[CountryRate] = Field(default_factory=list)


class TaxConfiguration(Entity):
    natural_key: ClassVar[str] = "channel"
    label: ClassVar[str] = "Tax configuration"
    references: ClassVar[dict[str, Reference]] = {
        "channel": Reference(Section.CHANNELS, "Channel"),
    }

    channel: str
    charge_taxes: bool | None = None
    tax_calculation_strategy: Literal["FLAT_RATES", "TAX_APP"] | None = None
    display_gross_prices: bool | None = None
    prices_entered_with_tax: bool | None = None


# ==============================================================================
# Attributes and types
# ==============================================================================

AttributeInputType = Literal[
    "DROPDOWN",
    "MULTISELECT",
    "FILE",
    "REFERENCE",
    "NUMERIC",
    "RICH_TEXT",
    "PLAIN_TEXT",
    "SWATCH",
    "BOOLEAN",
    "DATE",
    "DATE_TIME",
]


class AttributeValue(SchemaModel):
    name: str


class Attribute(Entity):
    natural_key: ClassVar[str] = "name"
    label: ClassVar[str] = "Attribute"
    sub_keys: ClassVar[dict[str, str]] = {"values": "name"}

    name: str
    input_type: AttributeInputType = "DROPDOWN"
    entity_type: Literal["PAGE", "PRODUCT", "PRODUCT_VARIANT"] | None = None
    values: list[AttributeValue] = Field(default_factory=list)

    @model_validator(mode="after")
    def _reference_needs_entity_type(self) -> "Attribute":
        if self.input_type == "REFERENCE" and self.entity_type is None:
            raise ValueError(f"Entity type is required for reference attribute '{self.name}'")
        return self


class ProductType(Entity):
    natural_key: ClassVar[str] = "name"
    label: ClassVar[str] = "Product type"
    references: ClassVar[dict[str, Reference]] = {
        "product_attributes": Reference(Section.ATTRIBUTES, "Attribute"),
        "variant_attributes": Reference(Section.ATTRIBUTES, "Attribute"),
    }

    name: str
    is_shipping_required: bool = False
    product_attributes: list[str] = Field(default_factory=list)
    variant_attributes: list[str] = Field(default_factory=list)


class PageType(Entity):
    natural_key: ClassVar[str] = "name"
    label: ClassVar[str] = "Page type"
    references: ClassVar[dict[str, Reference]] = {
        "attributes": Reference(Section.ATTRIBUTES, "Attribute"),
    }

    name: str
    attributes: list[str] = Field(default_factory=list)


# ==============================================================================
# Catalog structure and logistics
# ==============================================================================


class Category(Entity):
    natural_key: ClassVar[str] = "slug"
    label: ClassVar[str] = "Category"
    references: ClassVar[dict[str, Reference]] = {
        "parent": Reference(Section.CATEGORIES, "Parent category"),
    }

    name: str
    slug: str
    description: str | None = None
    parent: str | None = Field(default=None, description="Slug of the parent category")


class Address(SchemaModel):
    street_address1: str | None = None
    street_address2: str | None = None
    city: str | None = None
    city_area: str | None = None
    postal_code: str | None = None
    country: str | None = None
    country_area: str | None = None
    company_name: str | None = None
    phone: str | None = None

    @field_validator("city", "country")
    @classmethod
    def _upper(cls, value: str | None) -> str | None:
        # The API stores city and country upper-cased
        return value.upper() if value else value


class Warehouse(Entity):
    natural_key: ClassVar[str] = "slug"
    label: ClassVar[str] = "Warehouse"

    name: str
    slug: str
    email: str | None = None
    is_private: bool = False
    click_and_collect_option: Literal["DISABLED", "LOCAL", "ALL"] = "DISABLED"
    address: Address | None = None


class ShippingMethod(SchemaModel):
    name: str
    type: Literal["PRICE", "WEIGHT"] = "PRICE"
    description: str | None = None
    minimum_delivery_days: int | None = Field(default=None, ge=0)
    maximum_delivery_days: int | None = Field(default=None, ge=0)


class ShippingZone(Entity):
    natural_key: ClassVar[str] = "name"
    label: ClassVar[str] = "Shipping zone"
    sub_keys: ClassVar[dict[str, str]] = {"shipping_methods": "name"}
    references: ClassVar[dict[str, Reference]] = {
        "warehouses": Reference(Section.WAREHOUSES, "Warehouse"),
        "channels": Reference(Section.CHANNELS, "Channel"),
    }

    name: str
    description: str | None = None
    default: bool = False
    countries: list[str] = Field(default_factory=list)
    warehouses: list[str] = Field(default_factory=list)
    channels: list[str] = Field(default_factory=list)
    shipping_methods: list[ShippingMethod] = Field(default_factory=list)

    @field_validator("countries")
    @classmethod
    def _countries(cls, value: list[str]) -> list[str]:
        return [_check_country(code) for code in value]


# ==============================================================================
# Products, collections, content
# ==============================================================================


class ProductChannelListing(SchemaModel):
    channel: str
    is_published: bool = True
    visible_in_listings: bool = True
    available_for_purchase: str | None = None


class VariantChannelListing(SchemaModel):
    channel: str
    price: float = Field(ge=0)
    cost_price: float | None = Field(default=None, ge=0)


class ProductVariant(SchemaModel):
    sub_keys: ClassVar[dict[str, str]] = {"channel_listings": "channel"}

    sku: str
    name: str
    weight: float | None = Field(default=None, ge=0)
    track_inventory: bool = True
    channel_listings: list[VariantChannelListing] = Field(default_factory=list)


class Product(Entity):
    natural_key: ClassVar[str] = "slug"
    label: ClassVar[str] = "Product"
    sub_keys: ClassVar[dict[str, str]] = {"variants": "sku", "channel_listings": "channel"}
    references: ClassVar[dict[str, Reference]] = {
        "product_type": Reference(Section.PRODUCT_TYPES, "Product type"),
        "category": Reference(Section.CATEGORIES, "Category"),
    }

    name: str
    slug: str
    product_type: str
    category: str
    description: str | None = None
    channel_listings: list[ProductChannelListing] = Field(default_factory=list)
    variants: list[ProductVariant] = Field(default_factory=list)


class CollectionChannelListing(SchemaModel):
    channel: str
    is_published: bool = False


class Collection(Entity):
    natural_key: ClassVar[str] = "slug"
    label: ClassVar[str] = "Collection"
    sub_keys: ClassVar[dict[str, str]] = {"channel_listings": "channel"}
    references: ClassVar[dict[str, Reference]] = {
        "products": Reference(Section.PRODUCTS, "Product"),
    }

    name: str
    slug: str
    description: str | None = None
    products: list[str] = Field(default_factory=list)
    channel_listings: list[CollectionChannelListing] = Field(default_factory=list)


class Page(Entity):
    natural_key: ClassVar[str] = "slug"
    label: ClassVar[str] = "Page"
    references: ClassVar[dict[str, Reference]] = {
        "page_type": Reference(Section.PAGE_TYPES, "Page type"),
    }

    title: str
    slug: str
    page_type: str
    content: str | None = None
    is_published: bool = False


class MenuItem(SchemaModel):
    sub_keys: ClassVar[dict[str, str]] = {"children": "name"}

    name: str
    url: str | None = None
    category: str | None = None
    collection: str | None = None
    page: str | None = None
    children: list["MenuItem"] = Field(default_factory=list)


class Menu(Entity):
    natural_key: ClassVar[str] = "slug"
    label: ClassVar[str] = "Menu"
    sub_keys: ClassVar[dict[str, str]] = {"items": "name"}

    name: str
    slug: str
    items: list[MenuItem] = Field(default_factory=list)


SECTION_SCHEMAS: dict[Section, type[SchemaModel]] = {
    Section.SHOP: ShopSettings,
    Section.CHANNELS: Channel,
    Section.TAX_CLASSES: TaxClass,
    Section.TAX_CONFIGURATION: TaxConfiguration,
    Section.ATTRIBUTES: Attribute,
    Section.PRODUCT_TYPES: ProductType,
    Section.PAGE_TYPES: PageType,
    Section.CATEGORIES: Category,
    Section.WAREHOUSES: Warehouse,
    Section.SHIPPING_ZONES: ShippingZone,
    Section.PRODUCTS: Product,
    Section.COLLECTIONS: Collection,
    Section.PAGES: Page,
    Section.MENUS: Menu,
}


def entity_schema(section: Section) -> type[Entity]:
    """Return the Entity schema of a collection section."""
    schema = SECTION_SCHEMAS[section]
    if not issubclass(schema, Entity):
        raise TypeError(f"{section.value} is not a collection section")
    return schema


# ==============================================================================
# Document
# ==============================================================================


class ConfigDocument(SchemaModel):
    """
    A whole desired-state (or remote snapshot) document.

    Example:
        >>> doc = ConfigDocument.model_validate(
        ...     {"channels": [{"name": "EU", "slug": "eu", "currencyCode": "EUR",
        ...                    "defaultCountry": "DE"}]}
        ... )
        >>> [c.key for c in doc.entities(Section.CHANNELS)]
        ['eu']
    """

    shop: ShopSettings | None = None
    channels: list[Channel] = Field(default_factory=list)
    tax_classes: list[TaxClass] = Field(default_factory=list)
    tax_configuration: list[TaxConfiguration] = Field(default_factory=list)
    attributes: list[Attribute] = Field(default_factory=list)
    product_types: list[ProductType] = Field(default_factory=list)
    page_types: list[PageType] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    warehouses: list[Warehouse] = Field(default_factory=list)
    shipping_zones: list[ShippingZone] = Field(default_factory=list)
    products: list[Product] = Field(default_factory=list)
    collections: list[Collection] = Field(default_factory=list)
    pages: list[Page] = Field(default_factory=list)
    menus: list[Menu] = Field(default_factory=list)

    def entities(self, section: Section) -> list[Entity]:
        if section.is_singleton:
            raise TypeError(f"{section.value} is a singleton section")
        entities: list[Entity] = getattr(self, section.field_name)
        return entities


def find_duplicate_keys(
    document: ConfigDocument, sections: Iterable[Section] | None = None
) -> dict[Section, list[str]]:
    """Return natural keys that occur more than once, per section."""
    duplicates: dict[Section, list[str]] = {}
    for section in sections if sections is not None else Section:
        if section.is_singleton:
            continue
        counts = Counter(entity.key for entity in document.entities(section))
        repeated = sorted(key for key, count in counts.items() if count > 1)
        if repeated:
            duplicates[section] = repeated
    return duplicates


def ensure_unique_keys(
    document: ConfigDocument, sections: Iterable[Section] | None = None
) -> None:
    """
    Raise a DUPLICATE error for the first section with repeated natural keys.

    Raises:
        ConfiguratorError: kind DUPLICATE, naming the section and the keys
    """
    duplicates = find_duplicate_keys(document, sections)
    for section, keys in duplicates.items():
        key_field = entity_schema(section).natural_key
        raise ConfiguratorError.duplicate(section.value, key_field, keys)


__all__ = [
    "Address",
    "Attribute",
    "AttributeValue",
    "Category",
    "Channel",
    "ChannelSettings",
    "Collection",
    "CollectionChannelListing",
    "ConfigDocument",
    "CountryRate",
    "Entity",
    "Menu",
    "MenuItem",
    "Page",
    "PageType",
    "Product",
    "ProductChannelListing",
    "ProductType",
    "ProductVariant",
    "Reference",
    "SECTION_LABELS",
    "SECTION_SCHEMAS",
    "SchemaModel",
    "Section",
    "ShippingMethod",
    "ShippingZone",
    "ShopSettings",
    "TaxClass",
    "TaxConfiguration",
    "VariantChannelListing",
    "Warehouse",
    "ensure_unique_keys",
    "entity_schema",
    "find_duplicate_keys",
]
