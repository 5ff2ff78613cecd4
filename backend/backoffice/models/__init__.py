from .tenancy import Organization, Location
from .catalog import Product, Characteristic, CharacteristicOption, Variant, VariantOptionLink
from .stock import StockEntry
from .ledger import LedgerEvent

__all__ = [
    'Organization', 'Location',
    'Product', 'Characteristic', 'CharacteristicOption', 'Variant', 'VariantOptionLink',
    'StockEntry',
    'LedgerEvent',
]
