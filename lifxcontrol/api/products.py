"""
Product catalog.

A read-only lookup of LIFX vendors and products, loaded from the bundled
products.json (same layout as the public LIFX products list).
"""

import json
from dataclasses import dataclass
from importlib import resources
from typing import Optional, Self

from ..exceptions import LifxConfigurationError
from .models import FirmwareVersion


@dataclass(frozen=True)
class ProductFeatures:
    color: bool = False
    chain: bool = False
    matrix: bool = False
    infrared: bool = False
    multizone: bool = False
    temperature_range: Optional[tuple[int, int]] = None
    min_ext_mz_firmware: Optional[FirmwareVersion] = None

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        temperature_range = data.get("temperature_range")
        min_ext_mz = data.get("min_ext_mz_firmware_components")
        return cls(
            color=bool(data.get("color", False)),
            chain=bool(data.get("chain", False)),
            matrix=bool(data.get("matrix", False)),
            infrared=bool(data.get("infrared", False)),
            multizone=bool(data.get("multizone", False)),
            temperature_range=tuple(temperature_range) if temperature_range and len(temperature_range) == 2 else None,
            min_ext_mz_firmware=FirmwareVersion(*min_ext_mz) if min_ext_mz and len(min_ext_mz) == 2 else None,
        )


@dataclass(frozen=True)
class Product:
    pid: int
    name: str
    features: ProductFeatures


@dataclass(frozen=True)
class Vendor:
    vid: int
    name: str
    products: tuple[Product, ...]


class ProductCatalog:
    def __init__(self, vendors: list[Vendor]):
        self.vendors = vendors
        self._index: dict[tuple[int, int], Product] = {
            (vendor.vid, product.pid): product
            for vendor in vendors
            for product in vendor.products
        }

    @classmethod
    def from_list(cls, data: list[dict]) -> Self:
        try:
            vendors = [
                Vendor(
                    vid=int(v["vid"]),
                    name=v.get("name", ""),
                    products=tuple(
                        Product(pid=int(p["pid"]), name=p.get("name", ""), features=ProductFeatures.from_dict(p.get("features", {})))
                        for p in v.get("products", [])
                    ),
                )
                for v in data
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise LifxConfigurationError(f"Invalid product catalog: {e}") from e
        return cls(vendors)

    @classmethod
    def load(cls, path: Optional[str] = None) -> Self:
        """Load a catalog from path, or the bundled products.json"""
        try:
            if path is None:
                text = resources.files("lifxcontrol").joinpath("data/products.json").read_text(encoding="utf-8")
            else:
                with open(path, "r", encoding="utf-8") as fh:
                    text = fh.read()
            data = json.loads(text)
        except (OSError, json.JSONDecodeError) as e:
            raise LifxConfigurationError(f"Unable to load product catalog: {e}") from e
        return cls.from_list(data)

    def lookup(self, vendor: int, product: int) -> Optional[Product]:
        return self._index.get((vendor, product))

    def __len__(self) -> int:
        return len(self._index)
