"""
Column alias configuration for product mapping.

Each target field resolves from the first populated column among its
aliases, in the order listed. Aliases may be overridden from YAML.

Expected YAML format:
```yaml
aliases:
  natural_key: [code, product_code, sku]
  name: [name, product_name, title]
  price: [price, unit_price]
```
Fields not mentioned keep their default aliases.
"""

from pathlib import Path

import yaml

TARGET_FIELDS = ("natural_key", "name", "category", "price", "description")

DEFAULT_ALIASES: dict[str, tuple[str, ...]] = {
    "natural_key": ("code", "product_code", "sku"),
    "name": ("name", "product_name"),
    "category": ("category", "product_category"),
    "price": ("price", "unit_price"),
    "description": ("description", "product_description"),
}


class AliasConfigLoader:
    """
    Loads column aliases from a YAML configuration file.
    """

    def __init__(self, config_path: str | Path):
        """
        Initialize the alias loader.

        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Alias configuration file not found: {config_path}")

    def load_aliases(self) -> dict[str, tuple[str, ...]]:
        """
        Load aliases, merged over the defaults.

        Returns:
            Mapping of target field to alias tuple

        Raises:
            ValueError: If the YAML is malformed or names an unknown field
        """
        with open(self.config_path) as f:
            config = yaml.safe_load(f)

        if not config or "aliases" not in config:
            raise ValueError("Configuration file must contain 'aliases' section")

        aliases = dict(DEFAULT_ALIASES)
        for field_name, names in config["aliases"].items():
            if field_name not in TARGET_FIELDS:
                raise ValueError(
                    f"Unknown target field '{field_name}'. Must be one of {', '.join(TARGET_FIELDS)}"
                )
            if not isinstance(names, list) or not names:
                raise ValueError(f"Aliases for field '{field_name}' must be a non-empty list")
            aliases[field_name] = tuple(str(name).strip().lower() for name in names)

        return aliases
