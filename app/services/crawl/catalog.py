"""XML catalog rendering for extracted products.

Document shape (2-space indent, one element per line):

    <?xml version="1.0" encoding="UTF-8"?>
    <catalog>
      <product>
        <url>...</url>
        <name>...</name>
        <description>...</description>
        <price>...</price>
        <discounted_price>...</discounted_price>   (only when truthy)
        <image_url>...</image_url>
        <availability>true|false</availability>
        <variants>                                 (only when non-empty)
          <variant>
            <type>...</type>
            <value>...</value>
          </variant>
        </variants>
      </product>
    </catalog>

A discounted price of 0 is treated as absent, same as None.
"""

from __future__ import annotations

import os
import re
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional
from xml.sax.saxutils import escape

from app.models.catalog import ProductRecord, Variant


XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
_ATTR_ENTITIES = {"'": "&apos;", '"': "&quot;"}


def escape_xml(text: str) -> str:
    """Escape < > & ' and " as XML entities."""
    return escape(text, _ATTR_ENTITIES)


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e16:
            return str(int(value))
        return repr(value)
    return str(value)


def _node(name: str, value: Any, indent: str) -> Optional[str]:
    if value is None:
        return None
    return f"{indent}<{name}>{escape_xml(format_value(value))}</{name}>"


def _variants_lines(variants: List[Variant], indent: str) -> List[str]:
    if not variants:
        return []
    lines = [f"{indent}<variants>"]
    for v in variants:
        lines.append(f"{indent}  <variant>")
        lines.extend(x for x in (_node("type", v.type, indent + "    "), _node("value", v.value, indent + "    ")) if x)
        lines.append(f"{indent}  </variant>")
    lines.append(f"{indent}</variants>")
    return lines


def _product_lines(p: ProductRecord) -> List[str]:
    ind = "    "
    fields = [
        ("url", p.url),
        ("name", p.name),
        ("description", p.description),
        ("price", p.price),
        ("discounted_price", p.discounted_price if p.discounted_price else None),
        ("image_url", p.image_url),
        ("availability", p.availability),
    ]
    lines = ["  <product>"]
    lines.extend(x for x in (_node(name, value, ind) for name, value in fields) if x)
    lines.extend(_variants_lines(p.variants, ind))
    lines.append("  </product>")
    return lines


def generate_xml(products: Iterable[ProductRecord]) -> str:
    """Render products, in input order, as a catalog document."""
    lines = [XML_DECLARATION, "<catalog>"]
    for p in products:
        lines.extend(_product_lines(p))
    lines.append("</catalog>")
    return "\n".join(lines)


def write_catalog(products: Iterable[ProductRecord], out_dir: str, filename_prefix: str) -> str:
    """Write the catalog document (UTF-8) and return its path."""
    os.makedirs(out_dir, exist_ok=True)
    dt = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    safe_prefix = re.sub(r"[^A-Za-z0-9._-]+", "_", filename_prefix).strip("_") or "catalog"
    path = os.path.join(out_dir, f"{safe_prefix}-{dt}.xml")
    with open(path, "w", encoding="utf-8") as f:
        f.write(generate_xml(products))
    return path
