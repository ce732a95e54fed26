"""Output Validation Script

Validates that a generated products JSON file conforms to the canonical
record requirements:
  - product_id and name present and non-empty strings
  - product ids unique across the file
  - price a finite number or null, currency a non-empty string
  - image_url / product_url absolute, image_url without query string
  - colors a list of strings or null

Usage:
    python -m catalog_pipeline.scripts.validate_output \\
        --path output/products.json

Exits with code 0 on success, 1 on validation failure, 2 on argument error.
"""

import argparse
import json
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

EXPECTED_FIELDS = [
    "price",
    "currency",
    "image_url",
    "product_url",
    "availability",
    "category",
    "subcategory",
    "colors",
]


def load_products(path: Path) -> List[Dict[str, Any]]:
    """Load product records from a JSON file.

    Supports:
      - a JSON array of objects
      - newline-delimited JSON (JSONL)
    """
    with path.open("r", encoding="utf-8") as f:
        content = f.read().strip()

    # Try: full file is a single JSON array
    try:
        data = json.loads(content)
        if isinstance(data, list):
            return data
        else:
            raise ValueError("Top-level JSON is not a list of products.")
    except json.JSONDecodeError:
        pass  # fall through to JSONL

    # Try: JSON Lines (one JSON object per line)
    products: List[Dict[str, Any]] = []
    for line_no, line in enumerate(content.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            obj = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(
                f"Failed to parse JSON on line {line_no}: {e}"
            ) from e
        if not isinstance(obj, dict):
            raise ValueError(
                f"Line {line_no} JSON is not an object (got {type(obj)})"
            )
        products.append(obj)

    if not products:
        raise ValueError("No products found in file.")

    return products


def is_finite_number(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool) and math.isfinite(x)


def is_absolute_url(x: Any) -> bool:
    return isinstance(x, str) and x.startswith(("http://", "https://"))


def _non_empty_str(record: Dict[str, Any], key: str) -> bool:
    value = record.get(key)
    return isinstance(value, str) and bool(value.strip())


def validate_product(
    record: Any,
    idx: int,
    seen_ids: Optional[Set[str]] = None,
) -> Tuple[List[str], List[str]]:
    """Validate a single product record.

    Returns:
        (errors, warnings)
    """
    errors: List[str] = []
    warnings: List[str] = []

    if not isinstance(record, dict):
        errors.append(
            f"[idx={idx}] record should be an object, got {type(record).__name__}"
        )
        return errors, warnings

    # --- identity ---
    if not _non_empty_str(record, "product_id"):
        errors.append(f"[idx={idx}] missing or empty 'product_id'")
    elif seen_ids is not None:
        pid = record["product_id"]
        if pid in seen_ids:
            errors.append(f"[idx={idx}] duplicate product_id '{pid}'")
        seen_ids.add(pid)

    if not _non_empty_str(record, "name"):
        errors.append(f"[idx={idx}] missing or empty 'name'")

    # --- price / currency ---
    price = record.get("price")
    if price is not None and not is_finite_number(price):
        errors.append(f"[idx={idx}] price is not a finite number (got {price!r})")
    if "currency" in record and not _non_empty_str(record, "currency"):
        errors.append(f"[idx={idx}] currency should be a non-empty string")

    # --- urls ---
    image_url = record.get("image_url")
    if image_url is not None:
        if not is_absolute_url(image_url):
            errors.append(f"[idx={idx}] image_url is not absolute ({image_url!r})")
        elif "?" in image_url:
            errors.append(f"[idx={idx}] image_url still carries a query string")

    product_url = record.get("product_url")
    if product_url is not None and not is_absolute_url(product_url):
        errors.append(f"[idx={idx}] product_url is not absolute ({product_url!r})")

    # --- colors ---
    colors = record.get("colors")
    if colors is not None and (
        not isinstance(colors, list) or not all(isinstance(c, str) for c in colors)
    ):
        errors.append(f"[idx={idx}] colors should be a list of strings or null")

    # Missing optional fields are legitimate -> warnings only
    for key in EXPECTED_FIELDS:
        if key not in record:
            warnings.append(f"[idx={idx}] record missing expected field '{key}'")

    return errors, warnings


def main(argv: list[str] | None = None) -> None:
    """Validate a products output file.

    Args:
        argv: Command-line arguments. If None, uses sys.argv[1:]

    Raises:
        SystemExit: With code 0 on success, 1 on validation failure
    """
    parser = argparse.ArgumentParser(
        description="Validate catalog products JSON output."
    )
    parser.add_argument(
        "--path",
        type=str,
        required=True,
        help="Path to products.json",
    )
    args = parser.parse_args(argv)

    path = Path(args.path)

    try:
        products = load_products(path)
    except Exception as e:
        print(f"FAILED TO LOAD FILE: {e}")
        raise SystemExit(1)

    total = len(products)
    all_errors: List[str] = []
    all_warnings: List[str] = []
    seen_ids: Set[str] = set()

    for idx, record in enumerate(products):
        errors, warnings = validate_product(record, idx, seen_ids)
        all_errors.extend(errors)
        all_warnings.extend(warnings)

    if all_errors:
        print("VALIDATION FAILED:\n")
        for err in all_errors:
            print(err)
        print(f"\nTotal errors: {len(all_errors)}")
        if all_warnings:
            print(f"Total warnings: {len(all_warnings)}")
        raise SystemExit(1)

    print("VALIDATION PASSED")
    print(f"Total products: {total}")
    if all_warnings:
        print("\nWarnings (non-fatal):")
        for w in all_warnings:
            print(w)
        print(f"\nTotal warnings: {len(all_warnings)}")

    raise SystemExit(0)


if __name__ == "__main__":
    main()
