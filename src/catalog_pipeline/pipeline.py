"""
Catalog Extraction Pipeline

Turns the raw JSON gathered on each page visit into canonical catalog
records, deduplicated across the whole run and capped at a target count.

Features:
- Per-page entry point (process_page) for the browser-automation layer
- File-based batch run over recorded page captures (run_pipeline)
- Shared, lock-protected run state so page visits can run concurrently
- Timestamped output versioning with run metadata
- Step-by-step structured logging
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from . import config
from .loaders import capture_to_sources, load_page_captures
from .models import (
    ExtractionContext,
    NormalizedProduct,
    PageResult,
    PageSources,
    ResolutionOutcome,
    ResolutionResult,
)
from .page_context import context_from_page, is_blocked_title
from .resolver import resolve_sources
from .tracker import PipelineState, accept_batch, quota_snapshot, remaining_quota


logger = logging.getLogger(__name__)


def process_page(
    sources: PageSources,
    context: ExtractionContext,
    state: PipelineState,
) -> PageResult:
    """
    Resolve one page visit's sources and pick the records to persist.

    The only side effect is the update of ``state`` by the tracker, made
    after the whole batch has been decided.
    """
    remaining, seen_ids = quota_snapshot(state, context.target_count)
    if remaining == 0:
        logger.info("Target of %d already reached; skipping page", context.target_count)
        return PageResult(
            saved_count=len(seen_ids),
            target_count=context.target_count,
            outcome=ResolutionOutcome.QUOTA_REACHED,
            resolution=ResolutionResult(outcome=ResolutionOutcome.QUOTA_REACHED),
        )

    resolution = resolve_sources(sources, context, remaining=remaining, seen_ids=seen_ids)
    accepted, saved_count = accept_batch(resolution.products, state, context.target_count)

    logger.info(
        "Saved %d new products. Total: %d/%d",
        len(accepted),
        saved_count,
        context.target_count,
    )
    return PageResult(
        accepted=accepted,
        saved_count=saved_count,
        target_count=context.target_count,
        outcome=resolution.outcome,
        resolution=resolution,
    )


def _process_capture(
    idx: int,
    capture: Dict[str, Any],
    state: PipelineState,
    target_count: int,
    base_url: str,
    locale: Optional[str],
) -> Optional[PageResult]:
    url = capture.get("url") or ""

    if is_blocked_title(capture.get("title")):
        logger.warning(
            "Skipping page idx=%d url=%s: blocked by anti-bot (title=%r)",
            idx,
            url,
            capture.get("title"),
        )
        return None

    context = context_from_page(
        url,
        embedded_state=capture.get("embedded_state"),
        target_count=target_count,
        base_url=base_url,
        category_id=capture.get("category_id"),
        locale=capture.get("locale") or locale,
    )
    logger.info("Processing page idx=%d url=%s category=%s", idx, url, context.category_id)
    return process_page(capture_to_sources(capture), context, state)


def run_pipeline(
    input_path: Path | str = "data/page_captures.json",
    output_dir: Path | str = "output",
    target_count: int = config.DEFAULT_TARGET_COUNT,
    base_url: str = config.SITE_URL,
    locale: Optional[str] = None,
    max_workers: int = 1,
    dry_run: bool = False,
    keep_history: bool = True,
) -> Tuple[int, int, Dict[str, Path]]:
    """
    Run the catalog extraction pipeline over recorded page captures.

    Pipeline Steps:
    1. Load page captures from JSON
    2. Resolve sources and normalize products page by page
    3. Deduplicate and cap at target_count (shared run state)
    4. Save products and run metadata

    Args:
        input_path: JSON file of page captures
        output_dir: Directory for all output files
        target_count: Stop once this many unique products are saved
        base_url: Site origin used to absolutize product URLs
        locale: Locale used when a capture's URL does not carry one
        max_workers: Page visits processed concurrently
        dry_run: Process everything but write no files
        keep_history: If True, write timestamped files; if False, overwrite

    Returns:
        Tuple of (total_pages, saved_products, output_paths_dict)

    Raises:
        FileNotFoundError: If input_path doesn't exist
        json.JSONDecodeError: If input file is invalid JSON
        ValueError: If input file holds no capture objects
    """
    input_path = Path(input_path)
    output_dir = Path(output_dir)

    run_timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    job_start = time.time()

    logger.debug("Starting pipeline run: catalog_%s", run_timestamp)

    # ========== STEP 1: LOAD PAGE CAPTURES ==========
    t0 = time.time()
    logger.info("STEP 1/4: Loading page captures")

    try:
        captures = load_page_captures(input_path)
        total_pages = len(captures)
        logger.info("✓ Loaded %d page captures in %.2fs", total_pages, time.time() - t0)
    except FileNotFoundError:
        logger.exception("Input file not found: %s", input_path)
        raise
    except json.JSONDecodeError:
        logger.exception("Invalid JSON in input file: %s", input_path)
        raise
    except Exception:
        logger.exception("Failed to load page captures from %s", input_path)
        raise

    # ========== STEP 2-3: EXTRACT, DEDUPLICATE, CAP ==========
    t1 = time.time()
    logger.info(
        "STEP 2/4: Extracting products from %d pages (target=%d, workers=%d)",
        total_pages,
        target_count,
        max_workers,
    )

    state = PipelineState()
    page_results: List[Optional[PageResult]] = []

    if max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [
                pool.submit(_process_capture, idx, capture, state, target_count, base_url, locale)
                for idx, capture in enumerate(captures, start=1)
            ]
            page_results = [future.result() for future in futures]
    else:
        for idx, capture in enumerate(captures, start=1):
            if remaining_quota(state, target_count) == 0:
                logger.info("Target of %d reached; stopping before page %d", target_count, idx)
                break
            page_results.append(
                _process_capture(idx, capture, state, target_count, base_url, locale)
            )

    products: List[NormalizedProduct] = []
    outcomes: Dict[str, int] = {}
    for result in page_results:
        key = result.outcome.value if result is not None else "blocked"
        outcomes[key] = outcomes.get(key, 0) + 1
        if result is not None:
            products.extend(result.accepted)

    logger.info("STEP 3/4: Deduplicated run state holds %d unique products", state.saved_count)
    logger.info(
        "✓ Extraction completed in %.2fs (saved=%d/%d, outcomes=%s)",
        time.time() - t1,
        state.saved_count,
        target_count,
        outcomes,
    )

    # ========== STEP 4: SAVE PRODUCTS ==========
    logger.info("STEP 4/4: Saving products")
    output_paths: Dict[str, Path] = {}

    if dry_run:
        logger.info("DRY RUN: skipping write of products and run metadata")
        return total_pages, state.saved_count, output_paths

    products_filename = f"products_{run_timestamp}.json" if keep_history else "products.json"
    products_path = output_dir / products_filename

    t2 = time.time()
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        with products_path.open("w", encoding="utf-8") as f:
            json.dump(
                [p.model_dump(mode="json") for p in products],
                f,
                ensure_ascii=False,
                indent=2,
            )
        output_paths["products"] = products_path
        logger.info(
            "✓ Wrote %d products to %s (%.2fs)",
            len(products),
            products_path.name,
            time.time() - t2,
        )
    except Exception:
        logger.exception("Failed to save products")
        raise

    _save_metadata(output_dir, run_timestamp, keep_history, {
        "input_file": str(input_path),
        "total_pages": total_pages,
        "pages_processed": len(page_results),
        "target_count": target_count,
        "saved": state.saved_count,
        "outcomes": outcomes,
        "outputs": {k: str(v) for k, v in output_paths.items()},
        "duration_seconds": time.time() - job_start,
    })

    logger.debug(
        "Pipeline run completed: %d pages -> %d products",
        total_pages,
        state.saved_count,
    )
    return total_pages, state.saved_count, output_paths


def _save_metadata(
    output_dir: Path,
    run_timestamp: str,
    keep_history: bool,
    metadata: Dict[str, Any]
) -> None:
    """Save pipeline run metadata."""
    if keep_history:
        meta_filename = f"run_metadata_{run_timestamp}.json"
    else:
        meta_filename = "run_metadata.json"

    meta_path = output_dir / meta_filename
    metadata["timestamp"] = run_timestamp

    try:
        with meta_path.open("w", encoding="utf-8") as f:
            json.dump(metadata, f, ensure_ascii=False, indent=2)
        logger.info("✓ Saved: %s", meta_filename)
    except Exception:
        logger.warning("Failed to save metadata (non-fatal)", exc_info=True)
