#!/usr/bin/env python3
"""Import screenplay text files into the asset store as script versions.

Each ``<stem>.txt`` file becomes one lineage.  The mapping from file stem
to lineage root id is kept in ``.reelledger-imports.json`` next to the
store, so re-running the script adds a new version only for files whose
text changed since the last import.

Usage:
    uv run python scripts/import_screenplays.py ./screenplays --store ./.reelledger
    uv run python scripts/import_screenplays.py ./screenplays --project p1 --dry-run
"""
from __future__ import annotations

import argparse
import json
from pathlib import Path

from reelledger.assets import ContentType, LineageStore, VersionService
from reelledger.pages import page_count

IMPORTS_FILENAME = ".reelledger-imports.json"


def load_imports(store_dir: Path) -> dict[str, str]:
    """Return the stem → lineage root id map from previous runs."""
    path = store_dir / IMPORTS_FILENAME
    if not path.exists():
        return {}
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return {}


def save_imports(store_dir: Path, imports: dict[str, str]) -> None:
    path = store_dir / IMPORTS_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(imports, indent=2, sort_keys=True), encoding="utf-8")


def scene_id_for(stem: str) -> str:
    """Files named ``scene-<id>.txt`` attach to scene ``<id>``."""
    return stem[len("scene-"):] if stem.startswith("scene-") else stem


def main() -> None:
    parser = argparse.ArgumentParser(description="Import screenplay files as script versions")
    parser.add_argument("source", type=Path, help="Directory of *.txt screenplay files")
    parser.add_argument("--store", type=Path, default=Path(".reelledger"), help="Store directory")
    parser.add_argument("--project", default=None, help="Project id for new lineages")
    parser.add_argument("--dry-run", action="store_true", help="Report without writing")
    args = parser.parse_args()

    store = LineageStore(args.store)
    service = VersionService(store)
    imports = load_imports(args.store)

    created = updated = unchanged = 0
    for path in sorted(args.source.glob("*.txt")):
        text = path.read_text(encoding="utf-8")
        stem = path.stem
        root_id = imports.get(stem)
        latest = store.latest(root_id) if root_id else None

        if latest is not None and latest.body == text:
            unchanged += 1
            continue

        pages = page_count(text)
        if args.dry_run:
            action = "new version" if latest is not None else "new lineage"
            print(f"  [dry-run] {stem}: {action} ({pages} pages)")
            continue

        asset = service.create_version(
            latest.lineage_root_id if latest is not None else None,
            ContentType.SCRIPT,
            text,
            project_id=args.project if latest is None else latest.project_id,
            scene_id=scene_id_for(stem),
            title=stem.replace("-", " ").replace("_", " ").title(),
            metadata={"source_file": str(path), "page_count": pages},
        )
        imports[stem] = asset.lineage_root_id
        if latest is None:
            created += 1
        else:
            updated += 1
        print(f"  {stem}: v{asset.version} ({pages} pages)")

    if not args.dry_run:
        save_imports(args.store, imports)
    print(f"\nDone: {created} new, {updated} updated, {unchanged} unchanged")


if __name__ == "__main__":
    main()
