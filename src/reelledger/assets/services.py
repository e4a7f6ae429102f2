"""Version services — create, read, compare, relabel, and delete versions.

VersionService is the only writer of lineages.  New versions go through
the store's conditional ``commit_version``: the service reads the
lineage's current latest member, builds the next version, and commits it
only if that member is still latest.  A lost race surfaces as
ConflictError, which the service retries with freshly read state a
bounded number of times.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from reelledger.assets.models import ContentAsset, ContentType, Lineage, VersionComparison
from reelledger.assets.store import LineageStore
from reelledger.errors import ConflictError, InvalidArgumentError, NotFoundError
from reelledger.pages.splitter import SCRIPT_LINES_PER_PAGE, replace_page

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONFLICT_RETRIES = 5


def default_label(version: int) -> str:
    """Display label given to versions created without one."""
    return f"Version {version}"


def group_lineages(assets: Iterable[ContentAsset]) -> list[Lineage]:
    """Group an unordered collection of assets into lineages.

    Lineages come back in order of first appearance; versions within a
    lineage ascend.  ``Lineage.current`` is whichever member is flagged
    latest, which is not necessarily the highest version.
    """
    groups: dict[str, list[ContentAsset]] = {}
    for asset in assets:
        groups.setdefault(asset.lineage_root_id, []).append(asset)
    return [
        Lineage(root_id=root_id, versions=sorted(members, key=lambda a: a.version))
        for root_id, members in groups.items()
    ]


class VersionService:
    """Lineage-aware version operations over a LineageStore."""

    def __init__(
        self,
        store: LineageStore,
        max_conflict_retries: int = DEFAULT_MAX_CONFLICT_RETRIES,
    ) -> None:
        self.store = store
        self.max_conflict_retries = max_conflict_retries

    # -- Writes --------------------------------------------------------------

    def create_version(
        self,
        lineage_root_id: str | None,
        content_type: ContentType,
        body: str,
        label: str | None = None,
        *,
        project_id: str | None = None,
        scene_id: str | None = None,
        title: str = "",
        page_number: int | None = None,
        source_prompt: str | None = None,
        generation_model: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ContentAsset:
        """Create a new version, starting a lineage when no root is given.

        With ``lineage_root_id=None`` the new asset is version 1 of its own
        lineage.  Otherwise it becomes ``max version + 1`` of the given
        lineage and replaces the previous latest member atomically.

        Raises:
            NotFoundError: If ``lineage_root_id`` names an empty or unknown lineage.
            InvalidArgumentError: If ``content_type`` differs from the lineage's.
            ConflictError: If concurrent writers kept winning past the retry budget.
        """
        content_type = ContentType(content_type)
        fields: dict[str, Any] = {
            "content_type": content_type,
            "body": body,
            "project_id": project_id,
            "scene_id": scene_id,
            "title": title,
            "page_number": page_number,
            "source_prompt": source_prompt,
            "generation_model": generation_model,
            "metadata": dict(metadata or {}),
        }

        if lineage_root_id is None:
            asset = ContentAsset(
                version=1, is_latest=True, version_label=label or default_label(1), **fields
            )
            created = self.store.insert_root(asset)
            logger.info("Started lineage %s (%s)", created.id, content_type)
            return created

        attempt = 0
        while True:
            previous = self.store.latest(lineage_root_id)
            if previous is None:
                raise NotFoundError(f"Lineage not found: {lineage_root_id}")
            if previous.content_type != content_type:
                raise InvalidArgumentError(
                    f"Lineage {lineage_root_id} holds {previous.content_type}, "
                    f"not {content_type}"
                )
            versions = self.store.versions(lineage_root_id)
            next_version = max(a.version for a in versions) + 1
            asset = ContentAsset(
                lineage_root_id=lineage_root_id,
                version=next_version,
                is_latest=True,
                version_label=label or default_label(next_version),
                **fields,
            )
            try:
                created = self.store.commit_version(asset, expected_latest_id=previous.id)
            except ConflictError:
                attempt += 1
                if attempt > self.max_conflict_retries:
                    logger.warning(
                        "Giving up on lineage %s after %d conflicts",
                        lineage_root_id,
                        attempt,
                    )
                    raise
                logger.debug(
                    "Conflict on lineage %s (attempt %d), retrying", lineage_root_id, attempt
                )
                continue
            logger.info("Created version %d of lineage %s", created.version, lineage_root_id)
            return created

    def relabel(self, asset_id: str, new_label: str | None) -> ContentAsset:
        """Change a version's display label; version and latest flag are untouched."""
        return self.store.set_label(asset_id, new_label)

    def delete_version(self, asset_id: str) -> ContentAsset | None:
        """Delete one version, promoting the next-highest if it was latest.

        Returns:
            The promoted asset, or None if no promotion was needed.

        Raises:
            NotFoundError: If the asset does not exist.
        """
        promoted = self.store.delete(asset_id)
        if promoted is not None:
            logger.info(
                "Deleted %s; promoted version %d of lineage %s",
                asset_id,
                promoted.version,
                promoted.lineage_root_id,
            )
        else:
            logger.info("Deleted %s", asset_id)
        return promoted

    def revise_page(
        self,
        asset_id: str,
        page_number: int,
        content: str,
        lines_per_page: int = SCRIPT_LINES_PER_PAGE,
        label: str | None = None,
    ) -> ContentAsset:
        """Edit one page of a script version, producing a new version.

        The new version always lands on top of the lineage, even when
        ``asset_id`` is an older version.
        """
        source = self.get_asset(asset_id)
        if source.content_type != ContentType.SCRIPT:
            raise InvalidArgumentError(f"Asset {asset_id} is not a script")
        body = replace_page(source.body, page_number, content, lines_per_page)
        return self.create_version(
            source.lineage_root_id,
            ContentType.SCRIPT,
            body,
            label,
            project_id=source.project_id,
            scene_id=source.scene_id,
            title=source.title,
            source_prompt=source.source_prompt,
            generation_model=source.generation_model,
            metadata=source.metadata,
        )

    # -- Reads ---------------------------------------------------------------

    def get_asset(self, asset_id: str) -> ContentAsset:
        asset = self.store.get(asset_id)
        if asset is None:
            raise NotFoundError(f"Asset not found: {asset_id}")
        return asset

    def list_versions(self, lineage_root_id: str) -> list[ContentAsset]:
        """All versions of a lineage, ascending by version."""
        return self.store.versions(lineage_root_id)

    def get_latest(self, lineage_root_id: str) -> ContentAsset:
        """The lineage's latest member.

        Raises:
            NotFoundError: If the lineage has no members.
        """
        latest = self.store.latest(lineage_root_id)
        if latest is None:
            raise NotFoundError(f"Lineage has no versions: {lineage_root_id}")
        return latest

    def compare(self, asset_id_a: str, asset_id_b: str) -> VersionComparison:
        """Fetch two versions of the same lineage side by side.

        Raises:
            NotFoundError: If either asset does not exist.
            InvalidArgumentError: If the assets belong to different lineages.
        """
        a = self.get_asset(asset_id_a)
        b = self.get_asset(asset_id_b)
        if a.lineage_root_id != b.lineage_root_id:
            raise InvalidArgumentError(
                f"Assets {asset_id_a} and {asset_id_b} belong to different lineages"
            )
        return VersionComparison(a=a, b=b)

    def list_project_assets(
        self, project_id: str, content_type: ContentType | None = None
    ) -> list[ContentAsset]:
        """Latest members of every lineage in a project, newest first."""
        assets = self.store.list(
            content_type=content_type, project_id=project_id, latest_only=True
        )
        return sorted(assets, key=lambda a: a.created_at, reverse=True)

    def list_scene_assets(
        self, scene_id: str, content_type: ContentType | None = None
    ) -> list[ContentAsset]:
        """Every version attached to a scene, highest version first."""
        assets = self.store.list(content_type=content_type, scene_id=scene_id)
        return sorted(assets, key=lambda a: (a.version, a.created_at), reverse=True)

    def latest_script_for_scene(self, scene_id: str) -> ContentAsset | None:
        """The most recently created latest script asset of a scene."""
        scripts = self.store.list(
            content_type=ContentType.SCRIPT, scene_id=scene_id, latest_only=True
        )
        if not scripts:
            return None
        return max(scripts, key=lambda a: a.created_at)

    def lineages(self, assets: Iterable[ContentAsset] | None = None) -> list[Lineage]:
        """Group ``assets`` (default: the whole store) into lineages."""
        return group_lineages(self.store.list() if assets is None else assets)
