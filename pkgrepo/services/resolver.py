"""
Resolve a package's asset tree: fetch each source, then either write it to its
destination or, for archives, extract it and resolve the nested assets.
"""
from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import BinaryIO, List, Sequence
import httpx

from pkgrepo.domain.errors import AssetError, AssetFetchError, ArchiveExtractError, UnknownAssetTypeError
from pkgrepo.domain.manifest import InstallManifest
from pkgrepo.domain.models import (
    ArchiveAsset,
    AssetDescriptor,
    BuildContext,
    UnknownAsset,
)
from pkgrepo.services.archive import extract_archive, extracted_member
from pkgrepo.services.fetcher import open_source
from pkgrepo.services.materializer import materialize

logger = logging.getLogger(__name__)


class AssetResolver:
    """
    Resolves assets for one package build, one at a time.

    A failing asset is logged and recorded in ``errors``; resolution of its
    siblings carries on. Nested archive contents are resolved depth-first
    before the archive asset itself completes.
    """

    def __init__(
        self,
        context: BuildContext,
        manifest: InstallManifest,
        client: httpx.AsyncClient,
    ):
        self.context = context
        self.manifest = manifest
        self.client = client
        self.errors: List[AssetError] = []

    async def resolve_all(self, assets: Sequence[AssetDescriptor]) -> None:
        for asset in assets:
            await self.resolve(asset)

    async def resolve(self, asset: AssetDescriptor) -> bool:
        """Resolve one asset. Returns False if it failed."""
        try:
            await self._resolve(asset)
        except AssetError as e:
            self._fail(e)
            return False
        return True

    def _fail(self, error: AssetError) -> None:
        logger.error(f"{error.message}. Skipping.")
        self.errors.append(error)

    def _skips(self, asset: AssetDescriptor) -> bool:
        return asset.sub_asset and self.context.config.sub_asset_mode == "skip"

    async def _resolve(self, asset: AssetDescriptor) -> None:
        if self._skips(asset):
            logger.info(f"- Asset {asset.label} is a sub-asset, not installed on its own")
            return

        # Unknown types are reported before anything is fetched.
        if isinstance(asset, UnknownAsset):
            raise UnknownAssetTypeError(asset.label, asset.type)
        if not asset.source:
            raise AssetFetchError(asset.label, "asset has no source")

        async with open_source(asset.source, self.context.package_dir, self.client) as source:
            if isinstance(asset, ArchiveAsset):
                await self._expand_archive(source, asset)
            else:
                materialize(self.context, source, asset, self.manifest)

    async def _expand_archive(self, source: BinaryIO, asset: ArchiveAsset) -> None:
        logger.info(f"\t- Type is {asset.type}, has {len(asset.assets)} sub-asset(s)")

        with tempfile.TemporaryDirectory(prefix="zip_extract_") as tmpdirname:
            scratch = Path(tmpdirname)
            extract_archive(source, scratch, asset.label)

            for nested in asset.assets:
                if nested.path is not None and not self._skips(nested):
                    try:
                        member = extracted_member(scratch, nested.path, nested.label)
                    except ArchiveExtractError as e:
                        self._fail(e)
                        continue
                    nested = nested.model_copy(update={"source": str(member)})
                await self.resolve(nested)
