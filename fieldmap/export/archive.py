"""
KMZ archive exporter.
"""

import json
import logging
import os
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Union

from fieldmap.errors import ExportError
from fieldmap.export.base import BaseExporter
from fieldmap.field_data.models import ExtractedImage

logger = logging.getLogger(__name__)


DOC_NAME = 'doc.kml'


@dataclass(frozen=True)
class AssetPaths:
    """Archive-relative paths of one image's original and thumbnail."""
    image: Optional[str] = None
    thumbnail: Optional[str] = None


def _unique_name(name: str, used: Set[str]) -> str:
    candidate = name
    stem, dot, suffix = name.rpartition('.')
    if not dot:
        stem, suffix = name, ''
    counter = 2
    while candidate in used:
        candidate = f"{stem}_{counter}{dot}{suffix}"
        counter += 1
    used.add(candidate)
    return candidate


class KmzArchiveExporter(BaseExporter):
    """
    Packages a KML document and its assets as a KMZ archive.

    Layout:
        doc.kml
        images/<original file>
        thumbnails/thumb_<stem>.jpg
        data/<auxiliary file>

    Files are staged in a temporary directory and zipped to a temporary file
    next to the target, which is moved into place only once complete. Any
    failure raises ExportError and leaves no archive behind.
    """

    def plan_asset_paths(self, images: Sequence[ExtractedImage]) -> List[AssetPaths]:
        """
        Archive paths for each image, in input order.

        Repeated file names get ``_2``, ``_3`` suffixes. Paths are None for
        members the configuration leaves out (originals or thumbnails
        disabled, or no thumbnail generated).
        """
        used_images: Set[str] = set()
        used_thumbs: Set[str] = set()
        plan = []
        for image in images:
            image_path = thumb_path = None
            if self._include_originals:
                image_path = 'images/' + _unique_name(image.file_name, used_images)
            if self._include_thumbnails and image.thumbnail:
                stem = Path(image.file_name).stem
                thumb_path = 'thumbnails/' + _unique_name(f"thumb_{stem}.jpg", used_thumbs)
            plan.append(AssetPaths(image=image_path, thumbnail=thumb_path))
        return plan

    def export(
        self,
        output_path: Union[str, Path],
        kml: str,
        images: Sequence[ExtractedImage] = (),
        data_files: Optional[Dict[str, Union[str, bytes, Dict, list]]] = None,
        asset_paths: Optional[Sequence[AssetPaths]] = None
    ) -> Path:
        """
        Write the KMZ archive.

        Args:
            output_path: Target .kmz file, or a directory that receives the
                configured archive name (field_export.kmz by default)
            kml: Serialized KML document
            images: Extracted images whose originals/thumbnails are included
            data_files: Auxiliary files keyed by name under data/; dicts and
                lists are written as JSON
            asset_paths: Paths from ``plan_asset_paths`` that the KML links
                to; planned here when omitted

        Returns:
            Path to created KMZ file

        Raises:
            ExportError: If staging or packaging fails
        """
        output_path = Path(output_path)
        if output_path.is_dir():
            kmz_path = output_path / self._archive_name
        else:
            kmz_path = output_path.with_suffix('.kmz')

        if asset_paths is None:
            asset_paths = self.plan_asset_paths(images)
        if len(asset_paths) != len(images):
            raise ExportError(
                f"Got {len(asset_paths)} asset paths for {len(images)} images"
            )

        try:
            kmz_path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryDirectory() as tmpdir:
                temp_dir = Path(tmpdir)
                self._stage(temp_dir, kml, images, asset_paths, data_files or {})
                self._create_zip(temp_dir, kmz_path)
        except (OSError, ValueError, TypeError, zipfile.BadZipFile) as e:
            logger.error(f"KMZ packaging failed for {kmz_path}: {e}")
            raise ExportError(f"Failed to package {kmz_path.name}: {e}") from e

        logger.info(f"Exported {len(images)} images to {kmz_path}")
        return kmz_path

    def _stage(
        self,
        temp_dir: Path,
        kml: str,
        images: Sequence[ExtractedImage],
        asset_paths: Sequence[AssetPaths],
        data_files: Dict[str, Any]
    ) -> None:
        """Write every archive member into the staging directory."""
        (temp_dir / DOC_NAME).write_text(kml, encoding='utf-8')

        for image, paths in zip(images, asset_paths):
            for member, payload in ((paths.image, image.content), (paths.thumbnail, image.thumbnail)):
                if member is None or payload is None:
                    continue
                target = temp_dir / member
                target.parent.mkdir(exist_ok=True)
                target.write_bytes(payload)

        for name, payload in data_files.items():
            target = temp_dir / 'data' / name
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(payload, bytes):
                target.write_bytes(payload)
            elif isinstance(payload, str):
                target.write_text(payload, encoding='utf-8')
            else:
                target.write_text(json.dumps(payload, indent=2, default=str), encoding='utf-8')

    def _create_zip(self, source_dir: Path, zip_path: Path):
        """Create KMZ archive from directory, doc.kml first."""
        fd, partial = tempfile.mkstemp(
            dir=zip_path.parent, prefix=f".{zip_path.stem}-", suffix='.part'
        )
        os.close(fd)
        partial_path = Path(partial)

        try:
            with zipfile.ZipFile(partial_path, 'w', zipfile.ZIP_DEFLATED) as zf:
                zf.write(source_dir / DOC_NAME, DOC_NAME)
                for file_path in sorted(source_dir.rglob('*')):
                    if file_path.is_file() and file_path != source_dir / DOC_NAME:
                        arcname = file_path.relative_to(source_dir).as_posix()
                        zf.write(file_path, arcname)
            os.replace(partial_path, zip_path)
        finally:
            if partial_path.exists():
                partial_path.unlink()
