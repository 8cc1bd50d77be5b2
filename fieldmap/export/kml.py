"""
KML document generation.

Builds an OGC KML 2.2 document with shared styles, one folder per context
layer type (points, lines or polygons), and a "Field Documentation" folder
holding one placemark per image (or one folder per multi-image cluster).
Image descriptions link the original and thumbnail packaged in the KMZ.
HTML descriptions are stored as escaped text, which KML viewers render the
same way as CDATA.
"""

import html
import logging
import xml.etree.ElementTree as ET
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from fieldmap.config import section
from fieldmap.export.archive import AssetPaths
from fieldmap.field_data.models import Cluster, ContextOverlay, PhotographyInfo, Placemark
from fieldmap.field_data.report import format_file_size

logger = logging.getLogger(__name__)


KML_NS = 'http://www.opengis.net/kml/2.2'
GX_NS = 'http://www.google.com/kml/ext/2.2'

ET.register_namespace('', KML_NS)
ET.register_namespace('gx', GX_NS)

ICON_BASE = 'http://maps.google.com/mapfiles/kml'

# style id -> (icon href, scale)
STYLES = OrderedDict([
    ('highQuality', (f'{ICON_BASE}/paddle/grn-circle.png', 1.0)),
    ('mediumQuality', (f'{ICON_BASE}/paddle/ylw-circle.png', 0.8)),
    ('lowQuality', (f'{ICON_BASE}/paddle/red-circle.png', 0.6)),
    ('defaultStyle', (f'{ICON_BASE}/paddle/wht-circle.png', 0.8)),
    ('clusterStyle', (f'{ICON_BASE}/shapes/shaded_dot.png', 1.5)),
])

# KML colors are aabbggrr
ZONE_COLORS = {
    'wetland': '7f0000ff',
    'industrial': '7fff0000',
    'residential': '7f00ff00',
    'remediation': '7fff8800',
}
DEFAULT_ZONE_COLOR = '7f808080'

CONTEXT_ICON = f'{ICON_BASE}/pushpin/ylw-pushpin.png'


def _k(tag: str) -> str:
    return f'{{{KML_NS}}}{tag}'


def _gx(tag: str) -> str:
    return f'{{{GX_NS}}}{tag}'


def _sub(parent: ET.Element, tag: str, text: Any = None) -> ET.Element:
    element = ET.SubElement(parent, tag)
    if text is not None:
        element.text = str(text)
    return element


def _coordinates(lat: float, lon: float, alt: float = 0.0) -> str:
    return f"{lon},{lat},{alt:g}"


def zone_color(layer_type: str) -> str:
    return ZONE_COLORS.get(layer_type.lower(), DEFAULT_ZONE_COLOR)


def extended_data_fields(placemark: Placemark) -> Dict[str, str]:
    """ExtendedData name/value pairs for one image placemark."""
    image = placemark.metadata_ref
    metadata = image.metadata
    accuracy = metadata.gps.accuracy

    return {
        'fileSize': format_file_size(image.asset.file_size_bytes),
        'quality': metadata.quality.grade.value,
        'cameraModel': metadata.camera.model or 'Unknown',
        'gpsAccuracy': f"{accuracy:g}m" if accuracy is not None else 'Unknown',
        'gpsSource': metadata.gps.source or 'Unknown',
    }


def _photography_rows(photography: PhotographyInfo) -> List[Tuple[str, str]]:
    aperture, focal = photography.aperture, photography.focal_length
    return [
        ('Aperture', f"f/{aperture:g}" if aperture is not None else 'Unknown'),
        ('Shutter', photography.shutter or 'Unknown'),
        ('ISO', str(photography.iso) if photography.iso is not None else 'Unknown'),
        ('Focal Length', f"{focal:g}mm" if focal is not None else 'Unknown'),
    ]


def _table(rows: Sequence[Tuple[str, str]]) -> str:
    return '<table>' + ''.join(f"<tr><td><b>{k}:</b></td><td>{v}</td></tr>" for k, v in rows) + '</table>'


def _placemark_description(placemark: Placemark, paths: Optional[AssetPaths] = None) -> str:
    metadata = placemark.metadata_ref.metadata
    fields = extended_data_fields(placemark)
    captured_at = metadata.camera.captured_at

    images = ''
    if paths is not None:
        images = ''.join(
            f'<img src="{html.escape(src, quote=True)}" width="{width}"/>'
            for src, width in ((paths.image, 200), (paths.thumbnail, 100))
            if src
        )

    rows = [
        ('File Size', fields['fileSize']),
        ('Dimensions', f"{metadata.technical.width} x {metadata.technical.height}"),
        ('Quality', fields['quality']),
        ('Camera', metadata.camera.label or 'Unknown'),
        ('Date', captured_at.isoformat(sep=' ') if captured_at else 'Unknown'),
        ('GPS Source', fields['gpsSource']),
        ('Accuracy', fields['gpsAccuracy']),
    ]
    issues = ''
    if metadata.quality.issues:
        issues = f"<p><b>Issues:</b> {', '.join(metadata.quality.issues)}</p>"
    return (
        f"<h3>{placemark.name}</h3>"
        + (f"<p>{images}</p>" if images else '')
        + _table(rows)
        + "<h4>Photography Settings</h4>"
        + _table(_photography_rows(metadata.photography))
        + issues
    )


class KmlDocumentBuilder:
    """
    Builds the primary KML document of an export.

    Reads the ``export`` config section: project_name, analyst, enable_tour
    and tour_length.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        exp = section(config, 'export')
        self.project_name = exp['project_name']
        self.analyst = exp['analyst']
        self.enable_tour = bool(exp['enable_tour'])
        self.tour_length = int(exp['tour_length'])

    def build(
        self,
        placemarks: Sequence[Placemark],
        clusters: Optional[Sequence[Cluster]] = None,
        overlays: Iterable[ContextOverlay] = (),
        total_images: Optional[int] = None,
        generated_at: Optional[datetime] = None,
        asset_links: Optional[Mapping[str, AssetPaths]] = None
    ) -> str:
        """
        Build the KML document.

        Args:
            placemarks: Image placemarks in processing order
            clusters: Clusters of the same placemarks, or None to render one
                placemark per image
            overlays: Context points and polygons from external providers
            total_images: Number of processed images including ones without
                GPS (defaults to the placemark count)
            generated_at: Generation time (defaults to now, UTC)
            asset_links: Archive paths of each placemark's image and
                thumbnail keyed by placemark id; linked from the descriptions

        Returns:
            Serialized KML document with XML declaration
        """
        generated_at = generated_at or datetime.now(timezone.utc)
        asset_links = asset_links or {}
        total_images = len(placemarks) if total_images is None else total_images

        root = ET.Element(_k('kml'))
        document = _sub(root, _k('Document'))
        _sub(document, _k('name'), self.project_name)
        _sub(document, _k('description'), self._document_description(
            placemarks, clusters, total_images, generated_at,
        ))

        self._add_styles(document)
        self._add_context_layers(document, overlays)

        folder = _sub(document, _k('Folder'))
        _sub(folder, _k('name'), 'Field Documentation')
        _sub(folder, _k('description'), 'GPS-tagged field images with metadata')

        if clusters is None:
            for placemark in placemarks:
                self._add_image_placemark(folder, placemark, asset_links.get(placemark.id))
        else:
            for cluster in clusters:
                self._add_cluster(folder, cluster, asset_links)

        if self.enable_tour and placemarks:
            self._add_tour(document, placemarks[:self.tour_length])

        ET.indent(root, space='  ')
        body = ET.tostring(root, encoding='unicode')
        logger.debug(f"Built KML document with {len(placemarks)} placemarks")
        return '<?xml version="1.0" encoding="UTF-8"?>\n' + body

    def _document_description(
        self,
        placemarks: Sequence[Placemark],
        clusters: Optional[Sequence[Cluster]],
        total_images: int,
        generated_at: datetime
    ) -> str:
        lines = [
            "<h2>Field Data Collection</h2>",
            f"<p><b>Project:</b> {self.project_name}</p>",
            f"<p><b>Analyst:</b> {self.analyst}</p>",
            f"<p><b>Generated:</b> {generated_at.isoformat()}</p>",
            f"<p><b>Total Images:</b> {total_images}</p>",
            f"<p><b>Geo-tagged Images:</b> {len(placemarks)}</p>",
        ]
        if clusters is not None:
            lines.append(f"<p><b>Clusters:</b> {len(clusters)}</p>")
        return '\n'.join(lines)

    def _add_styles(self, document: ET.Element) -> None:
        for style_id, (href, scale) in STYLES.items():
            style = _sub(document, _k('Style'))
            style.set('id', style_id)
            icon_style = _sub(style, _k('IconStyle'))
            icon = _sub(icon_style, _k('Icon'))
            _sub(icon, _k('href'), href)
            _sub(icon_style, _k('scale'), f"{scale:.1f}")

    def _add_context_layers(self, document: ET.Element, overlays: Iterable[ContextOverlay]) -> None:
        layers: Dict[str, List[ContextOverlay]] = OrderedDict()
        for overlay in overlays:
            layers.setdefault(overlay.layer_type, []).append(overlay)

        for layer_type, members in layers.items():
            folder = _sub(document, _k('Folder'))
            _sub(folder, _k('name'), layer_type.replace('_', ' ').title())
            _sub(folder, _k('description'), f"Context layer: {layer_type}")
            for overlay in members:
                self._add_overlay(folder, overlay)

    def _add_overlay(self, folder: ET.Element, overlay: ContextOverlay) -> None:
        placemark = _sub(folder, _k('Placemark'))
        _sub(placemark, _k('name'), overlay.name)
        _sub(placemark, _k('description'), overlay.description or f"Context: {overlay.layer_type}")
        style = _sub(placemark, _k('Style'))
        color = zone_color(overlay.layer_type)

        if overlay.geometry == 'polygon':
            poly_style = _sub(style, _k('PolyStyle'))
            _sub(poly_style, _k('color'), color)
            _sub(poly_style, _k('fill'), 1)
            _sub(poly_style, _k('outline'), 1)

            ring_coords = list(overlay.coordinates)
            if ring_coords[0] != ring_coords[-1]:
                ring_coords.append(ring_coords[0])

            polygon = _sub(placemark, _k('Polygon'))
            boundary = _sub(polygon, _k('outerBoundaryIs'))
            ring = _sub(boundary, _k('LinearRing'))
            _sub(ring, _k('coordinates'), ' '.join(
                _coordinates(lat, lon) for lat, lon in ring_coords
            ))
        elif overlay.geometry == 'line':
            line_style = _sub(style, _k('LineStyle'))
            _sub(line_style, _k('color'), color)
            _sub(line_style, _k('width'), 3)

            line = _sub(placemark, _k('LineString'))
            _sub(line, _k('coordinates'), ' '.join(
                _coordinates(lat, lon) for lat, lon in overlay.coordinates
            ))
        else:
            icon_style = _sub(style, _k('IconStyle'))
            icon = _sub(icon_style, _k('Icon'))
            _sub(icon, _k('href'), CONTEXT_ICON)
            lat, lon = overlay.coordinates[0]
            point = _sub(placemark, _k('Point'))
            _sub(point, _k('coordinates'), _coordinates(lat, lon))

    def _add_image_placemark(
        self,
        parent: ET.Element,
        placemark: Placemark,
        paths: Optional[AssetPaths] = None
    ) -> None:
        element = _sub(parent, _k('Placemark'))
        element.set('id', placemark.id)
        _sub(element, _k('name'), placemark.name)
        _sub(element, _k('description'), _placemark_description(placemark, paths))
        _sub(element, _k('styleUrl'), f"#{placemark.style_key}")

        point = _sub(element, _k('Point'))
        _sub(point, _k('coordinates'), _coordinates(placemark.lat, placemark.lon, placemark.alt))

        extended = _sub(element, _k('ExtendedData'))
        for name, value in extended_data_fields(placemark).items():
            data = _sub(extended, _k('Data'))
            data.set('name', name)
            _sub(data, _k('value'), value)

    def _add_cluster(
        self,
        parent: ET.Element,
        cluster: Cluster,
        asset_links: Mapping[str, AssetPaths]
    ) -> None:
        if cluster.size == 1:
            representative = cluster.representative
            self._add_image_placemark(parent, representative, asset_links.get(representative.id))
            return

        radius = f"{cluster.radius_m:g}"
        folder = _sub(parent, _k('Folder'))
        folder.set('id', cluster.id)
        _sub(folder, _k('name'), f"Image Cluster ({cluster.size} images)")
        _sub(folder, _k('description'), (
            f"<h3>Clustered Images</h3>"
            f"<p><b>Images in cluster:</b> {cluster.size}</p>"
            f"<p><b>Cluster radius:</b> {radius}m</p>"
            f"<p><b>Representative image:</b> {cluster.representative.name}</p>"
        ))

        center = _sub(folder, _k('Placemark'))
        _sub(center, _k('name'), f"Cluster Center ({cluster.size} images)")
        _sub(center, _k('description'), (
            f"This cluster contains {cluster.size} images within {radius}m radius"
        ))
        _sub(center, _k('styleUrl'), '#clusterStyle')
        point = _sub(center, _k('Point'))
        _sub(point, _k('coordinates'), _coordinates(cluster.center_lat, cluster.center_lon))

        for member in cluster.members:
            self._add_image_placemark(folder, member, asset_links.get(member.id))

    def _add_tour(self, document: ET.Element, placemarks: Sequence[Placemark]) -> None:
        tour = _sub(document, _gx('Tour'))
        _sub(tour, _k('name'), 'Site Flythrough')
        _sub(tour, _k('description'), 'Automated flythrough of documented locations')
        playlist = _sub(tour, _gx('Playlist'))

        for placemark in placemarks:
            fly_to = _sub(playlist, _gx('FlyTo'))
            _sub(fly_to, _gx('duration'), '3.0')
            _sub(fly_to, _gx('flyToMode'), 'smooth')
            camera = _sub(fly_to, _k('Camera'))
            _sub(camera, _k('longitude'), placemark.lon)
            _sub(camera, _k('latitude'), placemark.lat)
            _sub(camera, _k('altitude'), 100)
            _sub(camera, _k('heading'), 0)
            _sub(camera, _k('tilt'), 45)
            _sub(camera, _k('roll'), 0)

            wait = _sub(playlist, _gx('Wait'))
            _sub(wait, _gx('duration'), '2.0')
