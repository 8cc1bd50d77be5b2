"""
Unit tests for batch summaries, metadata reports and thumbnails.
"""

import io
from dataclasses import replace
from datetime import datetime

import pytest
from PIL import Image

from fieldmap.field_data.models import GpsInfo, QualityGrade
from fieldmap.field_data.report import build_metadata_report, format_file_size, summarize_batch
from fieldmap.image_processing.thumbnail import ThumbnailGenerator


class TestFormatFileSize:
    """Tests for format_file_size."""

    @pytest.mark.parametrize("size,expected", [
        (0, '0 Bytes'),
        (512, '512 Bytes'),
        (1024, '1 KB'),
        (1536, '1.5 KB'),
        (1_500_000, '1.43 MB'),
        (60 * 1024 * 1024, '60 MB'),
        (3 * 1024 ** 3, '3 GB'),
    ])
    def test_format(self, size, expected):
        assert format_file_size(size) == expected


class TestSummarizeBatch:
    """Tests for summarize_batch."""

    def test_summary(self, make_extracted):
        enriched = make_extracted('fallback.jpg', 1.0, 1.0)
        enriched = replace(enriched, metadata=replace(
            enriched.metadata, gps=GpsInfo(present=True, lat=1.0, lon=1.0, source='filename'),
        ))
        extracted = [
            make_extracted('a.jpg', 1.0, 1.0, grade=QualityGrade.HIGH,
                           captured_at=datetime(2024, 5, 2), model='EOS R5'),
            make_extracted('b.jpg', grade=QualityGrade.LOW, captured_at=datetime(2024, 5, 1)),
            enriched,
        ]

        summary = summarize_batch(extracted, total=5, failed=2)

        assert summary['total'] == 5
        assert summary['processed'] == 3
        assert summary['failed'] == 2
        assert summary['gps_tagged'] == 1
        assert summary['location_enriched'] == 1
        assert summary['quality_distribution'] == {'High': 1, 'Medium': 1, 'Low': 1}
        assert summary['camera_models'] == {'Canon EOS R5': 1}
        assert summary['date_range'] == {
            'earliest': '2024-05-01T00:00:00',
            'latest': '2024-05-02T00:00:00',
        }


class TestMetadataReport:
    """Tests for build_metadata_report."""

    def test_common_issues_and_recommendations(self, make_jpeg, make_ingested):
        from fieldmap.field_data.extraction import MetadataExtractor

        batch = MetadataExtractor().process_batch([
            make_ingested('a.jpg', make_jpeg(seed=1)),
            make_ingested('b.jpg', make_jpeg(seed=2)),
        ])

        report = build_metadata_report(batch.extracted)

        assert 'no GPS data (2 images)' in report['common_issues']
        assert 'Enable GPS/location services on camera' in report['recommendations']
        assert len(report['recommendations']) == len(set(report['recommendations']))
        assert report['technical_summary']['image_count'] == 2
        assert report['technical_summary']['average_width'] == 64
        assert report['images'][0]['metadata']['quality']['grade'] == 'Low'

    def test_empty(self):
        report = build_metadata_report([])

        assert report['images'] == []
        assert report['common_issues'] == []
        assert report['technical_summary']['total_size'] == '0 Bytes'


class TestThumbnailGenerator:
    """Tests for ThumbnailGenerator."""

    def test_longest_edge_bounded(self, make_jpeg):
        thumbnail = ThumbnailGenerator({'extraction': {'thumbnail_size': 32}}).generate(
            make_jpeg(width=128, height=64),
        )

        with Image.open(io.BytesIO(thumbnail)) as img:
            assert img.size == (32, 16)
            assert img.format == 'JPEG'

    def test_transparent_png_flattened(self):
        buffer = io.BytesIO()
        Image.new('RGBA', (300, 200), (255, 0, 0, 0)).save(buffer, format='PNG')

        thumbnail = ThumbnailGenerator().generate(buffer.getvalue())

        with Image.open(io.BytesIO(thumbnail)) as img:
            assert img.mode == 'RGB'
            assert img.size == (150, 100)
            r, g, b = img.getpixel((75, 50))
            assert min(r, g, b) > 240

    def test_undecodable_content(self):
        with pytest.raises(OSError):
            ThumbnailGenerator().generate(b'not an image')
