"""
Tests for the fieldmap command-line interface.
"""

import json
import zipfile

import pytest

from fieldmap.cli import create_argument_parser, main


@pytest.fixture
def quiet_config(tmp_path):
    """Config file that keeps log output off the captured console."""
    path = tmp_path / "quiet.yaml"
    path.write_text("logging:\n  log_to_console: false\n")
    return path


@pytest.fixture
def photo_dir(tmp_path, site_assets):
    directory = tmp_path / 'photos'
    directory.mkdir()
    for ingested in site_assets:
        (directory / ingested.asset.file_name).write_bytes(ingested.content)
    return directory


class TestArgumentParser:
    """Tests for create_argument_parser."""

    def test_process_arguments(self):
        args = create_argument_parser().parse_args([
            'process', 'photos', '--output', 'out.kmz', '--cluster-radius', '50',
            '--evidence', '--analyst', 'jdoe', '--location-fallback',
        ])

        assert args.command == 'process'
        assert args.cluster_radius == 50.0
        assert args.evidence
        assert args.analyst == 'jdoe'
        assert args.location_fallback

    def test_output_optional(self):
        args = create_argument_parser().parse_args(['process', 'photos'])

        assert args.output is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            create_argument_parser().parse_args([])


class TestMain:
    """Tests for main."""

    def test_process_writes_archive(self, tmp_path, photo_dir, quiet_config, capsys):
        output = tmp_path / 'survey.kmz'

        exit_code = main([
            'process', str(photo_dir), '--output', str(output), '--evidence',
            '--config', str(quiet_config),
        ])

        assert exit_code == 0
        assert 'WORKFLOW SUCCESS' in capsys.readouterr().out
        with zipfile.ZipFile(output) as zf:
            assert any(n.startswith('data/evidence/') for n in zf.namelist())

    def test_process_with_workflow_file(self, tmp_path, photo_dir, quiet_config):
        workflow = tmp_path / 'workflow.yaml'
        workflow.write_text(
            "name: no_clusters\n"
            "steps:\n"
            "  - - capability: MetadataExtractionAgent\n"
            "  - - capability: GeoClusteringAgent\n"
            "      params: {enabled: false}\n"
            "  - - capability: ExportAgent\n"
        )
        output = tmp_path / 'custom.kmz'

        exit_code = main([
            'process', str(photo_dir), '--output', str(output), '--workflow', str(workflow),
            '--config', str(quiet_config),
        ])

        assert exit_code == 0
        with zipfile.ZipFile(output) as zf:
            assert 'Image Cluster' not in zf.read('doc.kml').decode('utf-8')

    def test_process_with_config_file(self, tmp_path, photo_dir):
        config = tmp_path / 'site.yaml'
        config.write_text("export:\n  project_name: Pier Survey\nlogging:\n  log_to_console: false\n")
        output = tmp_path / 'pier.kmz'

        assert main(['process', str(photo_dir), '-o', str(output), '--config', str(config)]) == 0

        with zipfile.ZipFile(output) as zf:
            assert '<name>Pier Survey</name>' in zf.read('doc.kml').decode('utf-8')

    def test_default_output_from_config(self, tmp_path, photo_dir):
        config = tmp_path / 'out.yaml'
        config.write_text(
            f"output_dir: {tmp_path / 'exports'}\n"
            "export:\n  archive_name: site.kmz\n"
            "logging:\n  log_to_console: false\n"
        )

        assert main(['process', str(photo_dir), '--config', str(config)]) == 0

        assert (tmp_path / 'exports' / 'site.kmz').exists()

    def test_empty_directory(self, tmp_path, quiet_config):
        empty = tmp_path / 'empty'
        empty.mkdir()

        args = ['process', str(empty), '--output', str(tmp_path / 'x.kmz'), '--config', str(quiet_config)]
        assert main(args) == 1

    def test_missing_directory(self, tmp_path, quiet_config):
        args = ['process', str(tmp_path / 'absent'), '--output', str(tmp_path / 'x.kmz'), '--config', str(quiet_config)]
        assert main(args) == 2

    def test_malformed_workflow_file(self, tmp_path, photo_dir, quiet_config, capsys):
        workflow = tmp_path / 'broken.yaml'
        workflow.write_text("name: broken\n")

        args = [
            'process', str(photo_dir), '--output', str(tmp_path / 'x.kmz'),
            '--workflow', str(workflow), '--config', str(quiet_config),
        ]
        assert main(args) == 2

        assert "Error: Workflow file has no 'steps'" in capsys.readouterr().err
        assert not (tmp_path / 'x.kmz').exists()

    def test_unparseable_config(self, tmp_path, photo_dir, capsys):
        config = tmp_path / 'bad.yaml'
        config.write_text("logging: [unclosed\n")

        assert main(['process', str(photo_dir), '--config', str(config)]) == 2

        assert capsys.readouterr().err.startswith('Error: ')

    def test_config_that_is_not_a_mapping(self, tmp_path, capsys):
        config = tmp_path / 'list.yaml'
        config.write_text("- clustering\n")

        assert main(['capabilities', '--config', str(config)]) == 2

        assert 'must contain a mapping' in capsys.readouterr().err

    def test_capabilities_json(self, capsys):
        assert main(['capabilities', '--json']) == 0

        infos = json.loads(capsys.readouterr().out)
        assert [info['name'] for info in infos] == [
            'EvidenceChainAgent', 'ExportAgent', 'GeoClusteringAgent', 'MetadataExtractionAgent',
        ]
