"""
Command-line interface for fieldmap.

Processes a directory of field images into a KMZ archive, or lists the
registered capabilities.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from fieldmap.agent.core.state import OrchestratorState, OrchestratorStatus
from fieldmap.agent.factory import create_default_registry, create_engine
from fieldmap.agent.workflows.base import Workflow, WorkflowTask
from fieldmap.agent.workflows.templates import WorkflowTemplates
from fieldmap.config import deep_merge, load_config, section
from fieldmap.field_data.ingest import load_assets
from fieldmap.logging_config import setup_from_config

logger = logging.getLogger(__name__)


def build_run_config(args) -> Dict[str, Any]:
    """Configuration from defaults, the optional config file and the flags."""
    config = load_config(args.config)

    overrides: Dict[str, Any] = {}
    if args.location_fallback:
        overrides.setdefault('extraction', {})['enable_location_fallback'] = True
    if args.analyst:
        overrides.setdefault('evidence', {})['analyst'] = args.analyst
        overrides.setdefault('export', {})['analyst'] = args.analyst

    return deep_merge(config, overrides)


def attach_output(workflow: Workflow, output_path: Path) -> Workflow:
    """Give every ExportAgent task without a target the CLI output path."""
    steps = tuple(
        tuple(
            WorkflowTask(task.capability_name, {'output_path': output_path, **task.params})
            if task.capability_name == 'ExportAgent' else task
            for task in step
        )
        for step in workflow.steps
    )
    return Workflow(steps=steps, name=workflow.name)


def print_outcome(state: OrchestratorState) -> None:
    """Print the final workflow state and the last step's findings."""
    print(f"\n{'=' * 60}")
    print(f"WORKFLOW {state.status.value}")
    print(f"{'=' * 60}")

    for index, results in enumerate(state.per_step_results):
        for result in results:
            status = "OK  " if result.success else "FAIL"
            print(f"  [{index}] [{status}] {result.summary}")

    if state.status is not OrchestratorStatus.SUCCESS or not state.per_step_results:
        return

    data = state.per_step_results[-1][-1].data
    for error in data.get('errors', []):
        print(f"  error: {error}")
    for warning in data.get('warnings', []):
        print(f"  warning: {warning}")
    if data.get('archive_path'):
        print(f"\nArchive written to: {data['archive_path']}")


def run_process(args) -> int:
    """
    Run the field processing workflow over a directory.

    Returns:
        Process exit code: 0 on SUCCESS, 1 otherwise
    """
    config = build_run_config(args)
    setup_from_config(config)

    assets = load_assets(args.input_dir, recursive=not args.no_recursive)
    if not assets:
        print(f"No images found in {args.input_dir}")
        return 1

    output = args.output or Path(config['output_dir']) / section(config, 'export')['archive_name']

    if args.workflow:
        workflow = Workflow.from_yaml(args.workflow).with_params(assets=assets)
        workflow = attach_output(workflow, output)
    else:
        workflow = WorkflowTemplates.field_processing(
            assets,
            output_path=output,
            evidence=args.evidence or bool(section(config, 'evidence')['enabled']),
            analyst=args.analyst,
            radius_m=args.cluster_radius,
            clustering=not args.no_clustering,
        )

    print(f"Processing {len(assets)} images from {args.input_dir}")
    engine = create_engine(config)
    state = engine.start_workflow(workflow)
    print_outcome(state)

    return 0 if state.status is OrchestratorStatus.SUCCESS else 1


def run_capabilities(args) -> int:
    """List registered capabilities with their parameters."""
    config = load_config(args.config)
    registry = create_default_registry(config)

    infos = [registry.get_info(name) for name in registry.list_names()]
    if args.json:
        print(json.dumps(infos, indent=2))
        return 0

    for info in infos:
        print(f"{info['name']}: {info['purpose']}")
        for param, details in info['parameters'].items():
            marker = '*' if details['required'] else ' '
            print(f"  {marker} {param}  {details['description']}".rstrip())
    return 0


def create_argument_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog='fieldmap',
        description="Field image documentation: metadata, clustering and KML/KMZ export",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Process a directory with default settings
  fieldmap process photos/ --output survey.kmz

  # 50m clusters and chain-of-custody records
  fieldmap process photos/ --output survey.kmz --cluster-radius 50 --evidence --analyst jdoe

  # Custom workflow file and config
  fieldmap process photos/ --output survey.kmz --workflow workflow.yaml --config site.yaml

  # List capabilities
  fieldmap capabilities
        """
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    process = subparsers.add_parser('process', help="Process a directory of field images")
    process.add_argument('input_dir', type=Path, help="Directory containing images")
    process.add_argument(
        '--output', '-o',
        type=Path,
        default=None,
        help="Output KMZ path; a directory receives the configured archive name "
             "(default: <output_dir>/field_export.kmz)"
    )
    process.add_argument(
        '--cluster-radius',
        type=float,
        default=None,
        help="Clustering radius in meters (default: from config, 100)"
    )
    process.add_argument(
        '--no-clustering',
        action='store_true',
        help="Export individual placemarks without clusters"
    )
    process.add_argument(
        '--evidence',
        action='store_true',
        help="Create chain-of-custody records for every processed image"
    )
    process.add_argument(
        '--analyst',
        type=str,
        default=None,
        help="Analyst identifier for the export and evidence records"
    )
    process.add_argument(
        '--location-fallback',
        action='store_true',
        help="Derive a position from 'lat_lon' numbers in the file name when EXIF GPS is missing"
    )
    process.add_argument(
        '--no-recursive',
        action='store_true',
        help="Do not search subdirectories"
    )
    process.add_argument(
        '--workflow', '-w',
        type=Path,
        default=None,
        help="Workflow YAML file replacing the default workflow"
    )
    process.add_argument(
        '--config', '-c',
        type=Path,
        default=None,
        help="Configuration YAML merged over the defaults"
    )
    process.set_defaults(handler=run_process)

    capabilities = subparsers.add_parser('capabilities', help="List registered capabilities")
    capabilities.add_argument('--json', action='store_true', help="Print as JSON")
    capabilities.add_argument('--config', '-c', type=Path, default=None, help="Configuration YAML")
    capabilities.set_defaults(handler=run_capabilities)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        return args.handler(args)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as error:
        print(f"Error: {error}", file=sys.stderr)
        return 2


if __name__ == '__main__':
    sys.exit(main())
