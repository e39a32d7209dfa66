"""
Management command to replay a stored provider webhook through ingestion.

Useful for re-processing deliveries captured from a provider's webhook log,
or for exercising alert rules against a known sequence of builds.

Usage:
    # Replay a GitHub workflow_run delivery
    python manage.py replay_webhook github payload.json --event-type workflow_run

    # Replay a list of Jenkins notifications for a specific pipeline
    python manage.py replay_webhook jenkins builds.json --pipeline 3

    # Output as JSON
    python manage.py replay_webhook gitlab pipeline.json --json
"""

import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from apps.pipelines.models import Pipeline
from apps.pipelines.providers import PROVIDER_REGISTRY
from apps.pipelines.services import BuildIngestor


class Command(BaseCommand):
    help = "Feed a JSON webhook body (or a list of bodies) through build ingestion"

    def add_arguments(self, parser):
        parser.add_argument(
            "provider",
            type=str,
            choices=list(PROVIDER_REGISTRY.keys()),
            help="Provider the delivery came from.",
        )
        parser.add_argument(
            "path",
            type=str,
            help="Path to a JSON file holding one webhook body or a list of them.",
        )
        parser.add_argument(
            "--pipeline",
            type=int,
            help="Attach builds to this pipeline id instead of resolving from the payload.",
        )
        parser.add_argument(
            "--event-type",
            type=str,
            help="Provider event name, as sent in the X-GitHub-Event / X-Gitlab-Event header.",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            dest="json_output",
            help="Output result as JSON.",
        )

    def handle(self, *args, **options):
        path = Path(options["path"])
        if not path.exists():
            raise CommandError(f"File not found: {path}")

        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise CommandError(f"Invalid JSON in {path}: {e}")

        pipeline = None
        if options.get("pipeline") is not None:
            pipeline = Pipeline.objects.filter(pk=options["pipeline"]).first()
            if pipeline is None:
                raise CommandError(f"Pipeline not found: {options['pipeline']}")

        payloads = data if isinstance(data, list) else [data]
        ingestor = BuildIngestor()
        results = []

        for payload in payloads:
            result = ingestor.ingest(
                options["provider"],
                payload,
                pipeline=pipeline,
                event_type=options.get("event_type"),
            )
            results.append(
                {
                    "outcome": result.outcome,
                    "builds_created": result.builds_created,
                    "builds_updated": result.builds_updated,
                    "duplicates": result.duplicates,
                    "build_ids": result.build_ids,
                    "errors": result.errors,
                }
            )

        if options["json_output"]:
            self.stdout.write(json.dumps(results, indent=2))
            return

        for index, item in enumerate(results, start=1):
            line = (
                f"[{index}] {item['outcome']}: {item['builds_created']} created, "
                f"{item['builds_updated']} updated, {item['duplicates']} duplicate"
            )
            if item["errors"]:
                self.stdout.write(self.style.WARNING(line))
                for error in item["errors"]:
                    self.stdout.write(f"    - {error}")
            else:
                self.stdout.write(self.style.SUCCESS(line))
