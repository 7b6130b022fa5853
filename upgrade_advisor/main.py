"""
Upgrade Advisor - command-line entry point.

Examples:
    upgrade-advisor --package "Git" Git.Git 2.44.0 2.45.1
    upgrade-advisor --packages-file upgrades.json --provider bedrock
    upgrade-advisor --list-models --refresh
    upgrade-advisor --status
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional

from .config import get_settings
from .schemas import AnalysisSubject, ProviderPreference
from .tools.bedrock_tool import BedrockTool
from .tools.config_checker import ProviderConfigChecker
from .tools.recommendation_service import RecommendationService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

# Suppress noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

PROVIDER_CHOICES = {
    "claude": ProviderPreference.CLAUDE,
    "perplexity": ProviderPreference.PERPLEXITY,
    "bedrock": ProviderPreference.BEDROCK,
    "research": ProviderPreference.RESEARCH_THEN_FORMAT,
}


def load_subjects(path: Path) -> List[AnalysisSubject]:
    """Read a JSON list of {name, id, version, available} upgrade candidates."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list of packages")
    return [
        AnalysisSubject(
            name=item.get("name", ""),
            package_id=item.get("id", ""),
            current_version=item.get("version", ""),
            available_version=item.get("available", ""),
        )
        for item in data
    ]


async def list_models(refresh: bool) -> None:
    settings = get_settings()
    bedrock = BedrockTool(settings)
    try:
        entry = await bedrock.catalog.get_entry(bedrock.region, force_refresh=refresh)
        print(f"\nBedrock text models in {bedrock.region} ({entry.source}, {len(entry.models)} models)")
        print("=" * 60)
        for vendor, models in (await bedrock.catalog.models_by_vendor(bedrock.region)).items():
            print(f"\n{vendor}:")
            for model in models:
                print(f"  {model.model_id:<50} {model.display_name}")

        print("\nRecommended:")
        for use_case, model in (await bedrock.catalog.recommended_models(bedrock.region)).items():
            print(f"  {use_case.value:<16} {model.model_id}")
        print()
    finally:
        await bedrock.aclose()


async def run_recommendations(subjects: List[AnalysisSubject], preference: Optional[ProviderPreference]) -> None:
    service = RecommendationService()
    try:
        results = await service.recommend_many(subjects, preference)
    finally:
        await service.aclose()

    for subject, text in zip(subjects, results):
        print("\n" + "=" * 60)
        print(f"📦 {subject.display_name} ({subject.package_id}): "
              f"{subject.current_version or '?'} → {subject.available_version or '?'}")
        print("=" * 60)
        print(text)
    print()


# CLI Runner
async def cli_main(argv: Optional[List[str]] = None):
    """Command-line interface for package upgrade recommendations."""
    import argparse

    parser = argparse.ArgumentParser(
        description="AI upgrade recommendations via Claude, Perplexity and AWS Bedrock"
    )
    parser.add_argument(
        "--package",
        nargs=4,
        action="append",
        metavar=("NAME", "ID", "CURRENT", "AVAILABLE"),
        help="Package to analyze (repeatable)"
    )
    parser.add_argument(
        "--packages-file",
        type=Path,
        help="JSON list of {name, id, version, available}"
    )
    parser.add_argument(
        "--provider",
        choices=sorted(PROVIDER_CHOICES),
        help="Override AI_PROVIDER / USE_PERPLEXITY for this run"
    )
    parser.add_argument(
        "--list-models",
        action="store_true",
        help="List Bedrock text models for AWS_REGION"
    )
    parser.add_argument(
        "--refresh",
        action="store_true",
        help="With --list-models: bypass the model catalog cache"
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show which providers are configured"
    )

    args = parser.parse_args(argv)

    if args.status:
        print(ProviderConfigChecker().get_status_summary())
        return

    if args.list_models:
        await list_models(args.refresh)
        return

    subjects = [
        AnalysisSubject(name=name, package_id=package_id, current_version=current, available_version=available)
        for name, package_id, current, available in (args.package or [])
    ]
    if args.packages_file:
        subjects.extend(load_subjects(args.packages_file))

    if not subjects:
        parser.error("nothing to analyze: pass --package or --packages-file")

    preference = PROVIDER_CHOICES[args.provider] if args.provider else None
    await run_recommendations(subjects, preference)


def main():
    """Entry point for CLI."""
    asyncio.run(cli_main())


if __name__ == "__main__":
    main()
