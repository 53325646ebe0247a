"""CLI entrypoint that imports a storefront export and prints the job report."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

from storeimport.analysis.config import ClassifierServiceSettings
from storeimport.analysis.service import OpenRouterClassifier
from storeimport.bundle import load_bundle
from storeimport.config import ImportSettings
from storeimport.errors import BundleUnreadable
from storeimport.models import ImportReport, PlatformId
from storeimport.pipeline import ImportPipeline

logger = logging.getLogger(__name__)


def build_pipeline(environ: dict[str, str] | None = None) -> ImportPipeline:
    settings = ImportSettings.from_env(environ)
    service_settings = ClassifierServiceSettings.optional_from_env(environ)
    service = OpenRouterClassifier(service_settings) if service_settings is not None else None
    if service is None:
        logger.info("OPENROUTER_API_KEY not set, classifying with local rules only")
    return ImportPipeline(settings, service=service)


def _write_report(report: ImportReport, output: str | None) -> str:
    text = json.dumps(report.to_dict(), ensure_ascii=False, indent=2)
    if output:
        Path(output).write_text(text, encoding="utf-8")
    return text


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Import a storefront export into canonical pages")
    parser.add_argument("--path", required=True, help="Bundle directory, zip archive, JSON listing or page")
    parser.add_argument(
        "--platform",
        default=None,
        choices=[platform.value for platform in PlatformId if platform is not PlatformId.UNKNOWN],
        help="Platform hint added to detection signals",
    )
    parser.add_argument("--job-id", default=None, help="Job identifier used in the report")
    parser.add_argument("--output", default=None, help="Also write the JSON report to this file")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
    )

    try:
        bundle = load_bundle(args.path, platform_hint=args.platform)
        report = build_pipeline().run(bundle, job_id=args.job_id)
    except BundleUnreadable as exc:
        print(json.dumps({"path": args.path, "error": str(exc)}, ensure_ascii=False, indent=2))
        return 2

    print(_write_report(report, args.output))
    return 0 if report.summary["failed"] == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
