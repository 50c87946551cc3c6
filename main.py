import argparse
import datetime as dt

from cardrewards.api.app import run as run_api
from cardrewards.config import configure_logging, settings
from cardrewards.repository.card_store import CardStore
from cardrewards.services.orchestrator import RewardsOrchestrator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Card rewards unified entrypoint")
    parser.add_argument(
        "mode",
        nargs="?",
        choices=["api", "summary"],
        default="api",
        help="Run mode: api (default), summary",
    )
    parser.add_argument("--snapshot", default=settings.snapshot_file, help="Snapshot JSON file for summary mode")
    parser.add_argument(
        "--today",
        type=dt.date.fromisoformat,
        default=None,
        help="Reference date (YYYY-MM-DD) for summary mode; defaults to today",
    )
    return parser


def run_summary(snapshot_file: str, today: dt.date | None) -> None:
    orchestrator = RewardsOrchestrator(CardStore(snapshot_file), default_settings=settings.reward_settings())
    dashboard = orchestrator.snapshot_dashboard(today)
    print(dashboard.model_dump_json(indent=2))


def main() -> None:
    args = build_parser().parse_args()

    if args.mode == "api":
        run_api()
        return

    configure_logging(settings.log_level)
    run_summary(args.snapshot, args.today)


if __name__ == "__main__":
    main()
