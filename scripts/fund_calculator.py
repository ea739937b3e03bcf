"""Share peloton funds across a team roster and print the final ledger.

Run:
  python scripts/fund_calculator.py roster.xlsx
  python scripts/fund_calculator.py roster.xlsx --matcher level --config data/funds_config.yaml
  python scripts/fund_calculator.py --config data/funds_config.yaml --log-level DEBUG

Optional env vars:
  FUNDS_CONFIG_PATH  (default: data/funds_config.yaml)
  FUNDS_ROSTER_PATH, FUNDS_MATCHER, FUNDS_LOG_LEVEL
  GOOGLE_SA_FILE     (service account JSON, only for Google Sheets URLs)
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

from dotenv import load_dotenv


# Ensure `import src.*` works when running as `python scripts/...` from repo root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from src.funds.config.settings import SettingsError, load_settings
from src.funds.fund_calculator import FundCalculator
from src.funds.integrations.roster_parser import RosterFormatError
from src.funds.use_cases.company_matchers import DEFAULT_REGISTRY, MatcherConfigError


def _fail(msg: str) -> int:
    print(f"ERROR: {msg}", file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("roster", nargs="?", help="Roster workbook (.xlsx) or Google Sheets URL")
    parser.add_argument("--config", help="YAML settings file")
    parser.add_argument(
        "--matcher",
        choices=sorted(DEFAULT_REGISTRY.names()),
        help="Company matching policy (overrides the settings file)",
    )
    parser.add_argument("--funds", help="Workbook holding the shared funds table (default: roster)")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ...")
    args = parser.parse_args(argv)

    load_dotenv(override=False)

    try:
        settings = load_settings(args.config)
        updates: dict = {}
        if args.roster:
            updates["roster_path"] = args.roster
        if args.funds:
            updates["funds_path"] = args.funds
        if args.log_level:
            updates["log_level"] = args.log_level.upper()
        if args.matcher:
            updates["matcher"] = settings.matcher.model_copy(update={"name": args.matcher})
        settings = settings.model_copy(update=updates)
    except SettingsError as e:
        return _fail(str(e))

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(message)s",
    )

    try:
        result = FundCalculator(settings).run()
    except (MatcherConfigError, RosterFormatError, FileNotFoundError, KeyError, ValueError) as e:
        return _fail(str(e))

    print(result.report.render())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
