#!/usr/bin/env python3
"""
simbank CLI

Runs the create-account verification against a throwaway in-memory ledger
and reports the outcome. The exit code is 0 when the account was verified
and 1 otherwise, so the command can gate a CI job.

Usage:
    simbank scenario                    # Create an account and verify its balance
    simbank scenario --omit-signature   # Expect the submission to be rejected
    simbank rent 165                    # Rent-exempt minimum for 165 bytes
    simbank keygen --outfile id.json    # Generate a keypair
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import LedgerConfig
from .core.accounts import LAMPORTS_PER_SOL, Rent
from .core.keypair import generate_keypair
from .errors import SimbankError
from .logging import setup_logging
from .scenario import CreateAccountScenario, ScenarioReport
from .programs.create_account import CREATE_ACCOUNT_PROGRAM_ID

logger = logging.getLogger(__name__)


def _config_from_args(args: argparse.Namespace) -> LedgerConfig:
    rent = Rent(
        lamports_per_byte_year=args.lamports_per_byte_year,
        exemption_threshold=args.exemption_threshold,
    )
    return LedgerConfig(lamports_per_signature=args.lamports_per_signature, rent=rent)


def print_report(report: ScenarioReport) -> None:
    print(f"{'✅' if report.passed else '❌'} create-account scenario: {report.state.value}")
    if report.address:
        print(f"   New account: {report.address}")
    if report.signature:
        print(f"   Signature:   {report.signature}")
    if report.expected_lamports is not None:
        print(f"   Expected:    {report.expected_lamports:,} lamports")
    if report.lamports is not None:
        print(f"   Balance:     {report.lamports:,} lamports ({report.lamports / LAMPORTS_PER_SOL:.9f} SOL)")
    if report.error:
        print(f"   Error:       {report.error}")
    if report.logs:
        print("   Logs:")
        for line in report.logs:
            print(f"     {line}")


def run_scenario(args: argparse.Namespace) -> int:
    expect_failure = args.omit_signature
    scenario = CreateAccountScenario(
        program_id=args.program_id,
        config=_config_from_args(args),
        sign_new_account=not args.omit_signature,
        check_owner=args.check_owner,
    )
    with scenario:
        try:
            scenario.run()
        except (SimbankError, AssertionError) as e:
            logger.debug("Scenario stopped: %s", e)
            if scenario.report.error is None:
                scenario.report.error = str(e)
        print_report(scenario.report)

        if expect_failure:
            still_missing = scenario.context is not None and \
                scenario.context.banks_client.get_account_info(scenario.report.address) is None
            if not scenario.report.passed and still_missing:
                print("✅ Submission was rejected and the account was not created")
                return 0
            print("❌ Submission without the new account's signature was not rejected")
            return 1

    return 0 if scenario.report.passed else 1


def show_rent(args: argparse.Namespace) -> int:
    rent = Rent(
        lamports_per_byte_year=args.lamports_per_byte_year,
        exemption_threshold=args.exemption_threshold,
    )
    lamports = rent.minimum_balance(args.data_len)
    print(f"Rent-exempt minimum: {lamports / LAMPORTS_PER_SOL:.9f} SOL ({lamports:,} lamports)")
    return 0


def keygen(args: argparse.Namespace) -> int:
    keypair = generate_keypair()
    if args.outfile:
        path = Path(args.outfile)
        if path.exists() and not args.force:
            print(f"❌ {path} already exists, use --force to overwrite")
            return 1
        path.write_text(json.dumps(list(keypair.secret())))
        print(f"Wrote new keypair to {path}")
    print(f"pubkey: {keypair.pubkey}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="simbank",
        description="Create-account verification against an in-memory ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  simbank scenario                     # Create an account and verify it
  simbank scenario --omit-signature    # Submission must be rejected
  simbank rent 0                       # Rent-exempt minimum for 0 bytes
  simbank keygen                       # Print a fresh public key
        """
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Log lifecycle events')
    parser.add_argument('--debug', action='store_true', help='Log everything, including program logs')
    parser.add_argument('--no-color', action='store_true', help='Disable colored log output')

    rent_options = argparse.ArgumentParser(add_help=False)
    rent_options.add_argument('--lamports-per-byte-year', type=int, default=Rent.lamports_per_byte_year)
    rent_options.add_argument('--exemption-threshold', type=float, default=Rent.exemption_threshold)

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    scenario_parser = subparsers.add_parser('scenario', parents=[rent_options],
                                            help='Run the create-account verification')
    scenario_parser.add_argument('--program-id', default=CREATE_ACCOUNT_PROGRAM_ID,
                                 help='Address to deploy the create_account program at')
    scenario_parser.add_argument('--lamports-per-signature', type=int, default=5000)
    scenario_parser.add_argument('--omit-signature', action='store_true',
                                 help="Submit without the new account's signature and expect rejection")
    scenario_parser.add_argument('--check-owner', action='store_true',
                                 help='Also verify owner and data length of the new account')
    scenario_parser.set_defaults(handler=run_scenario)

    rent_parser = subparsers.add_parser('rent', parents=[rent_options],
                                        help='Show the rent-exempt minimum for a data length')
    rent_parser.add_argument('data_len', type=int, help='Account data length in bytes')
    rent_parser.set_defaults(handler=show_rent)

    keygen_parser = subparsers.add_parser('keygen', help='Generate a new keypair')
    keygen_parser.add_argument('--outfile', help='Write the 64-byte secret key as a JSON array')
    keygen_parser.add_argument('--force', action='store_true', help='Overwrite an existing outfile')
    keygen_parser.set_defaults(handler=keygen)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose, debug=args.debug, color=not args.no_color)

    if not getattr(args, 'handler', None):
        parser.print_help()
        return 2

    try:
        return args.handler(args)
    except (SimbankError, ValueError) as e:
        print(f"❌ Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
        return 130


if __name__ == '__main__':
    sys.exit(main())
