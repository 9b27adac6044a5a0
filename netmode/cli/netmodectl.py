#!/usr/bin/env python3
"""
netmode-toggle - advance the host to its next network mode.

Run without arguments, it performs the single legal transition out of the
committed mode:

    production -> stopped -> maintenance -> production

Usage:
    netmode-toggle                 Run the next transition (requires root)
    netmode-toggle --status        Show the committed mode and cooldown
    netmode-toggle --verbose       Log every external command

Exit status:
    0   transition completed
    1   unexpected failure
    2   precondition not met (wrong mode, cooldown, workload rules)
    3   packet-filter rules could not be applied
    4   state record holds an unknown mode
    5   configuration file invalid
    77  not running as root

Environment:
    NETMODE_CONFIG     Path to configuration file
    NETMODE_VERBOSE    Enable debug logging
    NETMODE_LOG_FILE   Also log to this file
"""

import argparse
import logging
import sys
from typing import List, Optional

from ..config import ControllerConfig
from ..constants import ExitCodes
from ..exceptions import NetmodeError
from ..logging_config import configure_from_environment
from ..orchestrator import ModeTransitionOrchestrator
from ..privilege_manager import require_root
from ..utils.error_handling import ErrorCategory, ErrorSeverity, handle_error

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='netmode-toggle',
        description='Advance the host to its next network mode',
    )
    parser.add_argument('--status', action='store_true',
                        help='Show the committed mode and cooldown, then exit')
    parser.add_argument('-c', '--config', metavar='PATH',
                        help='Configuration file (default: /etc/netmode/netmode.yaml)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log every external command')
    parser.add_argument('--log-file', metavar='PATH',
                        help='Also write log lines to this file')
    return parser


def cmd_status(orchestrator: ModeTransitionOrchestrator) -> int:
    """Print the committed mode and cooldown."""
    status = orchestrator.get_status()

    mode = status['mode']
    if not status['initialized']:
        mode = f"{mode} (default, no state record)"
    print(f"Mode: {mode}")
    print(f"Next: {status['next_mode']} ({status['next_trigger']})")

    remaining = status['cooldown_remaining']
    if remaining is None:
        print("Cooldown: none")
    elif remaining > 0:
        print(f"Cooldown: {remaining}s remaining")
    else:
        print("Cooldown: elapsed")
    return ExitCodes.SUCCESS


def cmd_toggle(orchestrator: ModeTransitionOrchestrator) -> int:
    """Run the next transition."""
    result = orchestrator.toggle()
    print(f"Mode changed: {result.source} -> {result.target}")
    return ExitCodes.SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_from_environment(verbose=args.verbose, log_file=args.log_file)

    try:
        # Privilege first: nothing is read or written for an unprivileged toggle
        if not args.status:
            require_root("netmode-toggle")

        config = ControllerConfig.load(args.config)
        orchestrator = ModeTransitionOrchestrator.from_config(config)

        if args.status:
            return cmd_status(orchestrator)
        return cmd_toggle(orchestrator)

    except NetmodeError as e:
        print(f"netmode-toggle: {e}", file=sys.stderr)
        return e.exit_code
    except KeyboardInterrupt:
        print("netmode-toggle: interrupted", file=sys.stderr)
        return 130
    except Exception as e:
        handle_error(e, "netmode-toggle", ErrorCategory.UNKNOWN, severity=ErrorSeverity.CRITICAL)
        print(f"netmode-toggle: unexpected error: {e}", file=sys.stderr)
        return ExitCodes.FAILURE


if __name__ == '__main__':
    sys.exit(main())
