"""Unified entry point for consensus_engine commands."""

import argparse
import logging
import sys

log = logging.getLogger(__name__)


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        logging.basicConfig(level=logging.INFO)
        log.error("Usage: python -m consensus_engine <command> [args...]")
        log.error("Available commands:")
        log.error("  evaluate  - Run one consensus evaluation over a bar snapshot")
        sys.exit(1)

    command = argv[0]

    if command == "evaluate":
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s  %(levelname)-8s  %(message)s",
            datefmt="%H:%M:%S",
        )
        p = argparse.ArgumentParser(description="Run one consensus evaluation")
        p.add_argument("--config", required=True, help="Path to YAML config file")
        p.add_argument("--debug", action="store_true", help="Log per-agent rationale")
        args = p.parse_args(argv[1:])
        if args.debug:
            logging.getLogger().setLevel(logging.DEBUG)
        from consensus_engine.runner import run_evaluation
        run_id = run_evaluation(args.config)
        log.info("Finished, run_id: %s", run_id)
    else:
        logging.basicConfig(level=logging.INFO)
        log.error("Unknown command: %s", command)
        sys.exit(1)


if __name__ == "__main__":
    main()
