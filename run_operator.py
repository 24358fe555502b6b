#!/usr/bin/env python3
"""
Wrapper script to run the authentication operator with Kopf.

Launches Kopf's CLI with all standard arguments and the operator module
preloaded, which registers the handlers via decorators.

Usage:
    python run_operator.py [any kopf run arguments]

Examples:
    python run_operator.py --verbose
    python run_operator.py --log-format=json --liveness=http://0.0.0.0:8080/healthz
"""
import sys

if __name__ == '__main__':
    import kopf.cli

    # Import the operator module (which registers handlers via decorators)
    import authop.app  # noqa: F401

    # Inject 'run' as the command since we're calling the CLI directly
    # This makes it behave as if user called: kopf run <args>
    sys.argv.insert(1, 'run')

    # Call Kopf's CLI main entry point - it handles all argument parsing
    sys.exit(kopf.cli.main(prog_name="kopf"))
