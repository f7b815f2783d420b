"""
Constraint checking command line tool.

This module handles:
1. Loading a YAML constraint file
2. Loading model/state objects from JSON or YAML files
3. Registering custom functions from an importable module
4. Checking every constraint and reporting failures with their messages
"""

import importlib
import logging
import sys
from typing import Any, Callable, Dict, List, Optional

from constraint_dsl.core.constraint_generator import ConstraintGenerator
from constraint_dsl.core.constraint_loader import (
    load_constraint_file,
    load_context_file,
)
from constraint_dsl.core.exceptions import ConstraintConfigError, ConstraintError

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ERROR = 2


def load_functions(spec: str) -> Dict[str, Callable[..., Any]]:
    """Import a name -> callable table given as 'package.module[:ATTRIBUTE]'.

    ATTRIBUTE defaults to FUNCTIONS.
    """
    module_name, _, attribute = spec.partition(":")
    try:
        module = importlib.import_module(module_name)
        table = getattr(module, attribute or "FUNCTIONS")
    except (ImportError, AttributeError) as e:
        raise ConstraintConfigError(f"Cannot load functions from {spec}: {e}") from e

    if not isinstance(table, dict):
        raise ConstraintConfigError(f"{spec} must be a dict of name -> callable")
    return table


def run(
    constraints_path: str,
    model_path: Optional[str] = None,
    state_path: Optional[str] = None,
    functions_spec: Optional[str] = None,
) -> int:
    """Check all constraints of a file and print one line per constraint.

    Returns:
        int: Process exit code
    """
    config = load_constraint_file(constraints_path)
    generator = ConstraintGenerator.from_config(config)

    if functions_spec:
        for name, func in load_functions(functions_spec).items():
            generator.register_function(name, func)

    model = load_context_file(model_path) if model_path else {}
    state = load_context_file(state_path) if state_path else {}

    constraints = generator.compile_all(config.constraints)
    results = generator.check(constraints, model, state)

    failed = 0
    for result in results:
        label = result.name or result.assertion
        if result.passed:
            print(f"✅ {label}")
        else:
            failed += 1
            detail = f": {result.message}" if result.message else ""
            print(f"❌ {label}{detail}")

    print(f"\n{len(results) - failed}/{len(results)} constraints passed")
    return EXIT_FAILED if failed else EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the constraint-dsl CLI command."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Check DSL constraints against a model and a state",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check constraints against a JSON model
  constraint-dsl --constraints rules.yaml --model model.json

  # With a state file and custom functions from mypackage/checks.py (FUNCTIONS dict)
  constraint-dsl --constraints rules.yaml --model model.json --state state.yaml --functions mypackage.checks
        """,
    )
    parser.add_argument(
        "--constraints",
        type=str,
        required=True,
        metavar="FILE",
        help="YAML file with the constraints to check",
    )
    parser.add_argument(
        "--model",
        type=str,
        metavar="FILE",
        help="JSON or YAML file with the model object ($ references)",
    )
    parser.add_argument(
        "--state",
        type=str,
        metavar="FILE",
        help="JSON or YAML file with the state object (# references)",
    )
    parser.add_argument(
        "--functions",
        type=str,
        metavar="MODULE[:ATTR]",
        help="Importable dict of custom functions (default attribute: FUNCTIONS)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging of the compiler",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        return run(args.constraints, args.model, args.state, args.functions)
    except ConstraintError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
