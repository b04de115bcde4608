"""Typer CLI entrypoint with structured error handling."""

from __future__ import annotations

import sys

import typer

from event_timing_engine.cli.commands.fit import fit
from event_timing_engine.exceptions import (
    ConfigValidationError,
    ConvergenceError,
    InvalidInputError,
    NumericalError,
)
from event_timing_engine.utils.logging import configure_logging, get_logger

app = typer.Typer(help="Event timing curve fitting CLI")


app.command()(fit)


@app.callback()
def _root() -> None:
    """Fit lagged cumulative timing curves to event counts."""


log = get_logger(__name__, component="cli")


def main() -> None:
    """Console entry point; failures exit with 1 config, 2 input, 3 convergence, 4 numerical."""
    configure_logging(component="cli")
    try:
        app()
    except ConfigValidationError as exc:
        log.error(str(exc))
        raise SystemExit(1)
    except InvalidInputError as exc:
        log.error(f"Input validation failed: {exc}")
        raise SystemExit(2)
    except ConvergenceError as exc:
        log.error(f"Fit did not converge: {exc}", extra={"iterations": exc.iterations, "residual_norm": exc.residual_norm})
        raise SystemExit(3)
    except NumericalError as exc:
        log.error(f"Numerical procedure failed: {exc}")
        raise SystemExit(4)
    except KeyboardInterrupt:
        log.info("Shutdown requested. Finishing current tasks...")
        raise SystemExit(130)
    except Exception:
        log.exception("Unhandled exception")
        raise SystemExit(255)


if __name__ == "__main__":
    # Use sys.exit to ensure proper exit code propagation under raw python invocation
    sys.exit(main())
